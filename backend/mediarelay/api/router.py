"""Master API router: mounts all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from mediarelay.api.generate import router as generate_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(generate_router, tags=["Generation"])
