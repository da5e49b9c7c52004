"""mediarelay: FastAPI application entry point.

Mounts the generation routes, configures CORS, turns pipeline errors into
structured JSON bodies and, with the local storage backend, serves stored
artifacts under ``/media``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from mediarelay.api.deps import get_providers, get_storage
from mediarelay.api.router import api_router
from mediarelay.config import get_settings
from mediarelay.errors import OrchestrationError
from mediarelay.services.storage import SupabaseStorage

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s starting up...", settings.APP_NAME)
    logger.info("Storage backend: %s", settings.STORAGE_BACKEND)
    storage = get_storage()
    if isinstance(storage, SupabaseStorage) and not storage.configured:
        logger.warning(
            "SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set, uploads will fail"
        )
    yield
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title="mediarelay API",
    description="Long-running media generation and transcription jobs, stored under stable URLs",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrchestrationError)
async def orchestration_error_handler(request: Request, exc: OrchestrationError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request body")
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{field}: {message}" if field else message,
            "stage": "validate",
        },
    )


app.include_router(api_router)

if settings.STORAGE_BACKEND.lower() == "local":
    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
    app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"service": settings.APP_NAME, "status": "running"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "storage": settings.STORAGE_BACKEND,
        "providers": sorted(get_providers()),
    }
