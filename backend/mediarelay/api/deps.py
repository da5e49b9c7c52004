"""Shared FastAPI dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import httpx

from mediarelay.config import Settings, get_settings
from mediarelay.services.providers import JobProvider, build_providers
from mediarelay.services.scheduler import AsyncioScheduler, Scheduler
from mediarelay.services.storage import ObjectStorage, build_storage


@dataclass
class JobContext:
    """What one endpoint call needs besides the request body.

    ``client`` is None in production: each run opens and closes its own.
    """

    settings: Settings
    providers: dict[str, JobProvider]
    storage: ObjectStorage
    scheduler: Scheduler
    client: httpx.AsyncClient | None = None


@lru_cache
def get_providers() -> dict[str, JobProvider]:
    return build_providers(get_settings())


@lru_cache
def get_storage() -> ObjectStorage:
    return build_storage(get_settings())


def get_job_context() -> JobContext:
    return JobContext(
        settings=get_settings(),
        providers=get_providers(),
        storage=get_storage(),
        scheduler=AsyncioScheduler(),
    )
