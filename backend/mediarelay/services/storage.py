"""Durable artifact storage with stable public URLs.

Two backends share one interface:
- ``SupabaseStorage``: Supabase Storage REST API (public buckets, upsert).
- ``LocalStorage``: the media volume directory, served under ``/media``.

``Materializer`` derives the object key from the job id, so storing the same
job twice overwrites one object and returns the same URL.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx

from mediarelay.errors import StorageError
from mediarelay.models import Artifact, StorageObject

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class ObjectStorage(ABC):

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> None:
        """Store ``data`` under ``bucket/key``; raise StorageError on failure."""
        ...

    @abstractmethod
    def public_url(self, bucket: str, key: str) -> str:
        ...


class SupabaseStorage(ObjectStorage):
    """Supabase Storage over its REST API using the service-role key."""

    def __init__(
        self,
        url: str,
        service_key: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 300.0,
    ) -> None:
        self.url = (url or "").rstrip("/")
        self.service_key = service_key
        self.http_client = http_client
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_key)

    def _object_path(self, bucket: str, key: str) -> str:
        return f"{quote(bucket, safe='')}/{quote(key, safe='')}"

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> None:
        if not self.configured:
            raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        endpoint = f"{self.url}/storage/v1/object/{self._object_path(bucket, key)}"
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": content_type,
            "x-upsert": "true" if overwrite else "false",
        }

        client = self.http_client or httpx.AsyncClient(timeout=self.timeout)
        own_client = self.http_client is None
        try:
            resp = await client.post(endpoint, content=data, headers=headers)
        except httpx.HTTPError as e:
            raise StorageError(f"Supabase Storage upload failed: {e}") from e
        finally:
            if own_client:
                await client.aclose()

        if resp.status_code >= 400:
            raise StorageError(
                f"Supabase Storage upload failed ({resp.status_code})",
                details=resp.text[:500],
            )

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self._object_path(bucket, key)}"


class LocalStorage(ObjectStorage):
    """Files under ``root/bucket/key``, published at ``base_url/media/...``."""

    def __init__(self, root: str, base_url: str) -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")

    def _write(self, bucket: str, key: str, data: bytes, overwrite: bool) -> None:
        dir_path = os.path.join(self.root, bucket)
        os.makedirs(dir_path, exist_ok=True)
        final_path = os.path.join(dir_path, key)
        if not overwrite and os.path.exists(final_path):
            raise StorageError(f"Object already exists: {bucket}/{key}")

        # write aside, then rename: readers never see a partial file
        fd, tmp_path = tempfile.mkstemp(dir=dir_path, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, final_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> None:
        try:
            await asyncio.to_thread(self._write, bucket, key, data, overwrite)
        except OSError as e:
            raise StorageError(f"Local storage write failed: {e}") from e

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/media/{quote(bucket, safe='')}/{quote(key, safe='')}"


def storage_key(idempotency_key: str, extension: str = "") -> str:
    """Deterministic, path-safe object key for a job id."""
    safe = _UNSAFE_KEY_CHARS.sub("_", idempotency_key).strip(".")
    if not safe:
        raise StorageError(f"Cannot derive a storage key from {idempotency_key!r}")
    return f"{safe}{extension}"


class Materializer:

    def __init__(self, storage: ObjectStorage, bucket: str, extension: str = "") -> None:
        self.storage = storage
        self.bucket = bucket
        self.extension = extension

    async def store(self, artifact: Artifact, idempotency_key: str) -> StorageObject:
        key = storage_key(idempotency_key, self.extension)
        await self.storage.upload(
            self.bucket, key, artifact.data, artifact.media_type, overwrite=True
        )
        stored = StorageObject(
            bucket=self.bucket,
            key=key,
            public_url=self.storage.public_url(self.bucket, key),
        )
        logger.info("Artifact stored: %s/%s (%d bytes)", stored.bucket, stored.key, artifact.size)
        return stored


def build_storage(settings, *, http_client: httpx.AsyncClient | None = None) -> ObjectStorage:
    """Pick the storage backend named by ``STORAGE_BACKEND``."""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "local":
        return LocalStorage(settings.MEDIA_VOLUME, settings.PUBLIC_BASE_URL)
    if backend == "supabase":
        return SupabaseStorage(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            http_client=http_client,
            timeout=settings.DOWNLOAD_TIMEOUT,
        )
    raise StorageError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")
