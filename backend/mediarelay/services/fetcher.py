"""Artifact download for finished jobs."""

from __future__ import annotations

import logging

import httpx

from mediarelay.errors import DownloadError, MissingLocatorError
from mediarelay.models import Artifact
from mediarelay.services.credentials import Credential
from mediarelay.services.providers.base import JobProvider

logger = logging.getLogger(__name__)


class ResultFetcher:
    """Reads the complete artifact body from the locator a succeeded job exposes."""

    def __init__(
        self,
        provider: JobProvider,
        client: httpx.AsyncClient,
        *,
        timeout: float = 300.0,
    ) -> None:
        self.provider = provider
        self.client = client
        self.timeout = timeout

    async def fetch(
        self,
        locator: str | None,
        credential: Credential,
        *,
        media_type: str | None = None,
        job_id: str | None = None,
    ) -> Artifact:
        if not locator:
            raise MissingLocatorError(
                f"{self.provider.name} reported success but returned no artifact URL",
                job_id=job_id,
            )

        headers = (
            self.provider.auth_headers(credential)
            if self.provider.artifact_requires_auth else {}
        )
        try:
            resp = await self.client.get(
                locator, headers=headers, follow_redirects=True, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            raise DownloadError(
                f"Failed to download artifact from {self.provider.name}: {e}",
                job_id=job_id,
            ) from e

        if resp.status_code >= 400:
            raise DownloadError(
                f"Failed to download artifact from {self.provider.name} ({resp.status_code})",
                job_id=job_id,
                details=resp.text[:500],
            )

        declared = resp.headers.get("content-type", "").split(";")[0].strip()
        artifact = Artifact(
            data=resp.content,
            media_type=media_type or declared or "application/octet-stream",
        )
        logger.info(
            "%s artifact downloaded: %d bytes (%s)",
            self.provider.name, artifact.size, artifact.media_type,
        )
        return artifact
