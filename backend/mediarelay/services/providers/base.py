"""Common shape of a long-running job provider.

A provider knows how to validate a request for its API, where to submit it,
how to read back the job id, where to poll, and how to decode its own status
vocabulary into a ``StatusReport``. It performs no orchestration itself; the
submitter, poll loop and fetcher drive it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from mediarelay.errors import PollError, SubmissionError, UpstreamRejectedError
from mediarelay.models import (
    Artifact,
    GenerationRequest,
    JobHandle,
    ProviderPayload,
    StatusReport,
)
from mediarelay.services.credentials import Credential, CredentialProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitRequest:
    """Everything the submitter needs for the creation request."""

    url: str
    method: str = "POST"
    params: dict[str, Any] | None = None
    json: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    files: dict[str, Any] | None = None


class JobProvider(ABC):
    name: str = "unknown"
    result_key: str = "video_url"
    media_type: str = "video/mp4"
    extension: str = ".mp4"
    # whether the artifact URL needs the original credential to download
    artifact_requires_auth: bool = False

    def __init__(
        self,
        *,
        base_url: str,
        bucket: str,
        poll_interval: float,
        max_wait: float,
        refresh_margin: float = 300.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.refresh_margin = refresh_margin

    # --- credentials ---

    @abstractmethod
    def credentials_from(
        self, secrets: dict[str, Any], *, clock: Callable[[], float] | None = None
    ) -> CredentialProvider:
        """Build the credential provider from caller-supplied secrets."""
        ...

    @abstractmethod
    def auth_headers(self, credential: Credential) -> dict[str, str]:
        ...

    # --- request shaping ---

    @abstractmethod
    def normalize(self, request: GenerationRequest) -> ProviderPayload:
        ...

    async def prepare(
        self,
        payload: ProviderPayload,
        client: httpx.AsyncClient,
        credential: Credential,
    ) -> ProviderPayload:
        """Resolve lookups the payload still needs. Default: nothing to do."""
        return payload

    # --- submission ---

    @abstractmethod
    def submit_request(self, payload: ProviderPayload) -> SubmitRequest:
        ...

    @abstractmethod
    def parse_acceptance(self, data: Any) -> str | None:
        """Extract the job id from the creation response, or None."""
        ...

    def rejection_for(self, status_code: int, body: str) -> UpstreamRejectedError | None:
        """Provider-specific rejection for a creation response, if any.

        Checked before the generic non-2xx handling, so a provider can turn
        an otherwise successful status into a rejection.
        """
        return None

    def immediate_result(
        self, payload: ProviderPayload, data: Any
    ) -> tuple[str, StatusReport] | None:
        """Job id and final report when the creation response already holds the result."""
        return None

    def route_for(self, payload: ProviderPayload) -> str:
        return ""

    # --- polling ---

    @abstractmethod
    def status_url(self, handle: JobHandle) -> str:
        ...

    @abstractmethod
    def decode_status(self, data: Any) -> StatusReport:
        """Map a raw status body onto the canonical vocabulary.

        Raises PollError when the body does not have the expected shape.
        """
        ...

    # --- artifact ---

    def resolve_locator(self, report: StatusReport, handle: JobHandle) -> str | None:
        """Final artifact URL for a succeeded job."""
        return report.locator

    def inline_artifact(
        self, report: StatusReport, payload: ProviderPayload
    ) -> Artifact | None:
        """Artifact carried in the status body itself; None means download it."""
        return None

    def media_type_for(self, payload: ProviderPayload) -> str:
        return self.media_type

    def extension_for(self, payload: ProviderPayload) -> str:
        return self.extension

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} base={self.base_url}>"


def expect_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise PollError(f"{what}: expected a JSON object, got {type(data).__name__}")
    return data


async def fetch_reference(
    client: httpx.AsyncClient, url: str, field: str
) -> tuple[bytes, str]:
    """Download caller-supplied reference media before submission."""
    try:
        resp = await client.get(url, follow_redirects=True)
    except httpx.HTTPError as e:
        raise SubmissionError(f"Could not fetch {field}: {e}", status_code=400) from e
    if resp.status_code >= 400:
        raise SubmissionError(
            f"Could not fetch {field} (HTTP {resp.status_code})", status_code=400
        )
    content_type = resp.headers.get("content-type", "image/jpeg").split(";")[0].strip()
    logger.debug("Fetched %s: %d bytes (%s)", field, len(resp.content), content_type)
    return resp.content, content_type
