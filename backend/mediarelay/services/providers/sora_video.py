"""Sora video generation provider (OpenAI Videos API).

Supports: sora-2, sora-2-pro. An optional reference image is downloaded
first and attached as ``input_reference``, which switches the submission to
multipart. The finished MP4 is served from ``/v1/videos/{id}/content`` and
needs the API key.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable

import httpx

from mediarelay.errors import PollError, ValidationError
from mediarelay.models import GenerationRequest, JobHandle, JobStatus, ProviderPayload, StatusReport
from mediarelay.services.credentials import Credential, CredentialProvider, StaticCredentialProvider
from mediarelay.services.providers.base import (
    JobProvider,
    SubmitRequest,
    expect_mapping,
    fetch_reference,
)
from mediarelay.services.validation import choice, number, optional_url, require_text

logger = logging.getLogger(__name__)

MODELS = ("sora-2", "sora-2-pro")
SIZES = ("1280x720", "720x1280", "1792x1024", "1024x1792")
PRO_ONLY_SIZES = ("1792x1024", "1024x1792")

_STATUS_MAP = {
    "queued": JobStatus.QUEUED,
    "in_progress": JobStatus.RUNNING,
    "completed": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
}


class SoraVideoProvider(JobProvider):
    name = "sora"
    artifact_requires_auth = True

    def credentials_from(
        self, secrets: dict[str, Any], *, clock: Callable[[], float] | None = None
    ) -> CredentialProvider:
        return StaticCredentialProvider(secrets.get("openai_api_key"), name="openai_api_key")

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        return {"Authorization": f"Bearer {credential.token}"}

    def normalize(self, request: GenerationRequest) -> ProviderPayload:
        opts = request.options
        prompt = require_text(request.prompt, "prompt")

        model = choice(opts, "model", MODELS, "sora-2")
        size = choice(opts, "size", SIZES, "1280x720")
        seconds = number(opts, "seconds", 5, 20, 5, integer=True)
        reference_url = optional_url(request.reference_url, "input_reference_url")

        if size in PRO_ONLY_SIZES and model != "sora-2-pro":
            raise ValidationError(f"size {size} requires model sora-2-pro")

        return ProviderPayload(
            provider=self.name,
            mode="image-to-video" if reference_url else "text-to-video",
            body={
                "model": model,
                "prompt": prompt,
                "size": size,
                "seconds": str(seconds),
            },
            echo={"model": model, "size": size, "seconds": str(seconds)},
            reference_url=reference_url,
        )

    async def prepare(
        self,
        payload: ProviderPayload,
        client: httpx.AsyncClient,
        credential: Credential,
    ) -> ProviderPayload:
        if not payload.reference_url:
            return payload
        data, content_type = await fetch_reference(
            client, payload.reference_url, "input_reference_url"
        )
        return replace(
            payload,
            attachments={"input_reference": ("reference.jpg", data, content_type)},
        )

    def submit_request(self, payload: ProviderPayload) -> SubmitRequest:
        url = f"{self.base_url}/v1/videos"
        if payload.attachments:
            return SubmitRequest(url=url, data=payload.body, files=dict(payload.attachments))
        return SubmitRequest(url=url, json=payload.body)

    def parse_acceptance(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        return data.get("id")

    def status_url(self, handle: JobHandle) -> str:
        return f"{self.base_url}/v1/videos/{handle.job_id}"

    def decode_status(self, data: Any) -> StatusReport:
        data = expect_mapping(data, "Sora status")
        raw_status = data.get("status")
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            raise PollError(f"Sora unknown status: {raw_status}")

        progress = data.get("progress")
        if status is JobStatus.FAILED:
            error = data.get("error") or {}
            reason = error.get("message") if isinstance(error, dict) else str(error)
            return StatusReport(
                status,
                progress=progress,
                reason=reason or "Sora returned a failure status.",
            )

        if status is JobStatus.SUCCEEDED:
            job_id = data.get("id")
            return StatusReport(
                status,
                progress=progress,
                locator=(
                    f"{self.base_url}/v1/videos/{job_id}/content?variant=video"
                    if job_id else None
                ),
                extras={
                    "model": data.get("model"),
                    "size": data.get("size"),
                    "seconds": data.get("seconds"),
                },
            )

        return StatusReport(status, progress=progress)
