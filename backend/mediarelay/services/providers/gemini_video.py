"""Gemini Veo video generation provider.

Supports Veo 3.1 / 3.0 / 2.0 models through the ``predictLongRunning``
operation API. An optional first-frame image is downloaded and inlined as
base64. The operation name (``models/.../operations/...``) is the job id.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import replace
from typing import Any, Callable

import httpx

from mediarelay.errors import ValidationError
from mediarelay.models import GenerationRequest, JobHandle, JobStatus, ProviderPayload, StatusReport
from mediarelay.services.credentials import Credential, CredentialProvider, StaticCredentialProvider
from mediarelay.services.providers.base import (
    JobProvider,
    SubmitRequest,
    expect_mapping,
    fetch_reference,
)
from mediarelay.services.validation import choice, optional_text, optional_url, require_text

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "veo-3.1-generate-preview"
ASPECT_RATIOS = ("16:9", "9:16")
RESOLUTIONS = ("720p", "1080p", "4k")
DURATIONS = ("4", "6", "8")
PERSON_GENERATION = ("allow_all", "allow_adult", "dont_allow")

# 1080p and 4k only render 8 second clips
FIXED_DURATION_RESOLUTIONS = {"1080p": "8", "4k": "8"}
# image-to-video only permits adult person generation
IMAGE_PERSON_GENERATION = ("allow_adult",)


class GeminiVideoProvider(JobProvider):
    name = "veo"
    artifact_requires_auth = True

    def credentials_from(
        self, secrets: dict[str, Any], *, clock: Callable[[], float] | None = None
    ) -> CredentialProvider:
        return StaticCredentialProvider(secrets.get("gemini_api_key"), name="gemini_api_key")

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        return {"x-goog-api-key": credential.token}

    def normalize(self, request: GenerationRequest) -> ProviderPayload:
        opts = request.options
        prompt = require_text(request.prompt, "prompt")

        model = optional_text(opts, "model", DEFAULT_MODEL)
        aspect_ratio = choice(opts, "aspect_ratio", ASPECT_RATIOS, "16:9")
        resolution = choice(opts, "resolution", RESOLUTIONS, "720p")
        duration = choice(opts, "duration_seconds", DURATIONS, "8", coerce=_duration_str)
        image_url = optional_url(request.reference_url, "image_url")
        default_person = IMAGE_PERSON_GENERATION[0] if image_url else "allow_all"
        person_generation = choice(opts, "person_generation", PERSON_GENERATION, default_person)
        negative_prompt = optional_text(opts, "negative_prompt")

        fixed = FIXED_DURATION_RESOLUTIONS.get(resolution)
        if fixed is not None and duration != fixed:
            raise ValidationError(
                f"{resolution} resolution only supports duration_seconds = '{fixed}'"
            )
        if image_url and person_generation not in IMAGE_PERSON_GENERATION:
            raise ValidationError(
                "image-to-video only supports person_generation: "
                + ", ".join(IMAGE_PERSON_GENERATION)
            )
        if "/" in model or not model.strip():
            raise ValidationError("model must be a bare model name")

        parameters: dict[str, Any] = {
            "aspectRatio": aspect_ratio,
            "resolution": resolution,
            "durationSeconds": duration,
            "personGeneration": person_generation,
            "numberOfVideos": 1,
        }
        if negative_prompt:
            parameters["negativePrompt"] = negative_prompt

        return ProviderPayload(
            provider=self.name,
            mode=model,
            body={"instances": [{"prompt": prompt}], "parameters": parameters},
            echo={
                "model": model,
                "aspect_ratio": aspect_ratio,
                "resolution": resolution,
                "duration_seconds": duration,
            },
            reference_url=image_url,
        )

    async def prepare(
        self,
        payload: ProviderPayload,
        client: httpx.AsyncClient,
        credential: Credential,
    ) -> ProviderPayload:
        if not payload.reference_url:
            return payload
        data, mime_type = await fetch_reference(client, payload.reference_url, "image_url")
        instance = dict(payload.body["instances"][0])
        instance["image"] = {
            "inlineData": {
                "mimeType": mime_type,
                "data": base64.b64encode(data).decode("ascii"),
            }
        }
        return replace(payload, body={**payload.body, "instances": [instance]})

    def submit_request(self, payload: ProviderPayload) -> SubmitRequest:
        return SubmitRequest(
            url=f"{self.base_url}/models/{payload.mode}:predictLongRunning",
            json=payload.body,
        )

    def parse_acceptance(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        return data.get("name")

    def status_url(self, handle: JobHandle) -> str:
        return f"{self.base_url}/{handle.job_id}"

    def decode_status(self, data: Any) -> StatusReport:
        data = expect_mapping(data, "Veo operation")
        if not data.get("done"):
            # operations expose no queued/running distinction
            return StatusReport(JobStatus.RUNNING)

        error = data.get("error")
        if error:
            reason = error.get("message") if isinstance(error, dict) else str(error)
            return StatusReport(JobStatus.FAILED, reason=reason or "Unknown error from Veo")

        samples = (
            ((data.get("response") or {}).get("generateVideoResponse") or {})
            .get("generatedSamples") or []
        )
        video = (samples[0].get("video") or {}) if samples else {}
        return StatusReport(JobStatus.SUCCEEDED, locator=video.get("uri"))


def _duration_str(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)
