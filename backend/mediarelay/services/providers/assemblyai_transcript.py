"""AssemblyAI transcription provider.

Submits a publicly reachable audio/video URL for transcription and stores the
finished transcript as a subtitle file (SRT or VTT) exported by AssemblyAI.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from mediarelay.errors import PollError, ValidationError
from mediarelay.models import GenerationRequest, JobHandle, JobStatus, ProviderPayload, StatusReport
from mediarelay.services.credentials import Credential, CredentialProvider, StaticCredentialProvider
from mediarelay.services.providers.base import JobProvider, SubmitRequest, expect_mapping
from mediarelay.services.validation import (
    boolean,
    choice,
    number,
    optional_text,
    optional_url,
)

logger = logging.getLogger(__name__)

SPEECH_MODELS = ("universal-2", "best", "nano")
SUBTITLE_FORMATS = {
    "srt": ("application/x-subrip", ".srt"),
    "vtt": ("text/vtt", ".vtt"),
}

_STATUS_MAP = {
    "queued": JobStatus.QUEUED,
    "processing": JobStatus.RUNNING,
    "completed": JobStatus.SUCCEEDED,
    "error": JobStatus.FAILED,
}


class AssemblyAITranscriptProvider(JobProvider):
    name = "assemblyai"
    result_key = "subtitle_url"
    media_type = "application/x-subrip"
    extension = ".srt"
    artifact_requires_auth = True

    def credentials_from(
        self, secrets: dict[str, Any], *, clock: Callable[[], float] | None = None
    ) -> CredentialProvider:
        return StaticCredentialProvider(
            secrets.get("assemblyai_api_key"), name="assemblyai_api_key"
        )

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        return {"authorization": credential.token}

    def normalize(self, request: GenerationRequest) -> ProviderPayload:
        opts = request.options
        audio_url = optional_url(request.reference_url, "audio_url")
        if audio_url is None:
            raise ValidationError("audio_url is required")

        speech_model = choice(opts, "speech_model", SPEECH_MODELS, "universal-2")
        language_detection = boolean(opts, "language_detection", False)
        language_code = optional_text(opts, "language_code")
        punctuate = boolean(opts, "punctuate", True)
        format_text = boolean(opts, "format_text", True)
        subtitle_format = choice(opts, "subtitle_format", tuple(SUBTITLE_FORMATS), "srt")
        chars_per_caption = number(opts, "chars_per_caption", 1, 200, 0, integer=True)

        if language_detection and language_code:
            raise ValidationError("language_code cannot be combined with language_detection")

        body: dict[str, Any] = {
            "audio_url": audio_url,
            "speech_models": [speech_model],
            "punctuate": punctuate,
            "format_text": format_text,
        }
        if language_detection:
            body["language_detection"] = True
        else:
            body["language_code"] = language_code or "en"

        # subtitle export options travel in mode, not in the submitted body
        mode = subtitle_format
        if chars_per_caption:
            mode = f"{subtitle_format}?chars_per_caption={chars_per_caption}"

        return ProviderPayload(
            provider=self.name,
            mode=mode,
            body=body,
            echo={
                "audio_url": audio_url,
                "speech_model": speech_model,
                "language_code": body.get("language_code"),
                "subtitle_format": subtitle_format,
            },
            reference_url=audio_url,
        )

    def submit_request(self, payload: ProviderPayload) -> SubmitRequest:
        return SubmitRequest(url=f"{self.base_url}/v2/transcript", json=payload.body)

    def parse_acceptance(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        return data.get("id")

    def route_for(self, payload: ProviderPayload) -> str:
        return payload.mode

    def status_url(self, handle: JobHandle) -> str:
        return f"{self.base_url}/v2/transcript/{handle.job_id}"

    def resolve_locator(self, report: StatusReport, handle: JobHandle) -> str | None:
        if not report.locator:
            return None
        return f"{report.locator}/{handle.route or 'srt'}"

    def decode_status(self, data: Any) -> StatusReport:
        data = expect_mapping(data, "AssemblyAI status")
        raw_status = data.get("status")
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            raise PollError(f"AssemblyAI unknown status: {raw_status}")

        if status is JobStatus.FAILED:
            return StatusReport(status, reason=data.get("error") or "Unknown error")

        if status is JobStatus.SUCCEEDED:
            job_id = data.get("id")
            return StatusReport(
                status,
                locator=f"{self.base_url}/v2/transcript/{job_id}" if job_id else None,
                extras={
                    "language_code": data.get("language_code"),
                    "audio_duration": data.get("audio_duration"),
                    "text": data.get("text"),
                },
            )

        return StatusReport(status)

    def media_type_for(self, payload: ProviderPayload) -> str:
        return SUBTITLE_FORMATS[payload.mode.split("?")[0]][0]

    def extension_for(self, payload: ProviderPayload) -> str:
        return SUBTITLE_FORMATS[payload.mode.split("?")[0]][1]
