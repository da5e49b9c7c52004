"""HeyGen avatar video provider.

The caller supplies a script; the avatar and voice default to the first
catalog entries (an English voice when one exists), falling back to the
configured ids if the catalog cannot be read.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from typing import Any, Callable

import httpx

from mediarelay.errors import PollError, ValidationError
from mediarelay.models import GenerationRequest, JobHandle, JobStatus, ProviderPayload, StatusReport
from mediarelay.services.credentials import Credential, CredentialProvider, StaticCredentialProvider
from mediarelay.services.discovery import CatalogDefault, fetch_catalog
from mediarelay.services.providers.base import JobProvider, SubmitRequest, expect_mapping
from mediarelay.services.validation import choice, number, optional_text, require_text

logger = logging.getLogger(__name__)

AVATAR_STYLES = ("normal", "circle", "closeUp")
_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

_STATUS_MAP = {
    "pending": JobStatus.QUEUED,
    "waiting": JobStatus.QUEUED,
    "processing": JobStatus.RUNNING,
    "completed": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
}


class HeyGenVideoProvider(JobProvider):
    name = "heygen"

    def __init__(
        self,
        *,
        fallback_avatar_id: str,
        fallback_voice_id: str,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.fallback_avatar_id = fallback_avatar_id
        self.fallback_voice_id = fallback_voice_id

    def credentials_from(
        self, secrets: dict[str, Any], *, clock: Callable[[], float] | None = None
    ) -> CredentialProvider:
        return StaticCredentialProvider(secrets.get("heygen_api_key"), name="heygen_api_key")

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        return {"X-Api-Key": credential.token}

    def normalize(self, request: GenerationRequest) -> ProviderPayload:
        opts = request.options
        script = require_text(request.prompt, "script")

        avatar_style = choice(opts, "avatar_style", AVATAR_STYLES, "normal")
        width = number(opts, "width", 128, 4096, 1280, integer=True)
        height = number(opts, "height", 128, 4096, 720, integer=True)
        background_color = optional_text(opts, "background_color", "#ffffff")
        title = optional_text(opts, "title", "Generated Video")
        speed = number(opts, "speed", 0.5, 2.0, 1.0)
        avatar_id = optional_text(opts, "avatar_id")
        voice_id = optional_text(opts, "voice_id")

        if not _COLOR_RE.match(background_color):
            raise ValidationError("background_color must be a #rrggbb hex color")

        body = {
            "title": title,
            "video_inputs": [
                {
                    "character": {
                        "type": "avatar",
                        "avatar_id": avatar_id,
                        "avatar_style": avatar_style,
                    },
                    "voice": {
                        "type": "text",
                        "input_text": script,
                        "voice_id": voice_id,
                        "speed": speed,
                    },
                    "background": {"type": "color", "value": background_color},
                }
            ],
            "dimension": {"width": width, "height": height},
        }
        return ProviderPayload(
            provider=self.name,
            mode="avatar",
            body=body,
            echo={
                "avatar_id": avatar_id,
                "voice_id": voice_id,
                "dimension": {"width": width, "height": height},
            },
        )

    async def prepare(
        self,
        payload: ProviderPayload,
        client: httpx.AsyncClient,
        credential: Credential,
    ) -> ProviderPayload:
        avatar_id = payload.echo.get("avatar_id")
        voice_id = payload.echo.get("voice_id")
        if avatar_id and voice_id:
            return payload

        headers = self.auth_headers(credential)

        async def _first_avatar() -> str | None:
            avatars = await fetch_catalog(
                client, f"{self.base_url}/v2/avatars", headers, "data", "avatars"
            )
            return avatars[0].get("avatar_id") if avatars else None

        async def _first_voice() -> str | None:
            voices = await fetch_catalog(
                client, f"{self.base_url}/v2/voices", headers, "data", "voices"
            )
            english = next(
                (
                    v for v in voices
                    if v.get("language") == "English"
                    or str(v.get("locale") or "").startswith("en")
                ),
                None,
            )
            pick = english or (voices[0] if voices else {})
            return pick.get("voice_id")

        async def _given(value: str) -> str:
            return value

        avatar_id, voice_id = await asyncio.gather(
            _given(avatar_id) if avatar_id
            else CatalogDefault("avatar", _first_avatar, self.fallback_avatar_id).resolve_default(),
            _given(voice_id) if voice_id
            else CatalogDefault("voice", _first_voice, self.fallback_voice_id).resolve_default(),
        )
        logger.info("HeyGen using avatar_id=%s voice_id=%s", avatar_id, voice_id)

        video_input = payload.body["video_inputs"][0]
        video_input = {
            **video_input,
            "character": {**video_input["character"], "avatar_id": avatar_id},
            "voice": {**video_input["voice"], "voice_id": voice_id},
        }
        return replace(
            payload,
            body={**payload.body, "video_inputs": [video_input]},
            echo={**payload.echo, "avatar_id": avatar_id, "voice_id": voice_id},
        )

    def submit_request(self, payload: ProviderPayload) -> SubmitRequest:
        return SubmitRequest(url=f"{self.base_url}/v2/video/generate", json=payload.body)

    def parse_acceptance(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        return (data.get("data") or {}).get("video_id")

    def status_url(self, handle: JobHandle) -> str:
        return f"{self.base_url}/v1/video_status.get?video_id={handle.job_id}"

    def decode_status(self, data: Any) -> StatusReport:
        data = expect_mapping(data, "HeyGen status")
        job = data.get("data")
        if not isinstance(job, dict):
            raise PollError("HeyGen status response has no data object")

        raw_status = job.get("status")
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            raise PollError(f"HeyGen unknown status: {raw_status}")

        if status is JobStatus.FAILED:
            error = job.get("error")
            if isinstance(error, dict):
                error = error.get("message") or error.get("detail")
            return StatusReport(status, reason=error or "HeyGen returned a failure status.")

        if status is JobStatus.SUCCEEDED:
            return StatusReport(status, locator=job.get("video_url"))

        return StatusReport(status)
