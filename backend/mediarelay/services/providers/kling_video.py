"""Kling video generation provider.

Supports:
- kling-v1, kling-v1-5, kling-v1-6, kling-v2-1 (STD/PRO), kling-v2-1-master (PRO)
- Text-to-video (optional camera control on kling-v1-6)
- Image-to-video (first frame + optional last frame)

Auth is a self-signed HS256 JWT (iss=access key, 30 min lifetime), so long
polls refresh the token on the way.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from mediarelay.errors import PollError, UpstreamRejectedError, ValidationError
from mediarelay.models import GenerationRequest, JobHandle, JobStatus, ProviderPayload, StatusReport
from mediarelay.services.credentials import Credential, CredentialProvider, SignedCredentialProvider
from mediarelay.services.providers.base import JobProvider, SubmitRequest, expect_mapping
from mediarelay.services.validation import (
    choice,
    number,
    optional_text,
    optional_url,
    require_text,
)

logger = logging.getLogger(__name__)

MODELS = ("kling-v1", "kling-v1-5", "kling-v1-6", "kling-v2-1", "kling-v2-1-master")
MODES = ("std", "pro")
DURATIONS = (5, 10)
ASPECT_RATIOS = ("16:9", "9:16", "1:1")
CAMERA_TYPES = ("simple", "down_back", "forward_up", "right_turn_forward", "left_turn_forward")
CAMERA_AXES = ("horizontal", "vertical", "pan", "tilt", "roll", "zoom")

PRO_ONLY_MODELS = ("kling-v2-1-master",)
CAMERA_MODELS = ("kling-v1-6",)
MAX_PROMPT_LENGTH = 2500

TEXT2VIDEO = "text2video"
IMAGE2VIDEO = "image2video"

_STATUS_MAP = {
    "submitted": JobStatus.QUEUED,
    "processing": JobStatus.RUNNING,
    "succeed": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
}


class KlingVideoProvider(JobProvider):
    name = "kling"

    def __init__(self, *, ttl_seconds: int = 1800, skew_seconds: int = 5, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.ttl_seconds = ttl_seconds
        self.skew_seconds = skew_seconds

    def credentials_from(
        self, secrets: dict[str, Any], *, clock: Callable[[], float] | None = None
    ) -> CredentialProvider:
        return SignedCredentialProvider(
            secrets.get("access_key"),
            secrets.get("secret_key"),
            ttl_seconds=self.ttl_seconds,
            skew_seconds=self.skew_seconds,
            clock=clock,
        )

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        return {"Authorization": f"Bearer {credential.token}"}

    def normalize(self, request: GenerationRequest) -> ProviderPayload:
        opts = request.options

        # Required fields
        prompt = require_text(request.prompt, "prompt", max_length=MAX_PROMPT_LENGTH)

        # Per-field domains
        model_name = choice(opts, "model_name", MODELS, "kling-v1-6")
        default_mode = "pro" if model_name in PRO_ONLY_MODELS else "std"
        mode = choice(opts, "mode", MODES, default_mode)
        duration = choice(opts, "duration", DURATIONS, 5, coerce=int)
        aspect_ratio = choice(opts, "aspect_ratio", ASPECT_RATIOS, "16:9")
        cfg_scale = number(opts, "cfg_scale", 0, 1, 0.5)
        negative_prompt = optional_text(opts, "negative_prompt")
        image_url = optional_url(request.reference_url, "image_url")
        image_tail_url = optional_url(opts.get("image_tail_url"), "image_tail_url")
        camera_type = choice(opts, "camera_type", CAMERA_TYPES, None)
        camera_config = {
            axis: number(opts, f"camera_{axis}", -10, 10, 0) for axis in CAMERA_AXES
        }

        # Cross-field constraints
        if model_name in PRO_ONLY_MODELS and mode != "pro":
            raise ValidationError(f"{model_name} only supports mode: pro")
        if image_tail_url and not image_url:
            raise ValidationError("image_tail_url requires image_url")
        if camera_type and image_url:
            raise ValidationError("camera control is only available for text-to-video")
        if camera_type and model_name not in CAMERA_MODELS:
            raise ValidationError(
                f"camera control is only supported by: {', '.join(CAMERA_MODELS)}"
            )
        if not camera_type and any(f"camera_{axis}" in opts for axis in CAMERA_AXES):
            raise ValidationError("camera_* values require camera_type")

        body: dict[str, Any] = {
            "model_name": model_name,
            "prompt": prompt,
            "mode": mode,
            "duration": str(duration),
            "aspect_ratio": aspect_ratio,
            "cfg_scale": cfg_scale,
        }
        if negative_prompt:
            body["negative_prompt"] = negative_prompt

        if image_url:
            body["image"] = image_url
            if image_tail_url:
                body["image_tail"] = image_tail_url
        elif camera_type:
            body["camera_control"] = {"type": camera_type, "config": camera_config}

        gen_mode = IMAGE2VIDEO if image_url else TEXT2VIDEO
        return ProviderPayload(
            provider=self.name,
            mode=gen_mode,
            body=body,
            echo={
                "mode": "image-to-video" if image_url else "text-to-video",
                "model": model_name,
                "prompt": prompt,
            },
            reference_url=image_url,
        )

    def submit_request(self, payload: ProviderPayload) -> SubmitRequest:
        return SubmitRequest(url=f"{self.base_url}/v1/videos/{payload.mode}", json=payload.body)

    def parse_acceptance(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        if data.get("code") != 0:
            raise UpstreamRejectedError(
                f"Kling API error: {data.get('message', 'unknown error')}",
                details=data,
            )
        return (data.get("data") or {}).get("task_id")

    def route_for(self, payload: ProviderPayload) -> str:
        return payload.mode

    def status_url(self, handle: JobHandle) -> str:
        return f"{self.base_url}/v1/videos/{handle.route or TEXT2VIDEO}/{handle.job_id}"

    def decode_status(self, data: Any) -> StatusReport:
        data = expect_mapping(data, "Kling status")
        if data.get("code") != 0:
            raise PollError(f"Kling poll error: {data.get('message', 'unknown error')}")

        task = data.get("data") or {}
        raw_status = task.get("task_status")
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            raise PollError(f"Kling unknown status: {raw_status}")

        if status is JobStatus.FAILED:
            return StatusReport(status, reason=task.get("task_status_msg") or "Unknown error")

        if status is JobStatus.SUCCEEDED:
            videos = (task.get("task_result") or {}).get("videos") or []
            first = videos[0] if videos else {}
            return StatusReport(
                status,
                locator=first.get("url"),
                extras={
                    "cover_image_url": first.get("cover_image_url", ""),
                    "duration": first.get("duration", "5"),
                },
            )

        return StatusReport(status)
