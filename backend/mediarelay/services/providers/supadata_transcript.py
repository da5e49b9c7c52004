"""Supadata transcript provider for social-platform videos.

Supadata answers a transcript request in one of two ways: short videos come
back immediately (HTTP 200 with ``content``), longer ones are queued as a job
(HTTP 202 with ``jobId``) that is polled until it carries ``content``. Either
way the transcript text is stored as a plain-text file.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Callable
from urllib.parse import urlparse

from mediarelay.errors import PollError, UpstreamRejectedError, ValidationError
from mediarelay.models import (
    Artifact,
    GenerationRequest,
    JobHandle,
    JobStatus,
    ProviderPayload,
    StatusReport,
)
from mediarelay.services.credentials import Credential, CredentialProvider, StaticCredentialProvider
from mediarelay.services.providers.base import JobProvider, SubmitRequest, expect_mapping
from mediarelay.services.validation import optional_text, optional_url

logger = logging.getLogger(__name__)

SOCIAL_HOSTS = (
    "youtube.com",
    "youtu.be",
    "tiktok.com",
    "instagram.com",
    "facebook.com",
    "fb.com",
    "twitter.com",
    "x.com",
)

NOT_FOUND = "Video not found or is private. Make sure the video is publicly accessible."
NO_CAPTIONS = (
    "This video has no captions available. "
    "Use /api/transcripts/assemblyai to transcribe it from the audio instead."
)
EMPTY_TRANSCRIPT = "Transcript came back empty. The video may have no audio or captions."

_STATUS_MAP = {
    "queued": JobStatus.QUEUED,
    "active": JobStatus.RUNNING,
    "processing": JobStatus.RUNNING,
    None: JobStatus.RUNNING,
}

_WS_RE = re.compile(r"\s+")


def is_social_url(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == h or host.endswith("." + h) for h in SOCIAL_HOSTS)


def parse_content(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten Supadata ``content`` into text plus second-based segments."""
    content = data.get("content")
    if isinstance(content, str):
        text = content.strip()
        segments: list[dict[str, Any]] = []
    elif isinstance(content, list):
        segments = []
        for item in content:
            if not isinstance(item, dict):
                raise PollError("Supadata segment is not an object", details=item)
            seg_text = str(item.get("text") or "").strip()
            if not seg_text:
                continue
            segments.append({
                "start": float(item.get("offset") or 0) / 1000,
                "duration": float(item.get("duration") or 0) / 1000,
                "text": seg_text,
            })
        text = _WS_RE.sub(" ", " ".join(s["text"] for s in segments)).strip()
    else:
        raise PollError(f"Supadata content has unexpected type {type(content).__name__}")

    return {
        "text": text,
        "segments": segments,
        "lang": data.get("lang"),
        "available_langs": data.get("availableLangs") or [],
    }


class SupadataTranscriptProvider(JobProvider):
    name = "supadata"
    result_key = "transcript_url"
    media_type = "text/plain; charset=utf-8"
    extension = ".txt"

    def credentials_from(
        self, secrets: dict[str, Any], *, clock: Callable[[], float] | None = None
    ) -> CredentialProvider:
        return StaticCredentialProvider(
            secrets.get("supadata_api_key"), name="supadata_api_key"
        )

    def auth_headers(self, credential: Credential) -> dict[str, str]:
        return {"x-api-key": credential.token}

    def normalize(self, request: GenerationRequest) -> ProviderPayload:
        video_url = optional_url(request.reference_url, "video_url")
        if video_url is None:
            raise ValidationError("video_url is required")
        if not is_social_url(video_url):
            raise ValidationError(
                "video_url must be a YouTube, TikTok, Instagram, Facebook or X link; "
                "use /api/transcripts/assemblyai for direct media files"
            )
        language = optional_text(request.options, "language")

        params = {"url": video_url}
        if language:
            params["lang"] = language

        return ProviderPayload(
            provider=self.name,
            mode="transcript",
            body=params,
            echo={"video_url": video_url, "source": self.name},
            reference_url=video_url,
        )

    def submit_request(self, payload: ProviderPayload) -> SubmitRequest:
        return SubmitRequest(
            url=f"{self.base_url}/v1/transcript",
            method="GET",
            params=payload.body,
        )

    def rejection_for(self, status_code: int, body: str) -> UpstreamRejectedError | None:
        if status_code == 404:
            return UpstreamRejectedError(NOT_FOUND, details=body, status_code=404)
        if status_code == 206:
            return UpstreamRejectedError(NO_CAPTIONS, details=body, status_code=422)
        return None

    def immediate_result(
        self, payload: ProviderPayload, data: Any
    ) -> tuple[str, StatusReport] | None:
        if not isinstance(data, dict) or "content" not in data:
            return None
        # same video and language always map to the same stored object
        digest = hashlib.sha256(
            f"{payload.body['url']}|{payload.body.get('lang', '')}".encode()
        ).hexdigest()[:16]
        return f"sync-{digest}", self.decode_status(data)

    def parse_acceptance(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        return data.get("jobId")

    def status_url(self, handle: JobHandle) -> str:
        return f"{self.base_url}/v1/transcript/{handle.job_id}"

    def decode_status(self, data: Any) -> StatusReport:
        data = expect_mapping(data, "Supadata status")
        raw_status = data.get("status")

        if data.get("content"):
            parsed = parse_content(data)
            if not parsed["text"]:
                return StatusReport(JobStatus.FAILED, reason=EMPTY_TRANSCRIPT)
            return StatusReport(JobStatus.SUCCEEDED, extras=parsed)

        if raw_status == "failed":
            return StatusReport(JobStatus.FAILED, reason=data.get("error") or "Unknown error")
        if raw_status == "completed" or "content" in data:
            return StatusReport(JobStatus.FAILED, reason=EMPTY_TRANSCRIPT)

        status = _STATUS_MAP.get(raw_status)
        if status is None:
            raise PollError(f"Supadata unknown status: {raw_status}")
        return StatusReport(status)

    def inline_artifact(
        self, report: StatusReport, payload: ProviderPayload
    ) -> Artifact | None:
        text = report.extras.get("text")
        if not text:
            return None
        return Artifact(data=text.encode("utf-8"), media_type=self.media_type)
