"""Long-running job provider implementations.

Each provider module implements the async generation pattern:
  POST create task → poll status → download → save to object storage
"""

from __future__ import annotations

from mediarelay.config import Settings
from mediarelay.services.providers.assemblyai_transcript import AssemblyAITranscriptProvider
from mediarelay.services.providers.base import JobProvider
from mediarelay.services.providers.gemini_video import GeminiVideoProvider
from mediarelay.services.providers.heygen_video import HeyGenVideoProvider
from mediarelay.services.providers.kling_video import KlingVideoProvider
from mediarelay.services.providers.sora_video import SoraVideoProvider
from mediarelay.services.providers.supadata_transcript import SupadataTranscriptProvider


def build_providers(settings: Settings) -> dict[str, JobProvider]:
    """Instantiate every provider from settings, keyed by provider name."""
    margin = float(settings.JWT_REFRESH_MARGIN)
    providers: list[JobProvider] = [
        KlingVideoProvider(
            base_url=settings.KLING_BASE_URL,
            bucket=settings.KLING_BUCKET,
            poll_interval=settings.KLING_POLL_INTERVAL,
            max_wait=settings.KLING_MAX_WAIT,
            refresh_margin=margin,
            ttl_seconds=settings.JWT_TTL_SECONDS,
            skew_seconds=settings.JWT_SKEW_SECONDS,
        ),
        SoraVideoProvider(
            base_url=settings.OPENAI_BASE_URL,
            bucket=settings.SORA_BUCKET,
            poll_interval=settings.SORA_POLL_INTERVAL,
            max_wait=settings.SORA_MAX_WAIT,
        ),
        GeminiVideoProvider(
            base_url=settings.GEMINI_BASE_URL,
            bucket=settings.VEO_BUCKET,
            poll_interval=settings.VEO_POLL_INTERVAL,
            max_wait=settings.VEO_MAX_WAIT,
        ),
        HeyGenVideoProvider(
            base_url=settings.HEYGEN_BASE_URL,
            bucket=settings.HEYGEN_BUCKET,
            poll_interval=settings.HEYGEN_POLL_INTERVAL,
            max_wait=settings.HEYGEN_MAX_WAIT,
            fallback_avatar_id=settings.HEYGEN_FALLBACK_AVATAR_ID,
            fallback_voice_id=settings.HEYGEN_FALLBACK_VOICE_ID,
        ),
        AssemblyAITranscriptProvider(
            base_url=settings.ASSEMBLYAI_BASE_URL,
            bucket=settings.ASSEMBLYAI_BUCKET,
            poll_interval=settings.ASSEMBLYAI_POLL_INTERVAL,
            max_wait=settings.ASSEMBLYAI_MAX_WAIT,
        ),
        SupadataTranscriptProvider(
            base_url=settings.SUPADATA_BASE_URL,
            bucket=settings.SUPADATA_BUCKET,
            poll_interval=settings.SUPADATA_POLL_INTERVAL,
            max_wait=settings.SUPADATA_MAX_WAIT,
        ),
    ]
    return {p.name: p for p in providers}


__all__ = [
    "AssemblyAITranscriptProvider",
    "GeminiVideoProvider",
    "HeyGenVideoProvider",
    "JobProvider",
    "KlingVideoProvider",
    "SoraVideoProvider",
    "SupadataTranscriptProvider",
    "build_providers",
]
