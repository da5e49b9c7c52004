"""Generation endpoints: one POST per provider, each a full blocking run.

The call returns only after the job has finished and its artifact is stored;
failures come back as the structured error body from ``main``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from mediarelay.api.deps import JobContext, get_job_context
from mediarelay.schemas.requests import (
    AssemblyAIRequest,
    HeyGenRequest,
    JobRequestBody,
    KlingRequest,
    SoraRequest,
    SupadataRequest,
    VeoRequest,
)
from mediarelay.services.orchestrator import JobOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


async def _run(provider_name: str, body: JobRequestBody, ctx: JobContext) -> dict[str, Any]:
    provider = ctx.providers[provider_name]
    orchestrator = JobOrchestrator(
        provider,
        ctx.storage,
        client=ctx.client,
        scheduler=ctx.scheduler,
        http_timeout=ctx.settings.HTTP_TIMEOUT,
        download_timeout=ctx.settings.DOWNLOAD_TIMEOUT,
    )
    logger.info("Starting %s job", provider_name)
    result = await orchestrator.run(body.to_generation_request(), body.secrets())
    return result.to_dict()


@router.post("/kling")
async def generate_kling(req: KlingRequest, ctx: JobContext = Depends(get_job_context)):
    """Kling text-to-video or image-to-video."""
    return await _run("kling", req, ctx)


@router.post("/sora")
async def generate_sora(req: SoraRequest, ctx: JobContext = Depends(get_job_context)):
    """OpenAI Sora video, optionally from a reference image."""
    return await _run("sora", req, ctx)


@router.post("/veo")
async def generate_veo(req: VeoRequest, ctx: JobContext = Depends(get_job_context)):
    """Google Veo video through the Gemini API."""
    return await _run("veo", req, ctx)


@router.post("/heygen")
async def generate_heygen(req: HeyGenRequest, ctx: JobContext = Depends(get_job_context)):
    """HeyGen talking-avatar video from a script."""
    return await _run("heygen", req, ctx)


@router.post("/transcripts/assemblyai")
async def transcribe_assemblyai(
    req: AssemblyAIRequest, ctx: JobContext = Depends(get_job_context)
):
    """AssemblyAI transcript, stored as SRT or VTT subtitles."""
    return await _run("assemblyai", req, ctx)


@router.post("/transcripts/supadata")
async def transcribe_supadata(
    req: SupadataRequest, ctx: JobContext = Depends(get_job_context)
):
    """Caption transcript of a YouTube, TikTok, Instagram, Facebook or X video."""
    return await _run("supadata", req, ctx)
