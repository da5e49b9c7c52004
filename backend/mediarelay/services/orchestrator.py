"""Long-running job orchestration.

Wires the stages for one provider run:

    normalize → credentials.obtain → prepare → submit → poll → fetch → store

A provider that answers the submission with the finished result skips the
poll, and one whose status body carries the artifact skips the fetch.

Every stage either returns its product or raises its own ``OrchestrationError``
subclass; the first failure ends the run. Nothing is retried and nothing is
kept between runs.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import httpx

from mediarelay.errors import (
    DownloadError,
    JobFailedError,
    JobTimeoutError,
    OrchestrationError,
    PollError,
    StorageError,
    SubmissionError,
)
from mediarelay.models import GenerationRequest, OrchestrationResult
from mediarelay.services.fetcher import ResultFetcher
from mediarelay.services.poller import PollLoop, PollOutcome, PollState, status_query
from mediarelay.services.providers.base import JobProvider
from mediarelay.services.scheduler import AsyncioScheduler, Scheduler
from mediarelay.services.storage import Materializer, ObjectStorage
from mediarelay.services.submitter import JobSubmitter

logger = logging.getLogger(__name__)


@contextmanager
def _stage(error_cls: type[OrchestrationError], job_id: str | None = None) -> Iterator[None]:
    """Attach the job id to stage errors and wrap anything unexpected."""
    try:
        yield
    except OrchestrationError as e:
        if job_id and not e.job_id:
            e.job_id = job_id
        raise
    except Exception as e:
        raise error_cls(f"{type(e).__name__}: {e}", job_id=job_id) from e


class JobOrchestrator:
    """Runs one provider's job from request to stored artifact."""

    def __init__(
        self,
        provider: JobProvider,
        storage: ObjectStorage,
        *,
        client: httpx.AsyncClient | None = None,
        scheduler: Scheduler | None = None,
        http_timeout: float = 60.0,
        download_timeout: float = 300.0,
    ) -> None:
        self.provider = provider
        self.storage = storage
        self.client = client
        self.scheduler = scheduler or AsyncioScheduler()
        self.http_timeout = http_timeout
        self.download_timeout = download_timeout

    async def run(
        self, request: GenerationRequest, secrets: dict[str, Any]
    ) -> OrchestrationResult:
        provider = self.provider

        # validation and credentials never touch the network
        payload = provider.normalize(request)
        credentials = provider.credentials_from(secrets, clock=self.scheduler.now)
        credential = credentials.obtain()

        client = self.client or httpx.AsyncClient(timeout=self.http_timeout)
        own_client = self.client is None
        try:
            with _stage(SubmissionError):
                payload = await provider.prepare(payload, client, credential)
                handle = await JobSubmitter(provider, client, self.scheduler).submit(
                    payload, credential
                )

            if handle.immediate is not None:
                report = handle.immediate
                outcome = PollOutcome(PollState(report.status.value), report, 0.0, 0, credential)
            else:
                loop = PollLoop(
                    interval=provider.poll_interval,
                    max_wait=provider.max_wait,
                    scheduler=self.scheduler,
                    credentials=credentials,
                    refresh_margin=provider.refresh_margin,
                )
                with _stage(PollError, handle.job_id):
                    outcome = await loop.run(handle, status_query(provider, client), credential)

            if outcome.state is PollState.FAILED:
                reason = outcome.report.reason if outcome.report else None
                raise JobFailedError(
                    f"{provider.name} job failed: {reason or 'unknown error'}",
                    reason=reason,
                    job_id=handle.job_id,
                )
            if outcome.state is PollState.TIMED_OUT:
                raise JobTimeoutError(
                    f"{provider.name} job did not finish within {provider.max_wait:.0f}s",
                    job_id=handle.job_id,
                    details={"polls": outcome.polls, "elapsed": round(outcome.elapsed, 1)},
                )

            report = outcome.report
            with _stage(DownloadError, handle.job_id):
                artifact = provider.inline_artifact(report, payload)
                if artifact is None:
                    locator = provider.resolve_locator(report, handle)
                    artifact = await ResultFetcher(
                        provider, client, timeout=self.download_timeout
                    ).fetch(
                        locator,
                        outcome.credential,
                        media_type=provider.media_type_for(payload),
                        job_id=handle.job_id,
                    )
        finally:
            if own_client:
                await client.aclose()

        with _stage(StorageError, handle.job_id):
            stored = await Materializer(
                self.storage, provider.bucket, provider.extension_for(payload)
            ).store(artifact, handle.job_id)

        echo = dict(payload.echo)
        echo.update({k: v for k, v in report.extras.items() if v is not None})
        logger.info(
            "%s job %s complete: %s (%.0fs, %d polls)",
            provider.name, handle.job_id, stored.public_url, outcome.elapsed, outcome.polls,
        )
        return OrchestrationResult(
            handle=handle, stored=stored, echo=echo, result_key=provider.result_key
        )
