"""Deadline-bounded status polling.

State machine:

    Queued ──► Running ──► Succeeded
       │          │
       └──────────┴──────► Failed
    (any non-terminal) ──► TimedOut   (deadline passed)

Each iteration sleeps a fixed interval, refreshes the credential if it is
close to expiry, queries status once and advances the state. States never
move backwards; a provider briefly reporting an earlier status is ignored.
A query that fails at the transport level or returns something undecodable
aborts the run with ``PollError``; only normal queued/running answers lead
to another iteration.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from mediarelay.errors import PollError
from mediarelay.models import JobHandle, JobStatus, StatusReport
from mediarelay.services.credentials import Credential, CredentialProvider
from mediarelay.services.providers.base import JobProvider
from mediarelay.services.scheduler import Scheduler

logger = logging.getLogger(__name__)

StatusQuery = Callable[[JobHandle, Credential], Awaitable[StatusReport]]


class PollState(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (PollState.SUCCEEDED, PollState.FAILED, PollState.TIMED_OUT)


@dataclass
class PollOutcome:
    state: PollState
    report: StatusReport | None
    elapsed: float
    polls: int
    credential: Credential


class PollLoop:
    """Polls one job until a terminal state or the deadline."""

    def __init__(
        self,
        *,
        interval: float,
        max_wait: float,
        scheduler: Scheduler,
        credentials: CredentialProvider,
        refresh_margin: float = 300.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("poll interval must be positive")
        self.interval = interval
        self.max_wait = max_wait
        self.scheduler = scheduler
        self.credentials = credentials
        self.refresh_margin = refresh_margin

    async def run(
        self,
        handle: JobHandle,
        query: StatusQuery,
        credential: Credential,
    ) -> PollOutcome:
        deadline = handle.submitted_at + self.max_wait
        state = PollState.QUEUED
        current = JobStatus.QUEUED
        report: StatusReport | None = None
        polls = 0

        while self.scheduler.now() < deadline:
            await self.scheduler.sleep(self.interval)

            credential = self.credentials.refresh_if_expiring(credential, self.refresh_margin)
            report = await query(handle, credential)
            polls += 1

            if report.status.rank < current.rank:
                logger.debug(
                    "%s job %s reported %s while %s, ignoring",
                    handle.provider, handle.job_id, report.status.value, current.value,
                )
            else:
                current = report.status
            state = PollState(current.value)

            elapsed = self.scheduler.now() - handle.submitted_at
            logger.info(
                "%s job %s: status=%s elapsed=%.0fs progress=%s",
                handle.provider, handle.job_id, state.value, elapsed,
                "-" if report.progress is None else report.progress,
            )

            if state.is_terminal:
                return PollOutcome(state, report, elapsed, polls, credential)

        elapsed = self.scheduler.now() - handle.submitted_at
        logger.warning(
            "%s job %s timed out after %.0fs (%d polls, last status=%s)",
            handle.provider, handle.job_id, elapsed, polls, state.value,
        )
        return PollOutcome(PollState.TIMED_OUT, report, elapsed, polls, credential)


def status_query(provider: JobProvider, client: httpx.AsyncClient) -> StatusQuery:
    """Build the single-request status query for ``provider``."""

    async def _query(handle: JobHandle, credential: Credential) -> StatusReport:
        url = provider.status_url(handle)
        try:
            resp = await client.get(url, headers=provider.auth_headers(credential))
        except httpx.HTTPError as e:
            raise PollError(f"{provider.name} poll failed: {e}", job_id=handle.job_id) from e

        if resp.status_code >= 400:
            raise PollError(
                f"{provider.name} poll failed ({resp.status_code})",
                job_id=handle.job_id,
                details=resp.text,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise PollError(
                f"{provider.name} poll returned non-JSON body",
                job_id=handle.job_id,
                details=resp.text[:500],
            ) from e

        try:
            return provider.decode_status(data)
        except PollError as e:
            e.job_id = e.job_id or handle.job_id
            raise

    return _query
