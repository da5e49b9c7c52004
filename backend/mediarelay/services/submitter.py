"""Job submission: POST the normalized payload, read back the job id."""

from __future__ import annotations

import logging

import httpx

from mediarelay.errors import MalformedAcceptanceError, SubmissionError, UpstreamRejectedError
from mediarelay.models import JobHandle, ProviderPayload
from mediarelay.services.credentials import Credential
from mediarelay.services.providers.base import JobProvider
from mediarelay.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


class JobSubmitter:
    """Sends one submission. No retries: a failure here is terminal for the run."""

    def __init__(
        self,
        provider: JobProvider,
        client: httpx.AsyncClient,
        scheduler: Scheduler,
    ) -> None:
        self.provider = provider
        self.client = client
        self.scheduler = scheduler

    async def submit(self, payload: ProviderPayload, credential: Credential) -> JobHandle:
        req = self.provider.submit_request(payload)
        headers = self.provider.auth_headers(credential)

        try:
            resp = await self.client.request(
                req.method,
                req.url,
                headers=headers,
                params=req.params,
                json=req.json,
                data=req.data,
                files=req.files,
            )
        except httpx.HTTPError as e:
            raise SubmissionError(
                f"{self.provider.name} submission failed: {e}"
            ) from e

        rejection = self.provider.rejection_for(resp.status_code, resp.text)
        if rejection is not None:
            raise rejection
        if resp.status_code >= 400:
            raise UpstreamRejectedError(
                f"{self.provider.name} job creation failed ({resp.status_code})",
                details=resp.text,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedAcceptanceError(
                f"{self.provider.name} returned a non-JSON acceptance",
                details=resp.text[:500],
            ) from e

        immediate = self.provider.immediate_result(payload, data)
        if immediate is not None:
            job_id, report = immediate
            logger.info("%s answered synchronously: %s", self.provider.name, job_id)
            return JobHandle(
                job_id=job_id,
                provider=self.provider.name,
                submitted_at=self.scheduler.now(),
                route=self.provider.route_for(payload),
                immediate=report,
            )

        job_id = self.provider.parse_acceptance(data)
        if not job_id:
            raise MalformedAcceptanceError(
                f"{self.provider.name} did not return a job id",
                details=data,
            )

        handle = JobHandle(
            job_id=str(job_id),
            provider=self.provider.name,
            submitted_at=self.scheduler.now(),
            route=self.provider.route_for(payload),
        )
        logger.info(
            "%s job created: %s (mode=%s)", self.provider.name, handle.job_id, payload.mode
        )
        return handle
