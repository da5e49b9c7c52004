"""Error taxonomy for job orchestration.

Every stage raises its own subclass of ``OrchestrationError`` so the HTTP
layer can map failures to a status code without inspecting messages:

  ValidationError           400  bad/missing/incompatible input, no network
  CredentialError           400  malformed secret, signing failure
  SubmissionError           502  transport failure while submitting
    UpstreamRejectedError   *    provider answered non-2xx (its own code)
    MalformedAcceptanceError 500 2xx without a job identifier
  PollError                 502  a status query failed or was undecodable
  JobFailedError            500  provider reported terminal failure
  JobTimeoutError           504  deadline passed with no terminal state
  DownloadError             502  artifact fetch failed
    MissingLocatorError     500  succeeded, but no artifact pointer
  StorageError              500  materialization failed
"""

from __future__ import annotations

from typing import Any


class OrchestrationError(Exception):
    """Base class for all pipeline failures."""

    stage: str = "orchestration"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        job_id: str | None = None,
        details: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.job_id = job_id
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Structured error body for the HTTP layer."""
        body: dict[str, Any] = {"error": self.message, "stage": self.stage}
        if self.job_id:
            body["job_id"] = self.job_id
        if self.details is not None:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        if self.job_id:
            return f"[{self.stage}] {self.message} (job_id={self.job_id})"
        return f"[{self.stage}] {self.message}"


class ValidationError(OrchestrationError):
    stage = "validate"
    status_code = 400


class CredentialError(OrchestrationError):
    stage = "credential"
    status_code = 400


class SubmissionError(OrchestrationError):
    stage = "submit"
    status_code = 502


class UpstreamRejectedError(SubmissionError):
    """Provider refused the submission; carries its status code and body."""


class MalformedAcceptanceError(SubmissionError):
    """Provider accepted the submission but the response had no job id."""

    status_code = 500


class PollError(OrchestrationError):
    stage = "poll"
    status_code = 502


class JobFailedError(OrchestrationError):
    stage = "poll"
    status_code = 500

    def __init__(self, message: str, *, reason: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.reason:
            body["reason"] = self.reason
        return body


class JobTimeoutError(OrchestrationError):
    stage = "poll"
    status_code = 504


class DownloadError(OrchestrationError):
    stage = "fetch"
    status_code = 502


class MissingLocatorError(DownloadError):
    """Job reported success without a pointer to its artifact."""

    status_code = 500


class StorageError(OrchestrationError):
    stage = "store"
    status_code = 500
