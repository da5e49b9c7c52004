"""Core data types shared by every orchestration stage."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class JobStatus(str, enum.Enum):
    """Canonical job status. Declaration order is the forward direction."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        # succeeded and failed are both terminal and share the last rank
        return {"queued": 0, "running": 1, "succeeded": 2, "failed": 2}[self.value]

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


@dataclass(frozen=True)
class GenerationRequest:
    """Provider-agnostic description of a job request."""

    prompt: str = ""
    reference_url: str | None = None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderPayload:
    """A validated submission, shaped for one provider.

    ``body`` is what gets sent; ``echo`` holds the request fields returned to
    the caller alongside the result. ``mode`` distinguishes submission variants
    (e.g. text2video vs image2video).
    """

    provider: str
    mode: str
    body: dict[str, Any]
    echo: dict[str, Any] = field(default_factory=dict)
    reference_url: str | None = None
    attachments: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class JobHandle:
    job_id: str
    provider: str
    submitted_at: float
    route: str = ""
    # set when the provider answered the submission with the finished result
    immediate: StatusReport | None = field(default=None, repr=False)


@dataclass(frozen=True)
class StatusReport:
    """One decoded status response."""

    status: JobStatus
    progress: float | None = None
    locator: str | None = None
    reason: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Artifact:
    data: bytes
    media_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StorageObject:
    bucket: str
    key: str
    public_url: str


@dataclass
class OrchestrationResult:
    """Outcome of a successful run, ready for the HTTP layer."""

    handle: JobHandle
    stored: StorageObject
    echo: dict[str, Any] = field(default_factory=dict)
    result_key: str = "result_url"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": True, "job_id": self.handle.job_id}
        body.update(self.echo)
        body["result_url"] = self.stored.public_url
        if self.result_key != "result_url":
            body[self.result_key] = self.stored.public_url
        return body
