"""Job domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from monlur.models.preset import Preset


class JobStatus(str, Enum):
    """Status of a job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.SUCCEEDED, JobStatus.FAILED},
    JobStatus.SUCCEEDED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class TransformResult:
    """Obfuscated code plus size and timing metrics."""

    code: str
    processing_time_ms: int = 0
    original_size: int = 0
    obfuscated_size: int = 0


@dataclass
class JobError:
    """Failure kind and diagnostic text of a failed job."""

    kind: str
    message: str


@dataclass
class Job:
    """One obfuscation request."""

    source: str
    preset: Preset = Preset.MEDIUM
    id: str = field(default_factory=lambda: uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    result: TransformResult | None = None
    error: JobError | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    def _transition(self, status: JobStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"Job {self.id}: invalid transition {self.status.value} -> {status.value}"
            )
        self.status = status
        if status.is_terminal:
            self.completed_at = datetime.now(timezone.utc)

    def start(self) -> None:
        self._transition(JobStatus.RUNNING)

    def succeed(self, result: TransformResult) -> None:
        self._transition(JobStatus.SUCCEEDED)
        self.result = result

    def fail(self, kind: str, message: str) -> None:
        self._transition(JobStatus.FAILED)
        self.error = JobError(kind=kind, message=message)
