"""
Data models for background job processing.

Defines the job status and kind enums, the Job dataclass, and the value
objects returned by status queries.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from mediavault.core.exceptions import InvalidJobTransitionError

NOT_FOUND = "not-found"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class JobStatus(Enum):
    """Job execution status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class JobKind(Enum):
    """Types of post-upload work. Each kind is bound to exactly one handler."""

    METADATA_AND_THUMBNAIL = "metadata-and-thumbnail"
    AI_ANALYSIS = "ai-analysis"


TERMINAL_STATUSES = frozenset([JobStatus.COMPLETE, JobStatus.FAILED])


@dataclass
class Job:
    """
    Represents one unit of deferred work for a single image.

    Attributes:
        id: Unique job identifier.
        kind: Which handler runs the job.
        resource_id: Image id the job operates on.
        status: Current job status.
        created_at: When the job was enqueued.
        started_at: When the job was claimed for processing.
        processed_at: When the job left processing.
        error: Failure message, only set when status is FAILED.
    """

    id: str
    kind: JobKind
    resource_id: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _require(self, expected: JobStatus, target: JobStatus) -> None:
        if self.status is not expected:
            raise InvalidJobTransitionError(
                f"Job {self.id} cannot move from {self.status.value} to {target.value}"
            )

    def mark_processing(self, now: Optional[datetime] = None) -> None:
        """pending -> processing."""
        self._require(JobStatus.PENDING, JobStatus.PROCESSING)
        self.status = JobStatus.PROCESSING
        self.started_at = now or utcnow()

    def mark_complete(self, now: Optional[datetime] = None) -> None:
        """processing -> complete."""
        self._require(JobStatus.PROCESSING, JobStatus.COMPLETE)
        self.status = JobStatus.COMPLETE
        self.processed_at = now or utcnow()

    def mark_failed(self, message: str, now: Optional[datetime] = None) -> None:
        """processing -> failed. An empty message is replaced with a generic one."""
        self._require(JobStatus.PROCESSING, JobStatus.FAILED)
        self.status = JobStatus.FAILED
        self.error = message or "Unknown error"
        self.processed_at = now or utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "resource_id": self.resource_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "processed_at": self.processed_at.isoformat()
            if self.processed_at
            else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class JobLookup:
    """Status of the most relevant job for one resource id."""

    resource_id: str
    status: str
    error: Optional[str] = None
    kind: Optional[JobKind] = None
    job_id: Optional[str] = None

    @classmethod
    def not_found(cls, resource_id: str) -> "JobLookup":
        return cls(resource_id=resource_id, status=NOT_FOUND)

    @classmethod
    def from_job(cls, job: Job) -> "JobLookup":
        return cls(
            resource_id=job.resource_id,
            status=job.status.value,
            error=job.error,
            kind=job.kind,
            job_id=job.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire format used by the batch status endpoint."""
        data: Dict[str, Any] = {"resourceId": self.resource_id, "status": self.status}
        if self.error is not None:
            data["error"] = self.error
        if self.kind is not None:
            data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class QueueCounts:
    """Aggregate counts over every job the store currently tracks."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed

    def to_dict(self) -> Dict[str, int]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
        }
