"""Ingestion job state models.

Jobs move ``pending -> processing -> completed | failed``.  Terminal
states are final; a failed job is never retried automatically, a new
upload creates a new job.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):  # noqa: UP042
    """Lifecycle states of an ingestion job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class IngestionJob(BaseModel):
    """Status record for one document's ingestion run."""

    model_config = ConfigDict(frozen=True)

    id: str
    book_id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    total_chunks: int | None = Field(default=None, ge=0)
    error_message: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    def can_transition_to(self, status: JobStatus) -> bool:
        """Return ``True`` if moving to *status* respects the state machine."""
        return status in _ALLOWED_TRANSITIONS[self.status]

    def advance(
        self,
        *,
        status: JobStatus | None = None,
        progress: int | None = None,
        total_chunks: int | None = None,
        error_message: str | None = None,
    ) -> IngestionJob:
        """Return an updated copy, enforcing the state machine and monotonic progress.

        Raises
        ------
        ValueError
            If *status* is not reachable from the current status.
        """
        update: dict = {"updated_at": datetime.now(tz=timezone.utc)}  # noqa: UP017
        if status is not None and status != self.status:
            if not self.can_transition_to(status):
                raise ValueError(
                    f"Invalid job transition {self.status.value} -> {status.value}"
                )
            update["status"] = status
        if progress is not None:
            update["progress"] = max(self.progress, min(progress, 100))
        if total_chunks is not None:
            update["total_chunks"] = total_chunks
        if error_message is not None:
            update["error_message"] = error_message
        return self.model_copy(update=update)
