"""Job queue protocol and retry policy."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from backend.app.config import Settings
from backend.app.models.jobs import Job, StageJob


@dataclass(frozen=True)
class JobOptions:
    """Per-queue retry and retention policy."""

    attempts: int = 3
    backoff_seconds: float = 2.0
    lease_seconds: float = 30.0
    completed_retention_seconds: int = 24 * 3600
    completed_retention_count: int = 100
    dead_retention_seconds: int = 7 * 24 * 3600

    @classmethod
    def from_settings(cls, settings: Settings) -> "JobOptions":
        return cls(
            attempts=settings.job_attempts,
            backoff_seconds=settings.job_backoff_seconds,
            lease_seconds=settings.job_lease_seconds,
            completed_retention_seconds=settings.completed_job_retention_seconds,
            completed_retention_count=settings.completed_job_retention_count,
            dead_retention_seconds=settings.dead_job_retention_seconds,
        )


def backoff_delay(attempts_made: int, base_seconds: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ... for attempts 1, 2, 3, ..."""
    return base_seconds * (2 ** max(0, attempts_made - 1))


def new_job(queue: str, payload: StageJob, options: JobOptions) -> Job:
    return Job(
        id=uuid.uuid4().hex,
        queue=queue,
        payload=payload,
        max_attempts=options.attempts,
        created_at=datetime.now(timezone.utc),
    )


class JobQueue(Protocol):
    """A named, durable-or-not FIFO of stage jobs."""

    name: str
    options: JobOptions

    async def enqueue(self, payload: StageJob) -> Job:
        """Add a job in waiting state."""
        ...

    async def reserve(self, timeout: float) -> Job | None:
        """Take the next ready job, marking it active and counting the attempt.

        Returns None if nothing became ready within ``timeout`` seconds.
        """
        ...

    async def complete(self, job: Job) -> None:
        """Mark an active job completed."""
        ...

    async def retry_later(self, job: Job, delay: float, reason: str) -> None:
        """Move an active job to delayed; it becomes ready after ``delay`` seconds."""
        ...

    async def fail(self, job: Job, reason: str) -> None:
        """Dead-letter an active job; retained for inspection only."""
        ...

    async def extend_lease(self, job: Job) -> None:
        """Keep an active job reserved for another ``options.lease_seconds``.

        Active jobs whose lease runs out are treated as stalled and handed out
        again; the stalled attempt stays counted.
        """
        ...

    async def dead_jobs(self) -> list[Job]:
        """List retained dead jobs, oldest first."""
        ...

    async def close(self) -> None:
        """Release connections/timers."""
        ...
