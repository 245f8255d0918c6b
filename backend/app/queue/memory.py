"""In-process asyncio implementation of JobQueue."""

import asyncio
from collections import OrderedDict
from datetime import datetime, timedelta, timezone

from backend.app.models.jobs import Job, JobState, StageJob
from backend.app.queue.jobs import JobOptions, new_job


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryJobQueue:
    """Single-process queue; jobs do not survive a restart."""

    def __init__(self, name: str, options: JobOptions | None = None) -> None:
        self.name = name
        self.options = options or JobOptions()
        self._ready: asyncio.Queue[Job] = asyncio.Queue()
        self._timers: set[asyncio.TimerHandle] = set()
        self._completed: OrderedDict[str, Job] = OrderedDict()
        self._dead: OrderedDict[str, Job] = OrderedDict()

    async def enqueue(self, payload: StageJob) -> Job:
        """Add a job in waiting state."""
        job = new_job(self.name, payload, self.options)
        self._ready.put_nowait(job)
        return job

    async def reserve(self, timeout: float) -> Job | None:
        """Take the next ready job."""
        try:
            job = await asyncio.wait_for(self._ready.get(), timeout=timeout)
        except TimeoutError:
            return None

        return job.model_copy(
            update={"state": JobState.active, "attempts_made": job.attempts_made + 1}
        )

    async def complete(self, job: Job) -> None:
        """Record completion and apply the retention policy."""
        self._completed[job.id] = job.model_copy(
            update={"state": JobState.completed, "finished_at": _now()}
        )
        cutoff = _now() - timedelta(seconds=self.options.completed_retention_seconds)
        while self._completed:
            oldest = next(iter(self._completed.values()))
            if (
                len(self._completed) > self.options.completed_retention_count
                or (oldest.finished_at is not None and oldest.finished_at < cutoff)
            ):
                self._completed.popitem(last=False)
            else:
                break

    async def retry_later(self, job: Job, delay: float, reason: str) -> None:
        """Re-queue after ``delay`` seconds."""
        delayed = job.model_copy(update={"state": JobState.delayed, "failed_reason": reason})
        loop = asyncio.get_running_loop()

        def _release() -> None:
            self._timers.discard(handle)
            self._ready.put_nowait(delayed.model_copy(update={"state": JobState.waiting}))

        handle = loop.call_later(delay, _release)
        self._timers.add(handle)

    async def fail(self, job: Job, reason: str) -> None:
        """Dead-letter the job."""
        self._dead[job.id] = job.model_copy(
            update={"state": JobState.dead, "failed_reason": reason, "finished_at": _now()}
        )
        self._prune_dead()

    async def extend_lease(self, job: Job) -> None:
        """No-op: jobs live and die with this process."""
        return None

    async def dead_jobs(self) -> list[Job]:
        """List retained dead jobs."""
        self._prune_dead()
        return list(self._dead.values())

    def _prune_dead(self) -> None:
        cutoff = _now() - timedelta(seconds=self.options.dead_retention_seconds)
        expired = [
            job_id
            for job_id, job in self._dead.items()
            if job.finished_at is not None and job.finished_at < cutoff
        ]
        for job_id in expired:
            del self._dead[job_id]

    async def completed_jobs(self) -> list[Job]:
        return list(self._completed.values())

    async def close(self) -> None:
        """Cancel pending retry timers."""
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
