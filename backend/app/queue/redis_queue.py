"""Redis-backed JobQueue shared by API and worker processes."""

import logging
import time
from datetime import datetime, timezone

import redis.asyncio as redis

from backend.app.models.jobs import Job, JobState, StageJob
from backend.app.queue.jobs import JobOptions, new_job

logger = logging.getLogger(__name__)


class RedisJobQueue:
    """Durable queue using lists for ready/active jobs and sorted sets for the rest.

    Keys, all under ``narrator:<queue name>``:
        wait      LIST  ready job ids (FIFO)
        active    LIST  reserved job ids
        leases    ZSET  active job ids scored by lease expiry
        delayed   ZSET  job ids scored by ready-at timestamp
        completed ZSET  job ids scored by finish timestamp
        dead      ZSET  job ids scored by finish timestamp
        job:<id>  STRING job JSON, expiring with its retention window

    A worker that dies mid-job stops renewing its lease; the next ``reserve``
    on any process moves the stalled id back to ``wait``.
    """

    KEY_PREFIX = "narrator"

    def __init__(self, client: redis.Redis, name: str, options: JobOptions | None = None) -> None:
        """Initialize queue.

        Args:
            client: redis.asyncio client created with ``decode_responses=True``
            name: Queue name
            options: Retry and retention policy
        """
        self._redis = client
        self.name = name
        self.options = options or JobOptions()

    def _key(self, suffix: str) -> str:
        return f"{self.KEY_PREFIX}:{self.name}:{suffix}"

    def _job_key(self, job_id: str) -> str:
        return self._key(f"job:{job_id}")

    async def _save(self, job: Job, ttl_seconds: int | None = None) -> None:
        await self._redis.set(self._job_key(job.id), job.model_dump_json(), ex=ttl_seconds)

    async def _load(self, job_id: str) -> Job | None:
        raw = await self._redis.get(self._job_key(job_id))
        if raw is None:
            return None
        return Job.model_validate_json(raw)

    async def enqueue(self, payload: StageJob) -> Job:
        """Add a job in waiting state."""
        job = new_job(self.name, payload, self.options)
        await self._save(job)
        await self._redis.rpush(self._key("wait"), job.id)
        return job

    async def _promote_delayed(self) -> None:
        """Move delayed jobs whose backoff has elapsed to the wait list."""
        due = await self._redis.zrangebyscore(self._key("delayed"), 0, time.time())
        for job_id in due:
            # Only the caller that removes the id re-queues it
            if await self._redis.zrem(self._key("delayed"), job_id):
                await self._redis.rpush(self._key("wait"), job_id)

    async def _recover_stalled(self) -> None:
        """Return active jobs whose lease expired to the wait list."""
        expired = await self._redis.zrangebyscore(self._key("leases"), 0, time.time())
        for job_id in expired:
            if await self._redis.zrem(self._key("leases"), job_id):
                await self._redis.lrem(self._key("active"), 1, job_id)
                await self._redis.rpush(self._key("wait"), job_id)
                logger.warning(f"Queue {self.name}: job {job_id} stalled, returned to wait")

    async def reserve(self, timeout: float) -> Job | None:
        """Take the next ready job."""
        await self._promote_delayed()
        await self._recover_stalled()

        job_id = await self._redis.blmove(
            self._key("wait"), self._key("active"), timeout, src="LEFT", dest="RIGHT"
        )
        if job_id is None:
            return None

        lease_expiry = time.time() + self.options.lease_seconds
        await self._redis.zadd(self._key("leases"), {job_id: lease_expiry})
        job = await self._load(job_id)
        if job is None:
            await self._release(job_id)
            return None

        job = job.model_copy(
            update={"state": JobState.active, "attempts_made": job.attempts_made + 1}
        )
        await self._save(job)
        return job

    async def extend_lease(self, job: Job) -> None:
        """Push the lease expiry of a still-active job forward."""
        await self._redis.zadd(
            self._key("leases"), {job.id: time.time() + self.options.lease_seconds}, xx=True
        )

    async def _release(self, job_id: str) -> None:
        await self._redis.zrem(self._key("leases"), job_id)
        await self._redis.lrem(self._key("active"), 1, job_id)

    async def complete(self, job: Job) -> None:
        """Record completion and apply the retention policy."""
        now = time.time()
        finished = job.model_copy(
            update={"state": JobState.completed, "finished_at": datetime.now(timezone.utc)}
        )
        await self._release(job.id)
        await self._save(finished, ttl_seconds=self.options.completed_retention_seconds)

        completed_key = self._key("completed")
        await self._redis.zadd(completed_key, {job.id: now})
        await self._redis.zremrangebyscore(
            completed_key, 0, now - self.options.completed_retention_seconds
        )
        overflow = await self._redis.zrange(
            completed_key, 0, -(self.options.completed_retention_count + 1)
        )
        if overflow:
            await self._redis.zrem(completed_key, *overflow)
            await self._redis.delete(*(self._job_key(job_id) for job_id in overflow))

    async def retry_later(self, job: Job, delay: float, reason: str) -> None:
        """Park the job in the delayed set until ``delay`` has elapsed."""
        delayed = job.model_copy(update={"state": JobState.delayed, "failed_reason": reason})
        await self._save(delayed)
        await self._release(job.id)
        await self._redis.zadd(self._key("delayed"), {job.id: time.time() + delay})

    async def fail(self, job: Job, reason: str) -> None:
        """Dead-letter the job."""
        now = time.time()
        dead = job.model_copy(
            update={
                "state": JobState.dead,
                "failed_reason": reason,
                "finished_at": datetime.now(timezone.utc),
            }
        )
        await self._release(job.id)
        await self._save(dead, ttl_seconds=self.options.dead_retention_seconds)
        await self._redis.zadd(self._key("dead"), {job.id: now})
        await self._redis.zremrangebyscore(
            self._key("dead"), 0, now - self.options.dead_retention_seconds
        )

    async def dead_jobs(self) -> list[Job]:
        """List retained dead jobs."""
        job_ids = await self._redis.zrange(self._key("dead"), 0, -1)
        jobs: list[Job] = []
        for job_id in job_ids:
            job = await self._load(job_id)
            if job is not None:
                jobs.append(job)
        return jobs

    async def close(self) -> None:
        """Nothing to release; the shared client is closed by its owner."""
        return None
