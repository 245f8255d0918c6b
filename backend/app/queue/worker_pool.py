"""Bounded-concurrency consumer for one job queue.

Each pool runs ``concurrency`` worker tasks that reserve jobs, hand them to
the stage handler, and settle the outcome:

- handler returns: job completed
- handler raises PermanentStageError: job dead-lettered, no retry
- handler raises anything else: retried with exponential backoff until
  ``max_attempts`` is reached, then dead-lettered
- worker cancelled mid-job (shutdown past the grace period): job handed
  back to the queue with the attempt counted

While a handler runs, the pool renews the job's lease so other processes do
not treat it as stalled.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from backend.app.models.jobs import Job
from backend.app.orchestration.errors import PermanentStageError
from backend.app.queue.jobs import JobQueue, backoff_delay

logger = logging.getLogger(__name__)

JobHandler = Callable[[Job], Awaitable[None]]


# Metrics interface (implemented by utils.metrics.PrometheusJobMetrics)
class JobMetrics:
    """Interface for job execution metrics."""

    def record_latency(self, queue: str, outcome: str, latency_ms: float) -> None:
        """Record job execution latency."""
        pass

    def inc_failure(self, queue: str, reason: str) -> None:
        """Increment failure counter."""
        pass


# Logging interface
class JobLogger:
    """Interface for structured job logging."""

    def log_attempt(
        self,
        job: Job,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
        retry_in_seconds: float | None = None,
    ) -> None:
        """Log one job attempt."""
        pass


class WorkerPool:
    """Runs a handler over a queue with bounded concurrency and retries."""

    def __init__(
        self,
        queue: JobQueue,
        handler: JobHandler,
        *,
        concurrency: int,
        metrics: JobMetrics | None = None,
        job_logger: JobLogger | None = None,
        poll_timeout: float = 1.0,
    ) -> None:
        """Initialize pool.

        Args:
            queue: Queue to consume
            handler: Async stage handler
            concurrency: Maximum jobs in flight
            metrics: Metrics recorder (optional, defaults to no-op)
            job_logger: Structured logger (optional, defaults to no-op)
            poll_timeout: Seconds each reserve call blocks before re-checking shutdown
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._queue = queue
        self._handler = handler
        self._concurrency = concurrency
        self._metrics = metrics or JobMetrics()
        self._job_logger = job_logger or JobLogger()
        self._poll_timeout = poll_timeout
        self._stopping = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def queue(self) -> JobQueue:
        return self._queue

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Spawn worker tasks."""
        if self._tasks:
            return
        self._stopping.clear()
        for index in range(self._concurrency):
            task = asyncio.create_task(
                self._worker_loop(), name=f"{self._queue.name}-worker-{index}"
            )
            self._tasks.append(task)
        logger.info(f"Started {self._concurrency} workers for queue {self._queue.name}")

    async def stop(self, grace_seconds: float = 30.0) -> None:
        """Stop reserving new jobs and wait for in-flight ones.

        Workers still busy after ``grace_seconds`` are cancelled.
        """
        if not self._tasks:
            return
        self._stopping.set()
        _, pending = await asyncio.wait(self._tasks, timeout=grace_seconds)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        logger.info(f"Stopped workers for queue {self._queue.name}")

    async def _worker_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                job = await self._queue.reserve(self._poll_timeout)
            except Exception as e:
                logger.warning(f"Queue {self._queue.name} reserve failed: {type(e).__name__}: {e}")
                await asyncio.sleep(self._poll_timeout)
                continue

            if job is None:
                continue

            await self.run_job(job)

    async def _keep_lease(self, job: Job) -> None:
        interval = self._queue.options.lease_seconds / 3
        while True:
            await asyncio.sleep(interval)
            try:
                await self._queue.extend_lease(job)
            except Exception as e:
                logger.warning(f"Lease renewal for job {job.id} failed: {type(e).__name__}: {e}")

    async def run_job(self, job: Job) -> str:
        """Execute one reserved job and settle it on the queue.

        Returns:
            "completed", "retrying" or "dead"
        """
        start = time.monotonic()
        heartbeat = asyncio.create_task(self._keep_lease(job))

        try:
            await self._handler(job)
        except asyncio.CancelledError:
            elapsed_ms = (time.monotonic() - start) * 1000
            await self._queue.retry_later(job, 0, "Worker stopped before the job finished")
            self._job_logger.log_attempt(
                job, "retrying", elapsed_ms, error_reason="cancelled", retry_in_seconds=0
            )
            raise
        except PermanentStageError as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            await self._queue.fail(job, str(e))
            self._metrics.record_latency(self._queue.name, "dead", elapsed_ms)
            self._metrics.inc_failure(self._queue.name, "permanent")
            self._job_logger.log_attempt(job, "dead", elapsed_ms, error_reason=str(e))
            return "dead"
        except Exception as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            reason = f"{type(e).__name__}: {e}"

            if job.is_final_attempt:
                await self._queue.fail(job, reason)
                self._metrics.record_latency(self._queue.name, "dead", elapsed_ms)
                self._metrics.inc_failure(self._queue.name, "exhausted")
                self._job_logger.log_attempt(job, "dead", elapsed_ms, error_reason=reason)
                return "dead"

            delay = backoff_delay(job.attempts_made, self._queue.options.backoff_seconds)
            await self._queue.retry_later(job, delay, reason)
            self._metrics.record_latency(self._queue.name, "retrying", elapsed_ms)
            self._metrics.inc_failure(self._queue.name, "transient")
            self._job_logger.log_attempt(
                job, "retrying", elapsed_ms, error_reason=reason, retry_in_seconds=delay
            )
            return "retrying"
        finally:
            heartbeat.cancel()

        elapsed_ms = (time.monotonic() - start) * 1000
        await self._queue.complete(job)
        self._metrics.record_latency(self._queue.name, "completed", elapsed_ms)
        self._job_logger.log_attempt(job, "completed", elapsed_ms)
        return "completed"
