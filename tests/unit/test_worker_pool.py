"""Tests for WorkerPool retry, dead-lettering and concurrency."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from prometheus_client import REGISTRY

from backend.app.models.jobs import Job, StageJob
from backend.app.orchestration.errors import PermanentStageError
from backend.app.queue.jobs import JobOptions
from backend.app.queue.memory import InMemoryJobQueue
from backend.app.queue.worker_pool import JobLogger, WorkerPool
from backend.app.utils.metrics import PrometheusJobMetrics


def _queue(name: str = "script-generation") -> InMemoryJobQueue:
    return InMemoryJobQueue(name, JobOptions(attempts=3, backoff_seconds=0.01))


async def _reserve(queue: InMemoryJobQueue) -> Job:
    job = await queue.reserve(timeout=1.0)
    assert job is not None
    return job


@pytest.mark.asyncio
async def test_success_completes_job() -> None:
    queue = _queue()
    handled: list[str] = []

    async def handler(job: Job) -> None:
        handled.append(job.document_id)

    pool = WorkerPool(queue, handler, concurrency=1)
    await queue.enqueue(StageJob(document_id="doc-1"))

    outcome = await pool.run_job(await _reserve(queue))

    assert outcome == "completed"
    assert handled == ["doc-1"]
    assert [j.document_id for j in await queue.completed_jobs()] == ["doc-1"]


@pytest.mark.asyncio
async def test_transient_failure_retries_then_succeeds() -> None:
    queue = _queue()
    attempts: list[int] = []

    async def handler(job: Job) -> None:
        attempts.append(job.attempts_made)
        if job.attempts_made < 3:
            raise ConnectionError("network down")

    pool = WorkerPool(queue, handler, concurrency=1)
    await queue.enqueue(StageJob(document_id="doc-1"))

    assert await pool.run_job(await _reserve(queue)) == "retrying"
    assert await pool.run_job(await _reserve(queue)) == "retrying"
    assert await pool.run_job(await _reserve(queue)) == "completed"
    assert attempts == [1, 2, 3]


@pytest.mark.asyncio
async def test_retry_uses_exponential_backoff() -> None:
    queue = _queue()
    queue.retry_later = MagicMock(side_effect=queue.retry_later)  # type: ignore[method-assign]

    async def handler(job: Job) -> None:
        raise TimeoutError("slow")

    pool = WorkerPool(queue, handler, concurrency=1)
    await queue.enqueue(StageJob(document_id="doc-1"))

    await pool.run_job(await _reserve(queue))
    await pool.run_job(await _reserve(queue))

    delays = [call.args[1] for call in queue.retry_later.call_args_list]
    assert delays == [0.01, 0.02]


@pytest.mark.asyncio
async def test_exhausted_attempts_dead_letter_job() -> None:
    queue = _queue()

    async def handler(job: Job) -> None:
        raise ConnectionError("still down")

    pool = WorkerPool(queue, handler, concurrency=1)
    await queue.enqueue(StageJob(document_id="doc-1"))

    outcomes = [await pool.run_job(await _reserve(queue)) for _ in range(3)]

    assert outcomes == ["retrying", "retrying", "dead"]
    dead = await queue.dead_jobs()
    assert len(dead) == 1
    assert dead[0].attempts_made == 3
    assert "still down" in (dead[0].failed_reason or "")


@pytest.mark.asyncio
async def test_permanent_stage_error_is_not_retried() -> None:
    queue = _queue()
    calls = 0

    async def handler(job: Job) -> None:
        nonlocal calls
        calls += 1
        raise PermanentStageError(job.document_id, "No chunks found for document")

    pool = WorkerPool(queue, handler, concurrency=1)
    await queue.enqueue(StageJob(document_id="doc-1"))

    assert await pool.run_job(await _reserve(queue)) == "dead"
    assert calls == 1
    assert await queue.reserve(timeout=0.05) is None
    assert (await queue.dead_jobs())[0].failed_reason == "No chunks found for document"


@pytest.mark.asyncio
async def test_concurrency_ceiling_is_respected() -> None:
    queue = _queue("audio-generation")
    in_flight = 0
    peak = 0
    done = asyncio.Event()
    finished = 0

    async def handler(job: Job) -> None:
        nonlocal in_flight, peak, finished
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.02)
        in_flight -= 1
        finished += 1
        if finished == 6:
            done.set()

    pool = WorkerPool(queue, handler, concurrency=2, poll_timeout=0.05)
    for index in range(6):
        await queue.enqueue(StageJob(document_id=f"doc-{index}"))

    await pool.start()
    await asyncio.wait_for(done.wait(), timeout=5)
    await pool.stop()

    assert peak == 2
    assert not pool.running


@pytest.mark.asyncio
async def test_job_logger_and_metrics_receive_outcomes() -> None:
    queue = _queue("document-processing")
    job_logger = MagicMock(spec=JobLogger)

    async def handler(job: Job) -> None:
        return None

    pool = WorkerPool(
        queue, handler, concurrency=1, metrics=PrometheusJobMetrics(), job_logger=job_logger
    )
    await queue.enqueue(StageJob(document_id="doc-1"))

    before = REGISTRY.get_sample_value(
        "job_latency_ms_count", {"queue": "document-processing", "outcome": "completed"}
    ) or 0.0
    await pool.run_job(await _reserve(queue))
    after = REGISTRY.get_sample_value(
        "job_latency_ms_count", {"queue": "document-processing", "outcome": "completed"}
    )

    assert after == before + 1
    job_logger.log_attempt.assert_called_once()
    assert job_logger.log_attempt.call_args.args[1] == "completed"


def test_concurrency_must_be_positive() -> None:
    async def handler(job: Job) -> None:
        return None

    with pytest.raises(ValueError):
        WorkerPool(_queue(), handler, concurrency=0)


@pytest.mark.asyncio
async def test_cancelled_job_is_handed_back() -> None:
    queue = _queue()
    started = asyncio.Event()

    async def handler(job: Job) -> None:
        started.set()
        await asyncio.Event().wait()

    pool = WorkerPool(queue, handler, concurrency=1)
    await queue.enqueue(StageJob(document_id="doc-1"))

    task = asyncio.create_task(pool.run_job(await _reserve(queue)))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    redelivered = await _reserve(queue)
    assert redelivered.document_id == "doc-1"
    assert redelivered.attempts_made == 2
    assert await queue.dead_jobs() == []


@pytest.mark.asyncio
async def test_stop_past_grace_period_requeues_job() -> None:
    queue = _queue()
    started = asyncio.Event()

    async def handler(job: Job) -> None:
        started.set()
        await asyncio.Event().wait()

    pool = WorkerPool(queue, handler, concurrency=1, poll_timeout=0.05)
    await queue.enqueue(StageJob(document_id="doc-1"))
    await pool.start()
    await asyncio.wait_for(started.wait(), timeout=5)

    await pool.stop(grace_seconds=0.05)

    assert not pool.running
    assert (await _reserve(queue)).document_id == "doc-1"


@pytest.mark.asyncio
async def test_lease_renewed_while_handler_runs() -> None:
    queue = InMemoryJobQueue("audio-generation", JobOptions(lease_seconds=0.03))

    async def handler(job: Job) -> None:
        await asyncio.sleep(0.1)

    pool = WorkerPool(queue, handler, concurrency=1)
    await queue.enqueue(StageJob(document_id="doc-1"))
    job = await _reserve(queue)

    with patch.object(queue, "extend_lease") as extend_lease:
        assert await pool.run_job(job) == "completed"

    assert extend_lease.await_count >= 1
    extend_lease.assert_awaited_with(job)
