"""Tests for structured job attempt logging."""

import logging
from datetime import datetime, timezone

import pytest

from backend.app.models.jobs import Job, StageJob
from backend.app.utils.logging import StructuredJobLogger


@pytest.fixture
def job() -> Job:
    return Job(
        id="job-1",
        queue="audio-generation",
        payload=StageJob(document_id="doc-1"),
        attempts_made=2,
        created_at=datetime.now(timezone.utc),
    )


def test_completed_logged_at_info(job: Job, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="backend.app.utils.logging"):
        StructuredJobLogger().log_attempt(job, "completed", 12.345)

    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert record.structured == {
        "job_id": "job-1",
        "queue": "audio-generation",
        "document_id": "doc-1",
        "attempt": 2,
        "max_attempts": 3,
        "outcome": "completed",
        "latency_ms": 12.35,
    }


def test_retry_logged_at_warning_with_delay(job: Job, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="backend.app.utils.logging"):
        StructuredJobLogger().log_attempt(
            job, "retrying", 5.0, error_reason="CollaboratorError: 503", retry_in_seconds=4.0
        )

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.structured["error_reason"] == "CollaboratorError: 503"
    assert record.structured["retry_in_seconds"] == 4.0


def test_dead_logged_at_error(job: Job, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="backend.app.utils.logging"):
        StructuredJobLogger().log_attempt(job, "dead", 1.0, error_reason="permanent")

    assert caplog.records[-1].levelno == logging.ERROR
    assert "doc-1" in caplog.records[-1].getMessage()
