"""Structured logging for pipeline jobs."""

import logging
from typing import Any

from backend.app.models.jobs import Job

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for API and worker processes."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class StructuredJobLogger:
    """Structured logger for stage job attempts."""

    def log_attempt(
        self,
        job: Job,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
        retry_in_seconds: float | None = None,
    ) -> None:
        """Log stage job attempt with structured data."""
        log_data: dict[str, Any] = {
            "job_id": job.id,
            "queue": job.queue,
            "document_id": job.document_id,
            "attempt": job.attempts_made,
            "max_attempts": job.max_attempts,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason
        if retry_in_seconds is not None:
            log_data["retry_in_seconds"] = retry_in_seconds

        log_msg = f"Job {job.queue}/{job.id} for document {job.document_id} - {outcome}"

        if outcome == "completed":
            logger.info(log_msg, extra={"structured": log_data})
        elif outcome == "retrying":
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.error(log_msg, extra={"structured": log_data})
