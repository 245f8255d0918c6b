"""Prometheus metrics for pipeline jobs and submissions."""

from prometheus_client import Counter, Histogram

# Job execution metrics
job_latency_ms = Histogram(
    "job_latency_ms",
    "Stage job execution latency in milliseconds",
    ["queue", "outcome"],
    buckets=[100, 500, 1000, 5000, 15000, 30000, 60000, 120000, 300000],
)

job_failures_total = Counter(
    "job_failures_total",
    "Total failed stage job attempts",
    ["queue", "reason"],
)

documents_submitted_total = Counter(
    "documents_submitted_total",
    "Total accepted document submissions",
    ["input_kind"],
)

stale_audio_removed_total = Counter(
    "stale_audio_removed_total",
    "Total stale audio directories removed by the cleanup sweeper",
)


class PrometheusJobMetrics:
    """Prometheus-based job metrics implementation."""

    def record_latency(self, queue: str, outcome: str, latency_ms: float) -> None:
        """Record job execution latency."""
        job_latency_ms.labels(queue=queue, outcome=outcome).observe(latency_ms)

    def inc_failure(self, queue: str, reason: str) -> None:
        """Increment failure counter."""
        job_failures_total.labels(queue=queue, reason=reason).inc()
