"""Worker process entry point: ``python -m backend.app.worker``.

Runs the three stage pools and the audio cleanup sweeper until SIGINT or
SIGTERM. Requires REDIS_URL so jobs submitted by the API process reach it.
"""

import asyncio
import logging
import signal
from pathlib import Path

from backend.app.config import Settings, get_settings
from backend.app.orchestration.cleanup import run_cleanup_loop
from backend.app.orchestration.context import build_context
from backend.app.orchestration.pipeline import Pipeline
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)


async def run_worker(settings: Settings) -> None:
    """Start pools and sweeper, then block until a shutdown signal arrives."""
    if not settings.redis_url:
        logger.warning("REDIS_URL not set; this worker only sees jobs it enqueues itself")

    ctx = build_context(settings)
    await ctx.initialize()
    pipeline = Pipeline(ctx)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await pipeline.start()
    cleanup_task = asyncio.create_task(
        run_cleanup_loop(
            Path(settings.audio_storage_root),
            max_age_hours=settings.cleanup_max_age_hours,
            interval_seconds=settings.cleanup_interval_seconds,
            file_name=settings.audio_file_name,
        )
    )
    logger.info("Workers started and listening for jobs")

    try:
        await stop.wait()
        logger.info("Shutting down workers")
    finally:
        cleanup_task.cancel()
        await asyncio.gather(cleanup_task, return_exceptions=True)
        await pipeline.stop()
        await ctx.aclose()

    logger.info("All workers stopped")


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    asyncio.run(run_worker(settings))


if __name__ == "__main__":
    main()
