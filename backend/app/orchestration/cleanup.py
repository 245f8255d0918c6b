"""Cleanup sweeper - removes stale published audio directories."""

import asyncio
import logging
import shutil
import time
from pathlib import Path

from backend.app.utils.metrics import stale_audio_removed_total

logger = logging.getLogger(__name__)


def sweep_stale_audio(
    root: Path,
    max_age_hours: float = 24.0,
    *,
    file_name: str = "final.mp3",
    now: float | None = None,
) -> list[str]:
    """Delete ``root/<document_id>`` dirs whose audio file is older than the threshold.

    A missing root, or a document dir without the audio file, means there
    is nothing to clean.

    Args:
        root: Stable audio storage root
        max_age_hours: Age threshold measured from the file's mtime
        file_name: Audio file name inside each document dir
        now: Current epoch seconds (default: time.time())

    Returns:
        Document ids whose directories were removed
    """
    current = time.time() if now is None else now
    max_age_seconds = max_age_hours * 3600

    try:
        entries = sorted(root.iterdir())
    except FileNotFoundError:
        return []

    removed: list[str] = []
    for entry in entries:
        if not entry.is_dir():
            continue
        try:
            age = current - (entry / file_name).stat().st_mtime
        except FileNotFoundError:
            continue

        if age > max_age_seconds:
            try:
                shutil.rmtree(entry)
            except OSError as e:
                logger.warning(f"Failed to delete stale audio {entry}: {e}")
                continue
            removed.append(entry.name)
            logger.info(f"Deleted old audio: {entry.name} (age: {int(age // 3600)}h)")

    if removed:
        stale_audio_removed_total.inc(len(removed))
    logger.info(f"Audio cleanup completed ({len(removed)} removed)")
    return removed


async def run_cleanup_loop(
    root: Path,
    *,
    max_age_hours: float = 24.0,
    interval_seconds: float = 3600.0,
    file_name: str = "final.mp3",
) -> None:
    """Sweep immediately, then every ``interval_seconds`` until cancelled."""
    while True:
        try:
            await asyncio.to_thread(
                sweep_stale_audio, root, max_age_hours, file_name=file_name
            )
        except OSError as e:
            logger.error(f"Audio cleanup failed: {e}")
        await asyncio.sleep(interval_seconds)
