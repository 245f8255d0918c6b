"""Working and stable locations for generated audio."""

import asyncio
import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class AudioStorage:
    """Per-document working directories and long-lived audio placement.

    Working dirs live under ``work_root/<document_id>`` and are removed after
    each audio job. Published audio lives under
    ``stable_root/<document_id>/<file_name>`` until the cleanup sweeper
    removes it.
    """

    def __init__(self, work_root: Path, stable_root: Path, file_name: str = "final.mp3") -> None:
        self.work_root = work_root
        self.stable_root = stable_root
        self.file_name = file_name

    def work_dir(self, document_id: str) -> Path:
        return self.work_root / document_id

    def stable_dir(self, document_id: str) -> Path:
        return self.stable_root / document_id

    def stable_audio_path(self, document_id: str) -> Path:
        return self.stable_dir(document_id) / self.file_name

    def download_url(self, document_id: str) -> str:
        """Stable per-document download path served by the API."""
        return f"/audio/{document_id}/download"

    async def prepare_work_dir(self, document_id: str) -> Path:
        """Create a fresh working dir, discarding leftovers from a failed attempt."""
        path = self.work_dir(document_id)
        await asyncio.to_thread(shutil.rmtree, path, True)
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        return path

    async def publish(self, document_id: str, stitched: Path) -> Path:
        """Copy the stitched file into its stable location."""
        target = self.stable_audio_path(document_id)
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, stitched, target)
        return target

    async def remove_work_dir(self, document_id: str) -> None:
        """Delete the working dir; failures are logged, never raised."""
        path = self.work_dir(document_id)
        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove working directory {path}: {e}")
