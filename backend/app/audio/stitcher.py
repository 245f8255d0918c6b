"""Audio stitcher - ordered concatenation and metadata probing via ffmpeg."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol

from backend.app.orchestration.errors import StitchError

logger = logging.getLogger(__name__)


class MediaToolkit(Protocol):
    """Protocol for the media-transcoding collaborator."""

    async def concat(self, manifest: Path, output: Path) -> None:
        """Concatenate the files listed in an ffmpeg concat manifest (stream copy)."""
        ...

    async def probe_duration(self, path: Path) -> float:
        """Return media duration in seconds."""
        ...


class FfmpegToolkit:
    """MediaToolkit backed by the ffmpeg and ffprobe executables."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg", ffprobe_bin: str = "ffprobe") -> None:
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin

    async def _run(self, command: list[str]) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise StitchError(f"`{command[0]}` is not available on PATH") from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip() or "no stderr output"
            raise StitchError(f"{Path(command[0]).name} failed: {detail[:300]}")
        return stdout.decode("utf-8", errors="replace")

    async def concat(self, manifest: Path, output: Path) -> None:
        """Run ffmpeg concat demuxer without re-encoding."""
        command = [
            self.ffmpeg_bin,
            "-y",
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(manifest),
            "-c",
            "copy",
            str(output),
        ]
        logger.debug(f"Spawning: {' '.join(command)}")
        await self._run(command)

    async def probe_duration(self, path: Path) -> float:
        """Read container duration with ffprobe."""
        stdout = await self._run(
            [
                self.ffprobe_bin,
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                str(path),
            ]
        )
        try:
            return max(0.0, float(stdout.strip()))
        except ValueError:
            return 0.0


def _escape_concat_path(path: Path) -> str:
    """Escape one file path for ffmpeg concat list format."""
    return str(path).replace("'", "'\\''")


def write_manifest(pieces: list[Path], manifest: Path) -> None:
    """Write an ordered ffmpeg concat list."""
    content = "\n".join(f"file '{_escape_concat_path(p.resolve())}'" for p in pieces)
    manifest.write_text(content + "\n", encoding="utf-8")


async def stitch_pieces(pieces: list[Path], output: Path, toolkit: MediaToolkit) -> Path:
    """Concatenate ordered pieces into ``output``.

    One piece is copied byte-for-byte. Several pieces go through the toolkit
    using a manifest next to ``output``; the manifest is removed whether or
    not concatenation succeeds.

    Raises:
        StitchError: If there is nothing to stitch or the toolkit fails
    """
    if not pieces:
        raise StitchError("No audio files to stitch")

    output.parent.mkdir(parents=True, exist_ok=True)

    if len(pieces) == 1:
        await asyncio.to_thread(shutil.copyfile, pieces[0], output)
        return output

    manifest = output.with_suffix(".concat.txt")
    try:
        await asyncio.to_thread(write_manifest, pieces, manifest)
        await toolkit.concat(manifest, output)
    finally:
        manifest.unlink(missing_ok=True)

    logger.info(f"Stitched {len(pieces)} pieces into {output}")
    return output


async def probe_output(path: Path, toolkit: MediaToolkit) -> tuple[float, int]:
    """Return (duration seconds, size bytes) of a stitched file."""
    duration = await toolkit.probe_duration(path)
    size = (await asyncio.to_thread(path.stat)).st_size
    return duration, size
