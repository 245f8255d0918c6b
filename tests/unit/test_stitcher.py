"""Tests for audio stitching and stable placement."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from fakes import FakeMediaToolkit

from backend.app.audio.stitcher import (
    FfmpegToolkit,
    probe_output,
    stitch_pieces,
    write_manifest,
)
from backend.app.audio.storage import AudioStorage
from backend.app.orchestration.errors import StitchError


def _pieces(directory: Path, count: int) -> list[Path]:
    paths = []
    for index in range(count):
        path = directory / f"piece_{index}.mp3"
        path.write_bytes(f"<{index}>".encode())
        paths.append(path)
    return paths


class TestStitchPieces:
    """Ordered concatenation."""

    @pytest.mark.asyncio
    async def test_single_piece_is_copied_without_toolkit(self, tmp_path: Path) -> None:
        toolkit = FakeMediaToolkit()
        pieces = _pieces(tmp_path, 1)
        output = tmp_path / "final.mp3"

        await stitch_pieces(pieces, output, toolkit)

        assert output.read_bytes() == b"<0>"
        assert toolkit.manifests == []

    @pytest.mark.asyncio
    async def test_multiple_pieces_concatenated_in_order(self, tmp_path: Path) -> None:
        toolkit = FakeMediaToolkit()
        pieces = _pieces(tmp_path, 3)
        output = tmp_path / "final.mp3"

        await stitch_pieces(pieces, output, toolkit)

        assert output.read_bytes() == b"<0><1><2>"
        assert len(toolkit.manifests) == 1
        assert not output.with_suffix(".concat.txt").exists()

    @pytest.mark.asyncio
    async def test_manifest_removed_when_concat_fails(self, tmp_path: Path) -> None:
        toolkit = FakeMediaToolkit()
        toolkit.fail_concat = True
        output = tmp_path / "final.mp3"

        with pytest.raises(StitchError):
            await stitch_pieces(_pieces(tmp_path, 2), output, toolkit)

        assert not output.with_suffix(".concat.txt").exists()
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_no_pieces_fails(self, tmp_path: Path) -> None:
        with pytest.raises(StitchError, match="No audio files"):
            await stitch_pieces([], tmp_path / "final.mp3", FakeMediaToolkit())

    @pytest.mark.asyncio
    async def test_probe_output_returns_duration_and_size(self, tmp_path: Path) -> None:
        path = tmp_path / "final.mp3"
        path.write_bytes(b"x" * 2048)

        duration, size = await probe_output(path, FakeMediaToolkit(duration=61.5))

        assert duration == 61.5
        assert size == 2048


def test_write_manifest_lists_absolute_paths_in_order(tmp_path: Path) -> None:
    pieces = _pieces(tmp_path, 2)
    manifest = tmp_path / "list.txt"

    write_manifest(pieces, manifest)

    lines = manifest.read_text(encoding="utf-8").splitlines()
    assert lines == [f"file '{p.resolve()}'" for p in pieces]


class TestFfmpegToolkit:
    """Subprocess handling."""

    @pytest.mark.asyncio
    async def test_missing_binary_raises_stitch_error(self, tmp_path: Path) -> None:
        toolkit = FfmpegToolkit(ffmpeg_bin=str(tmp_path / "no-such-ffmpeg"))

        with pytest.raises(StitchError, match="not available"):
            await toolkit.concat(tmp_path / "list.txt", tmp_path / "out.mp3")

    @pytest.mark.asyncio
    async def test_probe_duration_parses_output(self, tmp_path: Path) -> None:
        toolkit = FfmpegToolkit()

        with patch.object(toolkit, "_run", AsyncMock(return_value="42.75\n")) as run:
            duration = await toolkit.probe_duration(tmp_path / "final.mp3")

        assert duration == 42.75
        command = run.call_args.args[0]
        assert command[0] == "ffprobe"
        assert "format=duration" in command

    @pytest.mark.asyncio
    async def test_probe_duration_unparseable_is_zero(self, tmp_path: Path) -> None:
        toolkit = FfmpegToolkit()

        with patch.object(toolkit, "_run", AsyncMock(return_value="N/A\n")):
            assert await toolkit.probe_duration(tmp_path / "final.mp3") == 0.0

    @pytest.mark.asyncio
    async def test_concat_uses_stream_copy(self, tmp_path: Path) -> None:
        toolkit = FfmpegToolkit()

        with patch.object(toolkit, "_run", AsyncMock(return_value="")) as run:
            await toolkit.concat(tmp_path / "list.txt", tmp_path / "out.mp3")

        command = run.call_args.args[0]
        assert command[command.index("-f") + 1] == "concat"
        assert command[command.index("-c") + 1] == "copy"


class TestAudioStorage:
    """Working and stable directories."""

    @pytest.mark.asyncio
    async def test_publish_then_remove_work_dir_keeps_stable_copy(self, tmp_path: Path) -> None:
        storage = AudioStorage(tmp_path / "temp", tmp_path / "temp-audio")
        work_dir = await storage.prepare_work_dir("doc-1")
        stitched = work_dir / "final.mp3"
        stitched.write_bytes(b"audio")

        published = await storage.publish("doc-1", stitched)
        await storage.remove_work_dir("doc-1")

        assert published == tmp_path / "temp-audio" / "doc-1" / "final.mp3"
        assert published.read_bytes() == b"audio"
        assert not work_dir.exists()

    @pytest.mark.asyncio
    async def test_prepare_work_dir_discards_leftovers(self, tmp_path: Path) -> None:
        storage = AudioStorage(tmp_path / "temp", tmp_path / "temp-audio")
        work_dir = await storage.prepare_work_dir("doc-1")
        (work_dir / "piece_0.mp3").write_bytes(b"stale")

        work_dir = await storage.prepare_work_dir("doc-1")

        assert list(work_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_remove_missing_work_dir_is_noop(self, tmp_path: Path) -> None:
        storage = AudioStorage(tmp_path / "temp", tmp_path / "temp-audio")

        await storage.remove_work_dir("never-created")

    def test_download_url(self, tmp_path: Path) -> None:
        storage = AudioStorage(tmp_path / "temp", tmp_path / "temp-audio")

        assert storage.download_url("abc") == "/audio/abc/download"
