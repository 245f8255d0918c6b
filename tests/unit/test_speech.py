"""Tests for script splitting and speech synthesis."""

import json
from pathlib import Path

import httpx
import pytest
from fakes import FakeSpeechClient

from backend.app.audio.speech import (
    ElevenLabsSpeechClient,
    generate_audio_pieces,
    split_script,
)
from backend.app.orchestration.errors import CollaboratorError, is_transient


class TestSplitScript:
    """Sentence-bounded splitting."""

    def test_short_script_is_one_piece(self) -> None:
        assert split_script("Hello there. How are you?") == ["Hello there. How are you?"]

    def test_script_without_punctuation_is_one_piece(self) -> None:
        assert split_script("no punctuation at all here") == ["no punctuation at all here"]

    def test_empty_script_has_no_pieces(self) -> None:
        assert split_script("   ") == []

    def test_long_script_respects_budget_and_order(self) -> None:
        sentences = [f"Sentence number {i} talks about the release." for i in range(250)]
        script = " ".join(sentences)
        assert len(script) > 9000

        pieces = split_script(script, max_chars=4500)

        assert len(pieces) >= 2
        assert all(len(p) <= 4500 for p in pieces)
        assert " ".join(pieces) == script

    def test_greedy_packing(self) -> None:
        pieces = split_script("Aaaa. Bbbb. Cccc.", max_chars=11)

        assert pieces == ["Aaaa. Bbbb.", "Cccc."]

    def test_trailing_text_without_punctuation_is_kept(self) -> None:
        pieces = split_script("First sentence. and a tail", max_chars=100)

        assert pieces == ["First sentence. and a tail"]

    def test_oversized_sentence_is_split_at_words(self) -> None:
        sentence = " ".join(["word"] * 50) + "."

        pieces = split_script(sentence, max_chars=40)

        assert all(len(p) <= 40 for p in pieces)
        assert " ".join(pieces) == sentence


class TestGenerateAudioPieces:
    """Sequential piece synthesis."""

    @pytest.mark.asyncio
    async def test_writes_indexed_files_in_order(self, tmp_path: Path) -> None:
        client = FakeSpeechClient()
        progress: list[tuple[int, int]] = []

        async def on_progress(current: int, total: int) -> None:
            progress.append((current, total))

        paths = await generate_audio_pieces(
            "One. Two. Three.", tmp_path, client, max_chars=6, on_progress=on_progress
        )

        assert [p.name for p in paths] == ["piece_0.mp3", "piece_1.mp3", "piece_2.mp3"]
        assert paths[1].read_bytes() == b"ID3:2:Two.|"
        assert progress == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_passes_previous_request_ids(self, tmp_path: Path) -> None:
        client = FakeSpeechClient()

        await generate_audio_pieces("One. Two. Three.", tmp_path, client, max_chars=6)

        assert [ids for _, ids in client.requests] == [[], ["req-1"], ["req-1", "req-2"]]

    @pytest.mark.asyncio
    async def test_empty_script_fails(self, tmp_path: Path) -> None:
        with pytest.raises(CollaboratorError, match="empty"):
            await generate_audio_pieces("  ", tmp_path, FakeSpeechClient())

    @pytest.mark.asyncio
    async def test_failure_stops_generation(self, tmp_path: Path) -> None:
        client = FakeSpeechClient()
        client.errors.append(CollaboratorError("tts", "quota exceeded", status_code=401))

        with pytest.raises(CollaboratorError, match="quota"):
            await generate_audio_pieces("One. Two.", tmp_path, client, max_chars=6)

        assert list(tmp_path.iterdir()) == []


class TestElevenLabsSpeechClient:
    """HTTP client behavior against a mock transport."""

    @pytest.mark.asyncio
    async def test_sends_request_and_reads_request_id(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, content=b"mp3-bytes", headers={"request-id": "abc"})

        client = ElevenLabsSpeechClient(
            api_key="key",
            voice_id="voice-1",
            base_url="https://tts.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        result = await client.synthesize(
            "Hello.", previous_request_ids=["r1", "r2", "r3", "r4"]
        )

        assert result.audio == b"mp3-bytes"
        assert result.request_id == "abc"

        request = captured[0]
        assert request.url.path == "/v1/text-to-speech/voice-1"
        assert request.url.params["output_format"] == "mp3_44100_128"
        assert request.headers["xi-api-key"] == "key"
        body = json.loads(request.content)
        assert body["text"] == "Hello."
        assert body["model_id"] == "eleven_multilingual_v2"
        assert body["previous_request_ids"] == ["r2", "r3", "r4"]

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self) -> None:
        client = ElevenLabsSpeechClient(
            api_key="key",
            voice_id="v",
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda r: httpx.Response(503, text="busy"))
            ),
        )

        with pytest.raises(CollaboratorError) as exc_info:
            await client.synthesize("Hi.", previous_request_ids=[])

        assert exc_info.value.status_code == 503
        assert is_transient(exc_info.value)

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self) -> None:
        client = ElevenLabsSpeechClient(
            api_key="bad",
            voice_id="v",
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda r: httpx.Response(401, text="unauthorized"))
            ),
        )

        with pytest.raises(CollaboratorError) as exc_info:
            await client.synthesize("Hi.", previous_request_ids=[])

        assert exc_info.value.status_code == 401
        assert not is_transient(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = ElevenLabsSpeechClient(
            api_key="key",
            voice_id="v",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(CollaboratorError) as exc_info:
            await client.synthesize("Hi.", previous_request_ids=[])

        assert exc_info.value.transient
