"""Audio chunk producer - sentence-bounded splitting and sequential synthesis."""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from backend.app.config import Settings
from backend.app.orchestration.errors import CollaboratorError

logger = logging.getLogger(__name__)

SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+")

ProgressCallback = Callable[[int, int], Awaitable[None]]


def split_script(script: str, max_chars: int = 4500) -> list[str]:
    """Split a script into sentence-bounded pieces of at most ``max_chars``.

    Sentences are packed greedily; a new piece starts when adding the next
    sentence would exceed the budget. A script without sentence punctuation
    becomes a single piece. Trailing text after the last punctuation mark is
    kept as a final sentence.
    """
    text = script.strip()
    if not text:
        return []

    matches = list(SENTENCE_PATTERN.finditer(text))
    if not matches:
        return [text]

    sentences = [m.group(0).strip() for m in matches]
    remainder = text[matches[-1].end():].strip()
    if remainder:
        sentences.append(remainder)

    pieces: list[str] = []
    current = ""

    for sentence in _fit_sentences(sentences, max_chars):
        candidate = f"{current} {sentence}" if current else sentence
        if current and len(candidate) > max_chars:
            pieces.append(current)
            current = sentence
        else:
            current = candidate

    if current:
        pieces.append(current)

    return pieces


def _fit_sentences(sentences: list[str], max_chars: int) -> list[str]:
    """Break any sentence longer than the budget at word boundaries."""
    fitted: list[str] = []
    for sentence in sentences:
        if not sentence:
            continue
        if len(sentence) <= max_chars:
            fitted.append(sentence)
            continue

        part = ""
        for word in sentence.split():
            while len(word) > max_chars:
                if part:
                    fitted.append(part)
                    part = ""
                fitted.append(word[:max_chars])
                word = word[max_chars:]
            if not word:
                continue
            candidate = f"{part} {word}" if part else word
            if part and len(candidate) > max_chars:
                fitted.append(part)
                part = word
            else:
                part = candidate
        if part:
            fitted.append(part)
    return fitted


@dataclass(frozen=True)
class SpeechResult:
    """Raw audio for one piece and the id of the request that produced it."""

    audio: bytes
    request_id: str


class SpeechClient(Protocol):
    """Protocol for text-to-speech collaborators."""

    async def synthesize(
        self, text: str, *, previous_request_ids: list[str]
    ) -> SpeechResult:
        """Synthesize one piece, given ids of earlier pieces for continuity.

        Raises:
            CollaboratorError: On service failure
        """
        ...


class ElevenLabsSpeechClient:
    """ElevenLabs text-to-speech over HTTP with request stitching."""

    # The API accepts at most this many previous request ids
    MAX_PREVIOUS_REQUEST_IDS = 3

    def __init__(
        self,
        *,
        api_key: str,
        voice_id: str,
        model_id: str = "eleven_multilingual_v2",
        base_url: str = "https://api.elevenlabs.io",
        timeout_seconds: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize ElevenLabs client.

        Args:
            api_key: ElevenLabs API key
            voice_id: Voice to synthesize with
            model_id: Speech model
            base_url: API base URL
            timeout_seconds: Per-request timeout
            client: Optional httpx client (for testing with mocks)
        """
        self.voice_id = voice_id
        self.model_id = model_id
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def synthesize(
        self, text: str, *, previous_request_ids: list[str]
    ) -> SpeechResult:
        """Synthesize one piece as MP3 bytes."""
        url = f"{self._base_url}/v1/text-to-speech/{self.voice_id}"
        body: dict[str, object] = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
        }
        if previous_request_ids:
            body["previous_request_ids"] = previous_request_ids[-self.MAX_PREVIOUS_REQUEST_IDS :]

        try:
            response = await self._client.post(
                url,
                json=body,
                headers={"xi-api-key": self._api_key, "Accept": "audio/mpeg"},
                params={"output_format": "mp3_44100_128"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:200]
            raise CollaboratorError(
                "tts",
                f"Speech synthesis failed ({e.response.status_code}): {detail}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise CollaboratorError(
                "tts", f"Speech synthesis failed: {type(e).__name__}", transient=True
            ) from e

        if not response.content:
            raise CollaboratorError("tts", "Speech synthesis returned no audio")

        return SpeechResult(
            audio=response.content,
            request_id=response.headers.get("request-id", ""),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


async def generate_audio_pieces(
    script: str,
    work_dir: Path,
    client: SpeechClient,
    *,
    max_chars: int = 4500,
    on_progress: ProgressCallback | None = None,
) -> list[Path]:
    """Synthesize every piece of ``script`` strictly in order.

    Each piece is written to ``work_dir/piece_<i>.mp3``. The progress
    callback receives (pieces completed so far, total pieces).

    Returns:
        Piece file paths in script order
    """
    pieces = split_script(script, max_chars=max_chars)
    if not pieces:
        raise CollaboratorError("tts", "Script is empty; nothing to synthesize")

    total = len(pieces)
    logger.info(f"Generating {total} audio pieces in {work_dir}")

    paths: list[Path] = []
    request_ids: list[str] = []

    for index, piece in enumerate(pieces):
        result = await client.synthesize(piece, previous_request_ids=list(request_ids))

        path = work_dir / f"piece_{index}.mp3"
        await asyncio.to_thread(path.write_bytes, result.audio)
        paths.append(path)

        if result.request_id:
            request_ids.append(result.request_id)

        if on_progress is not None:
            await on_progress(index + 1, total)

    return paths


class UnconfiguredSpeechClient:
    """Placeholder used when no speech credentials are configured.

    Every call fails permanently so documents reach ``error`` with a clear message.
    """

    async def synthesize(
        self, text: str, *, previous_request_ids: list[str]
    ) -> SpeechResult:
        raise CollaboratorError("tts", "Speech synthesis is not configured (ELEVENLABS_API_KEY)")

    async def aclose(self) -> None:
        return None


def get_speech_client(settings: Settings) -> ElevenLabsSpeechClient | UnconfiguredSpeechClient:
    """Factory function to get the speech client for the configuration."""
    api_key = settings.elevenlabs_api_key

    if api_key and api_key.get_secret_value() and settings.elevenlabs_voice_id:
        logger.info("Using ElevenLabs client for speech synthesis")
        return ElevenLabsSpeechClient(
            api_key=api_key.get_secret_value(),
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            base_url=settings.elevenlabs_base_url,
            timeout_seconds=settings.tts_timeout_seconds,
        )

    logger.warning("No ElevenLabs credentials configured, audio generation will fail")
    return UnconfiguredSpeechClient()
