"""Pipeline exception types and transient-failure classification."""

import asyncio

import httpx
import openai
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError


class PipelineError(Exception):
    """Base class for pipeline failures."""

    pass


class DocumentNotFoundError(PipelineError):
    """Document record missing from the state store."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class MissingDependencyError(PipelineError):
    """A record produced by an earlier stage is missing."""

    pass


class IllegalTransitionError(PipelineError):
    """Status write not allowed by the transition table."""

    pass


class CollaboratorError(PipelineError):
    """External service (LLM, TTS, storage, transcoder) failed."""

    def __init__(
        self,
        service: str,
        message: str,
        *,
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.transient = transient


class StitchError(CollaboratorError):
    """ffmpeg/ffprobe failed or is unavailable."""

    def __init__(self, message: str) -> None:
        super().__init__("ffmpeg", message)


class PermanentStageError(PipelineError):
    """Stage failed and the document was already marked ``error``.

    The queue must not retry a job that raised this.
    """

    def __init__(self, document_id: str, message: str) -> None:
        super().__init__(message)
        self.document_id = document_id


_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    httpx.TransportError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    RedisConnectionError,
    RedisTimeoutError,
)


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth a queue-level retry.

    Network errors, timeouts, HTTP 429 and 5xx responses are transient.
    Everything else (validation, not-found, 4xx, empty results) is permanent.
    """
    if isinstance(exc, CollaboratorError):
        if exc.transient:
            return True
        return exc.status_code is not None and (
            exc.status_code == 429 or exc.status_code >= 500
        )
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code == 429 or code >= 500
    return isinstance(exc, _TRANSIENT_TYPES)
