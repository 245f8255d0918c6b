"""Progress bridge - polls the document store and republishes state as events."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from backend.app.db.repositories import DocumentRepository
from backend.app.models.document import DocumentStatus
from backend.app.models.events import ProgressEvent

DisconnectCheck = Callable[[], Awaitable[bool]]


async def _never_disconnected() -> bool:
    return False


async def progress_events(
    documents: DocumentRepository,
    document_id: str,
    *,
    interval: float = 5.0,
    is_disconnected: DisconnectCheck = _never_disconnected,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[ProgressEvent]:
    """Yield the document's progress now and then every ``interval`` seconds.

    Stops after yielding a ``complete`` or ``error`` event, after reporting a
    missing document as an error event, or once the caller disconnects.

    Args:
        documents: Document state store
        document_id: Document to follow
        interval: Seconds between reads
        is_disconnected: Returns True once the consumer has gone away
        sleep: Injectable sleep function (default: asyncio.sleep)
    """
    while True:
        if await is_disconnected():
            return

        document = await documents.get_document(document_id)
        if document is None:
            yield ProgressEvent(
                status=DocumentStatus.error,
                progress=0,
                current_step="",
                error_message="Document not found",
            )
            return

        event = ProgressEvent.from_document(document)
        yield event
        if event.is_terminal:
            return

        await sleep(interval)


def format_sse(event: ProgressEvent) -> str:
    """Frame one event for a text/event-stream response."""
    return f"data: {event.to_wire()}\n\n"
