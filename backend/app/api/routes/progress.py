"""Live progress stream (server-sent events)."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from backend.app.api.dependencies import get_context
from backend.app.orchestration.context import PipelineContext
from backend.app.orchestration.progress_bridge import format_sse, progress_events

router = APIRouter(tags=["progress"])


@router.get("/progress/{document_id}")
async def stream_progress(
    document_id: str,
    request: Request,
    ctx: Annotated[PipelineContext, Depends(get_context)],
) -> StreamingResponse:
    """Stream ``{status, progress, currentStep, errorMessage?}`` frames.

    One frame is sent immediately, then one per poll interval until the
    document is complete, failed, or missing, or the client disconnects.
    """

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events."""
        async for event in progress_events(
            ctx.documents,
            document_id,
            interval=ctx.settings.progress_poll_interval_seconds,
            is_disconnected=request.is_disconnected,
        ):
            yield format_sse(event)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
