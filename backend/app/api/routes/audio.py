"""Audio output lookup and download endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from backend.app.api.dependencies import get_context
from backend.app.models.document import AudioOutput, DocumentStatus
from backend.app.orchestration.context import PipelineContext

router = APIRouter(prefix="/audio", tags=["audio"])


@router.get("/{document_id}", response_model=AudioOutput)
async def get_audio_output(
    document_id: str,
    ctx: Annotated[PipelineContext, Depends(get_context)],
) -> AudioOutput:
    """Return the script and audio metadata for a document."""
    output = await ctx.outputs.get_audio_output(document_id)
    if output is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Audio output not found"
        )
    return output


@router.get("/{document_id}/download")
async def download_audio(
    document_id: str,
    ctx: Annotated[PipelineContext, Depends(get_context)],
) -> FileResponse:
    """Serve the published MP3 for a completed document."""
    document = await ctx.documents.get_document(document_id)
    if document is None or document.status is not DocumentStatus.complete:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Audio not available")

    path = ctx.audio_storage.stable_audio_path(document_id)
    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Audio file has expired"
        )

    return FileResponse(path, media_type="audio/mpeg", filename=f"{document_id}.mp3")
