"""Document submission and lookup endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from backend.app.api.dependencies import get_pipeline
from backend.app.models.document import Document, DocumentSubmission, InputKind, SubmissionResult
from backend.app.orchestration.pipeline import EnqueueError, Pipeline, SubmissionError

router = APIRouter(tags=["documents"])


@router.post("/submit", response_model=SubmissionResult)
async def submit_document(
    submission: DocumentSubmission,
    pipeline: Annotated[Pipeline, Depends(get_pipeline)],
) -> SubmissionResult:
    """Accept a document and queue it for processing.

    Returns:
        ``{"success": true, "documentId": ..., "message": ...}``

    Raises:
        HTTPException: 400 if the payload cannot be processed (nothing is queued)
            or 503 if the queue is unavailable (the document is marked error)
    """
    try:
        document = await pipeline.submit(submission)
    except SubmissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except EnqueueError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

    message = (
        "Document uploaded and queued for processing"
        if submission.input_kind is InputKind.uploaded_file
        else "Document queued for processing"
    )
    return SubmissionResult(document_id=document.id, message=message)


@router.get("/documents/{document_id}", response_model=Document)
async def get_document(
    document_id: str,
    pipeline: Annotated[Pipeline, Depends(get_pipeline)],
) -> Document:
    """Return the document record, including status and progress."""
    document = await pipeline.context.documents.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document
