"""Validated progress writes to the document state store."""

import logging

from backend.app.db.repositories import DocumentRepository
from backend.app.models.document import Document, DocumentStatus, DocumentUpdate
from backend.app.orchestration.errors import DocumentNotFoundError
from backend.app.orchestration.state import check_transition, clamp_to_band, is_terminal

logger = logging.getLogger(__name__)


class ProgressRecorder:
    """Single write path for document status, progress and step text.

    Every write goes through the transition table, is clamped to the band of
    the persisted status, and never lowers ``progress_percentage``.
    """

    def __init__(self, documents: DocumentRepository) -> None:
        self._documents = documents

    async def _load(self, document_id: str) -> Document:
        document = await self._documents.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def advance(
        self,
        document_id: str,
        status: DocumentStatus,
        progress: int,
        step: str,
    ) -> Document:
        """Move a document forward and record progress.

        Args:
            document_id: Document to update
            status: Requested status (must be reachable from the current one)
            progress: Requested percentage; clamped to the band of the status
            step: Human-readable current step

        Returns:
            Updated document

        Raises:
            DocumentNotFoundError: If the document does not exist
            IllegalTransitionError: If the transition is not allowed
        """
        document = await self._load(document_id)
        target = check_transition(document.status, status)
        value = max(document.progress_percentage, clamp_to_band(target, progress))

        return await self._documents.update_document(
            document_id,
            DocumentUpdate(status=target, progress_percentage=value, current_step=step),
        )

    async def fail(self, document_id: str, message: str) -> Document | None:
        """Mark a document ``error`` with a message.

        Already-terminal and missing documents are left untouched.

        Returns:
            Updated document, or None if nothing was written
        """
        document = await self._documents.get_document(document_id)
        if document is None:
            logger.warning(f"Cannot mark missing document {document_id} as failed")
            return None
        if is_terminal(document.status):
            return None

        return await self._documents.update_document(
            document_id,
            DocumentUpdate(
                status=DocumentStatus.error,
                current_step="Processing failed",
                error_message=message,
            ),
        )
