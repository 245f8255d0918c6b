"""Repository protocol interfaces for data access.

The pipeline only needs get/create/update-by-id and list-by-parent-id from
storage. All calls are awaitable suspension points.
"""

from typing import Protocol

from backend.app.models.document import (
    AudioOutput,
    AudioOutputUpdate,
    Chunk,
    ChunkDraft,
    Document,
    DocumentUpdate,
    InputKind,
)


class DocumentRepository(Protocol):
    """Document state store."""

    async def create_document(
        self,
        *,
        title: str,
        input_kind: InputKind,
        content: str | None = None,
        file_ref: str | None = None,
    ) -> Document:
        """Create a new document in ``queued`` status.

        Args:
            title: Document title
            input_kind: How the source was provided
            content: Pasted text (text input)
            file_ref: Stored file reference (uploaded file input)

        Returns:
            Created document
        """
        ...

    async def get_document(self, document_id: str) -> Document | None:
        """Get document by ID.

        Returns:
            Document or None if not found
        """
        ...

    async def update_document(self, document_id: str, update: DocumentUpdate) -> Document:
        """Upsert the explicitly-set fields of a document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        ...


class ChunkRepository(Protocol):
    """Chunk storage."""

    async def create_chunks(self, document_id: str, drafts: list[ChunkDraft]) -> list[Chunk]:
        """Persist all chunks of a document in one batch."""
        ...

    async def list_chunks(self, document_id: str) -> list[Chunk]:
        """List chunks of a document ordered by chunk_order."""
        ...


class AudioOutputRepository(Protocol):
    """Audio output storage (at most one per document)."""

    async def create_audio_output(self, document_id: str, script_text: str) -> AudioOutput:
        """Create the output record with script text and empty audio fields."""
        ...

    async def get_audio_output(self, document_id: str) -> AudioOutput | None:
        """Get the output record for a document."""
        ...

    async def update_audio_output(
        self, document_id: str, update: AudioOutputUpdate
    ) -> AudioOutput:
        """Upsert explicitly-set fields.

        Raises:
            MissingDependencyError: If no output exists for the document
        """
        ...
