"""In-memory implementations of repository interfaces."""

import asyncio
import uuid
from datetime import datetime, timezone

from backend.app.models.document import (
    AudioOutput,
    AudioOutputUpdate,
    Chunk,
    ChunkDraft,
    Document,
    DocumentUpdate,
    InputKind,
)
from backend.app.orchestration.errors import DocumentNotFoundError, MissingDependencyError


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentRepository:
    """In-memory implementation of DocumentRepository."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._lock = asyncio.Lock()

    async def create_document(
        self,
        *,
        title: str,
        input_kind: InputKind,
        content: str | None = None,
        file_ref: str | None = None,
    ) -> Document:
        """Create a new document."""
        now = _now()
        document = Document(
            id=str(uuid.uuid4()),
            title=title,
            input_kind=input_kind,
            content=content,
            file_ref=file_ref,
            current_step="Queued for processing",
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._documents[document.id] = document
        return document

    async def get_document(self, document_id: str) -> Document | None:
        """Get document by ID."""
        return self._documents.get(document_id)

    async def update_document(self, document_id: str, update: DocumentUpdate) -> Document:
        """Upsert explicitly-set fields."""
        async with self._lock:
            record = self._documents.get(document_id)
            if record is None:
                raise DocumentNotFoundError(document_id)

            fields = update.model_dump(exclude_unset=True)
            updated = record.model_copy(update={**fields, "updated_at": _now()})
            self._documents[document_id] = updated
            return updated

    async def delete_document(self, document_id: str) -> None:
        """Remove a document (external teardown, used by tests)."""
        async with self._lock:
            self._documents.pop(document_id, None)


class InMemoryChunkRepository:
    """In-memory implementation of ChunkRepository."""

    def __init__(self) -> None:
        self._chunks: dict[str, list[Chunk]] = {}

    async def create_chunks(self, document_id: str, drafts: list[ChunkDraft]) -> list[Chunk]:
        """Persist all chunks in one batch."""
        now = _now()
        chunks = [
            Chunk(
                id=str(uuid.uuid4()),
                document_id=document_id,
                created_at=now,
                **draft.model_dump(),
            )
            for draft in drafts
        ]
        self._chunks.setdefault(document_id, []).extend(chunks)
        return chunks

    async def list_chunks(self, document_id: str) -> list[Chunk]:
        """List chunks ordered by chunk_order."""
        return sorted(self._chunks.get(document_id, []), key=lambda c: c.chunk_order)


class InMemoryAudioOutputRepository:
    """In-memory implementation of AudioOutputRepository."""

    def __init__(self) -> None:
        self._outputs: dict[str, AudioOutput] = {}

    async def create_audio_output(self, document_id: str, script_text: str) -> AudioOutput:
        """Create the output record with empty audio fields."""
        output = AudioOutput(
            id=str(uuid.uuid4()),
            document_id=document_id,
            script_text=script_text,
            created_at=_now(),
        )
        self._outputs[document_id] = output
        return output

    async def get_audio_output(self, document_id: str) -> AudioOutput | None:
        """Get output by document ID."""
        return self._outputs.get(document_id)

    async def update_audio_output(
        self, document_id: str, update: AudioOutputUpdate
    ) -> AudioOutput:
        """Upsert explicitly-set fields."""
        record = self._outputs.get(document_id)
        if record is None:
            raise MissingDependencyError(f"Audio output for document {document_id} not found")

        updated = record.model_copy(update=update.model_dump(exclude_unset=True))
        self._outputs[document_id] = updated
        return updated
