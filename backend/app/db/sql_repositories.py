"""SQL implementations of repository interfaces.

Each operation runs in its own short-lived session so concurrent stage
workers never share a session.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.models import AudioOutput as AudioOutputDB
from backend.app.db.models import Chunk as ChunkDB
from backend.app.db.models import Document as DocumentDB
from backend.app.models.document import (
    AudioOutput,
    AudioOutputUpdate,
    Chunk,
    ChunkDraft,
    Document,
    DocumentStatus,
    DocumentUpdate,
    InputKind,
    SectionType,
)
from backend.app.orchestration.errors import DocumentNotFoundError, MissingDependencyError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_document(row: DocumentDB) -> Document:
    return Document(
        id=row.id,
        title=row.title,
        input_kind=InputKind(row.input_kind),
        content=row.content,
        file_ref=row.file_ref,
        status=DocumentStatus(row.status),
        progress_percentage=row.progress_percentage,
        current_step=row.current_step,
        error_message=row.error_message,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_chunk(row: ChunkDB) -> Chunk:
    return Chunk(
        id=row.id,
        document_id=row.document_id,
        section_type=SectionType(row.section_type),
        heading=row.heading,
        content=row.content,
        chunk_order=row.chunk_order,
        created_at=row.created_at,
    )


def _to_audio_output(row: AudioOutputDB) -> AudioOutput:
    return AudioOutput(
        id=row.id,
        document_id=row.document_id,
        script_text=row.script_text,
        audio_url=row.audio_url,
        duration_seconds=row.duration_seconds,
        file_size_bytes=row.file_size_bytes,
        created_at=row.created_at,
    )


class SqlDocumentRepository:
    """SQL implementation of DocumentRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

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
        row = DocumentDB(
            id=str(uuid.uuid4()),
            title=title,
            input_kind=input_kind.value,
            content=content,
            file_ref=file_ref,
            status=DocumentStatus.queued.value,
            progress_percentage=0,
            current_step="Queued for processing",
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
            return _to_document(row)

    async def get_document(self, document_id: str) -> Document | None:
        """Get document by ID."""
        async with self._session_factory() as session:
            row = await session.get(DocumentDB, document_id)
            return _to_document(row) if row is not None else None

    async def update_document(self, document_id: str, update: DocumentUpdate) -> Document:
        """Upsert explicitly-set fields."""
        async with self._session_factory() as session:
            row = await session.get(DocumentDB, document_id)
            if row is None:
                raise DocumentNotFoundError(document_id)

            for field, value in update.model_dump(exclude_unset=True, mode="json").items():
                setattr(row, field, value)
            row.updated_at = _now()

            await session.commit()
            return _to_document(row)


class SqlChunkRepository:
    """SQL implementation of ChunkRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_chunks(self, document_id: str, drafts: list[ChunkDraft]) -> list[Chunk]:
        """Persist all chunks in a single transaction."""
        now = _now()
        rows = [
            ChunkDB(
                id=str(uuid.uuid4()),
                document_id=document_id,
                section_type=draft.section_type.value,
                heading=draft.heading,
                content=draft.content,
                chunk_order=draft.chunk_order,
                created_at=now,
            )
            for draft in drafts
        ]
        async with self._session_factory() as session:
            session.add_all(rows)
            await session.commit()
            return [_to_chunk(row) for row in rows]

    async def list_chunks(self, document_id: str) -> list[Chunk]:
        """List chunks ordered by chunk_order."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ChunkDB)
                .where(ChunkDB.document_id == document_id)
                .order_by(ChunkDB.chunk_order)
            )
            return [_to_chunk(row) for row in result.scalars().all()]


class SqlAudioOutputRepository:
    """SQL implementation of AudioOutputRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _get_row(self, session: AsyncSession, document_id: str) -> AudioOutputDB | None:
        result = await session.execute(
            select(AudioOutputDB).where(AudioOutputDB.document_id == document_id)
        )
        return result.scalar_one_or_none()

    async def create_audio_output(self, document_id: str, script_text: str) -> AudioOutput:
        """Create the output record with empty audio fields."""
        row = AudioOutputDB(
            id=str(uuid.uuid4()),
            document_id=document_id,
            script_text=script_text,
            audio_url="",
            duration_seconds=0.0,
            file_size_bytes=0,
            created_at=_now(),
        )
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
            return _to_audio_output(row)

    async def get_audio_output(self, document_id: str) -> AudioOutput | None:
        """Get output by document ID."""
        async with self._session_factory() as session:
            row = await self._get_row(session, document_id)
            return _to_audio_output(row) if row is not None else None

    async def update_audio_output(
        self, document_id: str, update: AudioOutputUpdate
    ) -> AudioOutput:
        """Upsert explicitly-set fields."""
        async with self._session_factory() as session:
            row = await self._get_row(session, document_id)
            if row is None:
                raise MissingDependencyError(
                    f"Audio output for document {document_id} not found"
                )

            for field, value in update.model_dump(exclude_unset=True).items():
                setattr(row, field, value)

            await session.commit()
            return _to_audio_output(row)
