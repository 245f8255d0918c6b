"""Document, chunk and audio output domain models."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

# Canonical minimum length for pasted text submissions
MIN_CONTENT_CHARS = 10


class DocumentStatus(str, Enum):
    """Lifecycle status of a submitted document."""

    queued = "queued"
    organizing = "organizing"
    generating_script = "generating_script"
    generating_audio = "generating_audio"
    stitching = "stitching"
    complete = "complete"
    error = "error"


class InputKind(str, Enum):
    """How the source text was provided."""

    text = "text"
    uploaded_file = "uploaded_file"


class SectionType(str, Enum):
    """Classification of a chunk of source text."""

    planned_releases = "planned_releases"
    tech_releases = "tech_releases"
    bugs_fixes = "bugs_fixes"
    other = "other"


class Document(BaseModel):
    """One submission and its pipeline progress."""

    id: str
    title: str
    input_kind: InputKind
    content: str | None = None
    file_ref: str | None = None
    status: DocumentStatus = DocumentStatus.queued
    progress_percentage: int = Field(0, ge=0, le=100)
    current_step: str = ""
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class DocumentUpdate(BaseModel):
    """Partial whole-field upsert payload for a document.

    Only fields that were explicitly set are written.
    """

    status: DocumentStatus | None = None
    progress_percentage: int | None = Field(None, ge=0, le=100)
    current_step: str | None = None
    error_message: str | None = None


class ChunkDraft(BaseModel):
    """Segmenter output before persistence."""

    section_type: SectionType
    heading: str
    content: str
    chunk_order: int = Field(..., ge=0)


class Chunk(ChunkDraft):
    """Persisted, ordered section of a document."""

    id: str
    document_id: str
    created_at: datetime


class AudioOutput(BaseModel):
    """Generated script and, once available, the stitched audio."""

    id: str
    document_id: str
    script_text: str
    audio_url: str = ""
    duration_seconds: float = Field(0.0, ge=0)
    file_size_bytes: int = Field(0, ge=0)
    created_at: datetime


class AudioOutputUpdate(BaseModel):
    """Partial upsert payload for an audio output."""

    script_text: str | None = None
    audio_url: str | None = None
    duration_seconds: float | None = Field(None, ge=0)
    file_size_bytes: int | None = Field(None, ge=0)


class DocumentSubmission(BaseModel):
    """Client submission, validated before any job is enqueued."""

    title: str = Field(..., min_length=1, max_length=200)
    input_kind: InputKind
    content: str | None = None
    file_name: str | None = None
    file_content: str | None = Field(None, description="Base64-encoded file bytes")

    @model_validator(mode="after")
    def check_payload(self) -> "DocumentSubmission":
        """Require the fields matching the input kind."""
        if self.input_kind == InputKind.text:
            if self.content is None or len(self.content.strip()) < MIN_CONTENT_CHARS:
                raise ValueError(
                    f"Content must be at least {MIN_CONTENT_CHARS} characters"
                )
        else:
            if not self.file_name or not self.file_content:
                raise ValueError("file_name and file_content are required for uploads")
        return self


class SubmissionResult(BaseModel):
    """Response for an accepted submission."""

    success: Literal[True] = True
    document_id: str = Field(..., serialization_alias="documentId")
    message: str
