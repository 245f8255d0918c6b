"""Models package - re-exports for convenience."""

from backend.app.models.document import (
    MIN_CONTENT_CHARS,
    AudioOutput,
    AudioOutputUpdate,
    Chunk,
    ChunkDraft,
    Document,
    DocumentStatus,
    DocumentSubmission,
    DocumentUpdate,
    InputKind,
    SectionType,
    SubmissionResult,
)
from backend.app.models.events import ProgressEvent
from backend.app.models.jobs import NEXT_STAGE, QUEUE_NAMES, Job, JobState, Stage, StageJob

__all__ = [
    "MIN_CONTENT_CHARS",
    "NEXT_STAGE",
    "QUEUE_NAMES",
    "AudioOutput",
    "AudioOutputUpdate",
    "Chunk",
    "ChunkDraft",
    "Document",
    "DocumentStatus",
    "DocumentSubmission",
    "DocumentUpdate",
    "InputKind",
    "Job",
    "JobState",
    "ProgressEvent",
    "SectionType",
    "Stage",
    "StageJob",
    "SubmissionResult",
]
