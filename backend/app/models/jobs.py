"""Job payloads and queue records."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Stage(str, Enum):
    """Pipeline stage, one queue each."""

    content = "content"
    script = "script"
    audio = "audio"


QUEUE_NAMES: dict[Stage, str] = {
    Stage.content: "document-processing",
    Stage.script: "script-generation",
    Stage.audio: "audio-generation",
}

NEXT_STAGE: dict[Stage, Stage | None] = {
    Stage.content: Stage.script,
    Stage.script: Stage.audio,
    Stage.audio: None,
}


class StageJob(BaseModel):
    """The only cross-stage wire contract: ``{"documentId": ...}``."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., min_length=1, alias="documentId")


class JobState(str, Enum):
    """Queue-side job state."""

    waiting = "waiting"
    active = "active"
    delayed = "delayed"
    completed = "completed"
    dead = "dead"


class Job(BaseModel):
    """A queued unit of work for one stage."""

    id: str
    queue: str
    payload: StageJob
    attempts_made: int = 0
    max_attempts: int = 3
    state: JobState = JobState.waiting
    created_at: datetime
    finished_at: datetime | None = None
    failed_reason: str | None = None

    @property
    def document_id(self) -> str:
        return self.payload.document_id

    @property
    def is_final_attempt(self) -> bool:
        return self.attempts_made >= self.max_attempts

    @property
    def attempts_exhausted(self) -> bool:
        """Redelivered after its final attempt stalled; nothing left to run."""
        return self.attempts_made > self.max_attempts
