"""Progress event models - what the progress stream publishes."""

from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.document import Document, DocumentStatus


class ProgressEvent(BaseModel):
    """One progress frame for a document.

    Wire format uses camelCase keys: status, progress, currentStep, errorMessage.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: DocumentStatus
    progress: int = Field(..., ge=0, le=100)
    current_step: str = Field("", alias="currentStep")
    error_message: str | None = Field(None, alias="errorMessage")

    @classmethod
    def from_document(cls, document: Document) -> "ProgressEvent":
        """Build a frame from the current document record."""
        return cls(
            status=document.status,
            progress=document.progress_percentage,
            current_step=document.current_step,
            error_message=document.error_message,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (DocumentStatus.complete, DocumentStatus.error)

    def to_wire(self) -> str:
        """Serialize with wire aliases, omitting an absent error message."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
