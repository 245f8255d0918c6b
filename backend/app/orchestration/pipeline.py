"""Pipeline orchestrator - three chained queues, one worker pool each."""

import base64
import binascii
import logging
from pathlib import Path

from backend.app.content.extract import DOCX_SUFFIXES, TEXT_SUFFIXES
from backend.app.models.document import Document, DocumentStatus, DocumentSubmission, InputKind
from backend.app.models.jobs import Job, Stage, StageJob
from backend.app.orchestration.context import PipelineContext
from backend.app.orchestration.errors import DocumentNotFoundError
from backend.app.orchestration.stages import AudioStage, ContentStage, ScriptStage, StageWorker
from backend.app.queue.worker_pool import WorkerPool
from backend.app.utils.metrics import documents_submitted_total

logger = logging.getLogger(__name__)


class SubmissionError(ValueError):
    """Submission rejected before any job was enqueued."""

    pass


class EnqueueError(RuntimeError):
    """Document was stored but its first job could not be queued; it is marked ``error``."""

    def __init__(self, document_id: str, message: str) -> None:
        self.document_id = document_id
        super().__init__(message)


class Pipeline:
    """Submits documents and runs the content -> script -> audio stage pools."""

    def __init__(self, ctx: PipelineContext) -> None:
        self._ctx = ctx
        settings = ctx.settings

        self.stages: dict[Stage, StageWorker] = {
            Stage.content: ContentStage(ctx, self.enqueue),
            Stage.script: ScriptStage(ctx, self.enqueue),
            Stage.audio: AudioStage(ctx, self.enqueue),
        }
        concurrency = {
            Stage.content: settings.content_concurrency,
            Stage.script: settings.script_concurrency,
            Stage.audio: settings.audio_concurrency,
        }
        self.pools: dict[Stage, WorkerPool] = {
            stage: WorkerPool(
                ctx.queues[stage],
                self.stages[stage],
                concurrency=concurrency[stage],
                metrics=ctx.metrics,
                job_logger=ctx.job_logger,
            )
            for stage in Stage
        }

    @property
    def context(self) -> PipelineContext:
        return self._ctx

    async def submit(self, submission: DocumentSubmission) -> Document:
        """Validate, persist and enqueue a new document.

        Returns:
            The created document (status ``queued``)

        Raises:
            SubmissionError: If the payload is unusable; nothing is created
            EnqueueError: If the queue rejected the content job
        """
        settings = self._ctx.settings
        content: str | None = None
        file_ref: str | None = None

        if submission.input_kind is InputKind.text:
            content = submission.content or ""
            if len(content.strip()) < settings.min_content_chars:
                raise SubmissionError(
                    f"Content must be at least {settings.min_content_chars} characters"
                )
        else:
            file_name = Path(submission.file_name or "").name
            suffix = Path(file_name).suffix.lower()
            if suffix not in DOCX_SUFFIXES | TEXT_SUFFIXES:
                raise SubmissionError(f"Unsupported file type: {suffix or file_name}")
            try:
                data = base64.b64decode(submission.file_content or "", validate=True)
            except binascii.Error as e:
                raise SubmissionError("file_content must be valid base64") from e
            if not data:
                raise SubmissionError("Uploaded file is empty")
            file_ref = await self._ctx.file_store.save(file_name, data)

        document = await self._ctx.documents.create_document(
            title=submission.title,
            input_kind=submission.input_kind,
            content=content,
            file_ref=file_ref,
        )
        try:
            await self.enqueue(Stage.content, document.id)
        except Exception as e:
            message = f"Could not queue document for processing: {type(e).__name__}"
            logger.error(f"{message} (document {document.id}): {e}")
            await self._ctx.progress.fail(document.id, message)
            raise EnqueueError(document.id, message) from e
        documents_submitted_total.labels(input_kind=submission.input_kind.value).inc()

        logger.info(f"Document {document.id} submitted ({submission.input_kind.value})")
        return document

    async def enqueue(self, stage: Stage, document_id: str) -> Job | None:
        """Add a stage job for a document.

        Documents in ``error`` are never re-enqueued.

        Returns:
            The queued job, or None if the document is in ``error``

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self._ctx.documents.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        if document.status is DocumentStatus.error:
            logger.warning(f"Refusing to enqueue {stage.value} for document {document_id} in error")
            return None

        job = await self._ctx.queues[stage].enqueue(StageJob(document_id=document_id))
        logger.debug(f"Enqueued {stage.value} job {job.id} for document {document_id}")
        return job

    async def start(self) -> None:
        """Start all worker pools."""
        for pool in self.pools.values():
            await pool.start()

    async def stop(self, grace_seconds: float = 30.0) -> None:
        """Stop all worker pools, waiting for in-flight jobs."""
        for pool in self.pools.values():
            await pool.stop(grace_seconds)
