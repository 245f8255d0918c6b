"""Stage workers: content extraction, script generation, audio generation.

Each worker is a job handler for one queue. It re-reads persisted state on
every run, so a retried or duplicated job resumes against whatever the
previous attempt left behind.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from backend.app.audio.speech import generate_audio_pieces
from backend.app.audio.stitcher import probe_output, stitch_pieces
from backend.app.content.extract import extract_text
from backend.app.content.segmenter import segment_document
from backend.app.models.document import (
    AudioOutputUpdate,
    Document,
    DocumentStatus,
    InputKind,
)
from backend.app.models.jobs import NEXT_STAGE, Job, Stage
from backend.app.orchestration.context import PipelineContext
from backend.app.orchestration.errors import (
    DocumentNotFoundError,
    MissingDependencyError,
    PermanentStageError,
    is_transient,
)
from backend.app.orchestration.state import stage_already_passed

logger = logging.getLogger(__name__)

EnqueueFn = Callable[[Stage, str], Awaitable[object]]


class StageWorker:
    """Failure boundary shared by all stages.

    - document missing: permanent failure, nothing to mark
    - document already ``error``: no-op
    - document already past this stage: duplicate job, no-op
    - redelivered after its final attempt stalled: document marked ``error``
    - transient failure with attempts left: re-raised for a queue retry
    - any other failure: document marked ``error``, PermanentStageError raised
    """

    stage: Stage

    def __init__(self, ctx: PipelineContext, enqueue: EnqueueFn) -> None:
        self._ctx = ctx
        self._enqueue = enqueue

    async def __call__(self, job: Job) -> None:
        document_id = job.document_id
        document = await self._ctx.documents.get_document(document_id)
        if document is None:
            raise PermanentStageError(document_id, str(DocumentNotFoundError(document_id)))

        if document.status is DocumentStatus.error:
            logger.info(f"Skipping {self.stage.value} for document {document_id} already in error")
            return
        if stage_already_passed(document.status, self.stage):
            logger.info(
                f"Skipping duplicate {self.stage.value} job for document {document_id} "
                f"({document.status.value})"
            )
            return
        if job.attempts_exhausted:
            message = f"{self.stage.value} job stalled after {job.max_attempts} attempts"
            logger.error(f"{message} for document {document_id}")
            await self.cleanup(document_id)
            await self._ctx.progress.fail(document_id, message)
            raise PermanentStageError(document_id, message)

        try:
            await self.process(document)
            next_stage = NEXT_STAGE[self.stage]
            if next_stage is not None:
                await self._enqueue(next_stage, document_id)
        except Exception as e:
            await self.cleanup(document_id)

            if is_transient(e) and not job.is_final_attempt:
                logger.warning(
                    f"Transient {self.stage.value} failure for document {document_id} "
                    f"(attempt {job.attempts_made}/{job.max_attempts}): {e}"
                )
                raise

            message = str(e) or type(e).__name__
            logger.error(f"{self.stage.value} stage failed for document {document_id}: {message}")
            await self._ctx.progress.fail(document_id, message)
            raise PermanentStageError(document_id, message) from e

        logger.info(f"{self.stage.value} stage finished for document {document_id}")

    async def process(self, document: Document) -> None:
        raise NotImplementedError

    async def cleanup(self, document_id: str) -> None:
        """Release stage-owned resources after a failed attempt."""
        return None


class ContentStage(StageWorker):
    """Extract text, segment it, persist chunks (organizing, 0-30)."""

    stage = Stage.content

    async def _source_text(self, document: Document) -> str:
        if document.input_kind is InputKind.uploaded_file:
            if not document.file_ref:
                raise MissingDependencyError(f"Document {document.id} has no stored file")
            data = await self._ctx.file_store.read(document.file_ref)
            text = await asyncio.to_thread(extract_text, Path(document.file_ref).name, data)
            logger.info(f"Extracted {len(text)} characters from {document.file_ref}")
            return text
        return document.content or ""

    async def process(self, document: Document) -> None:
        progress = self._ctx.progress
        await progress.advance(document.id, DocumentStatus.organizing, 5, "Extracting content...")

        existing = await self._ctx.chunks.list_chunks(document.id)
        if existing:
            # Chunks are written in one batch, so a previous attempt got this far
            logger.info(f"Reusing {len(existing)} chunks for document {document.id}")
        else:
            text = await self._source_text(document)
            if not text.strip():
                raise ValueError("No text content found in document")

            await progress.advance(
                document.id, DocumentStatus.organizing, 15, "Chunking content into sections..."
            )
            drafts = segment_document(
                text, paragraph_max_chars=self._ctx.settings.paragraph_chunk_max_chars
            )
            if not drafts:
                raise ValueError("No text content found in document")
            await self._ctx.chunks.create_chunks(document.id, drafts)
            logger.info(f"Created {len(drafts)} chunks for document {document.id}")

        await progress.advance(
            document.id, DocumentStatus.organizing, 30, "Content organized into sections"
        )


class ScriptStage(StageWorker):
    """Generate the narration script (generating_script, 30-60)."""

    stage = Stage.script

    async def process(self, document: Document) -> None:
        progress = self._ctx.progress
        await progress.advance(
            document.id, DocumentStatus.generating_script, 40, "Generating narrative script..."
        )

        chunks = await self._ctx.chunks.list_chunks(document.id)
        if not chunks:
            raise MissingDependencyError("No chunks found for document")

        script = await self._ctx.script_generator.generate_script(chunks)
        logger.info(f"Generated script ({len(script)} characters) for document {document.id}")

        if await self._ctx.outputs.get_audio_output(document.id) is None:
            await self._ctx.outputs.create_audio_output(document.id, script)
        else:
            await self._ctx.outputs.update_audio_output(
                document.id, AudioOutputUpdate(script_text=script)
            )

        await progress.advance(
            document.id, DocumentStatus.generating_script, 60, "Script generated successfully"
        )


class AudioStage(StageWorker):
    """Synthesize, stitch and publish audio (generating_audio 60-90, stitching 90-100)."""

    stage = Stage.audio

    async def process(self, document: Document) -> None:
        ctx = self._ctx
        progress = ctx.progress
        storage = ctx.audio_storage

        await progress.advance(
            document.id, DocumentStatus.generating_audio, 65, "Converting script to audio..."
        )

        output = await ctx.outputs.get_audio_output(document.id)
        if output is None or not output.script_text:
            raise MissingDependencyError("No script found for document")

        work_dir = await storage.prepare_work_dir(document.id)

        async def on_piece(current: int, total: int) -> None:
            await progress.advance(
                document.id,
                DocumentStatus.generating_audio,
                65 + int(current / total * 25),
                f"Generating audio chunk {current}/{total}...",
            )

        pieces = await generate_audio_pieces(
            output.script_text,
            work_dir,
            ctx.speech_client,
            max_chars=ctx.settings.tts_max_chars,
            on_progress=on_piece,
        )

        await progress.advance(
            document.id, DocumentStatus.stitching, 90, "Stitching audio chunks..."
        )
        stitched = await stitch_pieces(pieces, work_dir / storage.file_name, ctx.toolkit)
        duration, size = await probe_output(stitched, ctx.toolkit)
        logger.info(f"Audio for document {document.id}: {duration:.1f}s, {size} bytes")

        await progress.advance(document.id, DocumentStatus.stitching, 95, "Saving audio file...")
        await storage.publish(document.id, stitched)

        await ctx.outputs.update_audio_output(
            document.id,
            AudioOutputUpdate(
                audio_url=storage.download_url(document.id),
                duration_seconds=duration,
                file_size_bytes=size,
            ),
        )
        try:
            await progress.advance(
                document.id, DocumentStatus.complete, 100, "Audio generation complete!"
            )
        except Exception:
            # Keep audio_url empty unless the document is complete
            await ctx.outputs.update_audio_output(document.id, AudioOutputUpdate(audio_url=""))
            raise

        await storage.remove_work_dir(document.id)

    async def cleanup(self, document_id: str) -> None:
        await self._ctx.audio_storage.remove_work_dir(document_id)
