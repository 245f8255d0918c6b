"""Process-wide collaborators, built once at startup and passed explicitly."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.audio.speech import SpeechClient, get_speech_client
from backend.app.audio.stitcher import FfmpegToolkit, MediaToolkit
from backend.app.audio.storage import AudioStorage
from backend.app.config import Settings
from backend.app.content.extract import FileStore, LocalFileStore
from backend.app.db.engine import create_async_engine_from_settings, create_session_factory
from backend.app.db.inmemory import (
    InMemoryAudioOutputRepository,
    InMemoryChunkRepository,
    InMemoryDocumentRepository,
)
from backend.app.db.models import Base
from backend.app.db.repositories import (
    AudioOutputRepository,
    ChunkRepository,
    DocumentRepository,
)
from backend.app.db.sql_repositories import (
    SqlAudioOutputRepository,
    SqlChunkRepository,
    SqlDocumentRepository,
)
from backend.app.llm.client import ScriptGenerator, get_script_generator
from backend.app.models.jobs import QUEUE_NAMES, Stage
from backend.app.orchestration.progress import ProgressRecorder
from backend.app.queue.jobs import JobOptions, JobQueue
from backend.app.queue.memory import InMemoryJobQueue
from backend.app.queue.redis_queue import RedisJobQueue
from backend.app.queue.worker_pool import JobLogger, JobMetrics
from backend.app.utils.logging import StructuredJobLogger
from backend.app.utils.metrics import PrometheusJobMetrics

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Everything the stages, pools and API routes need."""

    settings: Settings
    documents: DocumentRepository
    chunks: ChunkRepository
    outputs: AudioOutputRepository
    file_store: FileStore
    script_generator: ScriptGenerator
    speech_client: SpeechClient
    toolkit: MediaToolkit
    audio_storage: AudioStorage
    queues: dict[Stage, JobQueue]
    metrics: JobMetrics = field(default_factory=JobMetrics)
    job_logger: JobLogger = field(default_factory=JobLogger)
    engine: AsyncEngine | None = None
    redis_client: redis.Redis | None = None

    @property
    def progress(self) -> ProgressRecorder:
        return ProgressRecorder(self.documents)

    async def initialize(self) -> None:
        """Create tables for SQLite databases (development convenience)."""
        if self.engine is not None and self.engine.dialect.name == "sqlite":
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

    async def aclose(self) -> None:
        """Release queue, HTTP and database resources."""
        for queue in self.queues.values():
            await queue.close()

        aclose = getattr(self.speech_client, "aclose", None)
        if aclose is not None:
            await aclose()

        if self.redis_client is not None:
            await self.redis_client.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def build_context(settings: Settings) -> PipelineContext:
    """Build the collaborators selected by configuration.

    SQL repositories when DATABASE_URL is set, in-memory otherwise.
    Redis queues when REDIS_URL is set, in-process queues otherwise.
    """
    engine: AsyncEngine | None = None
    documents: DocumentRepository
    chunks: ChunkRepository
    outputs: AudioOutputRepository

    if settings.database_url:
        engine = create_async_engine_from_settings(settings)
        session_factory = create_session_factory(engine)
        documents = SqlDocumentRepository(session_factory)
        chunks = SqlChunkRepository(session_factory)
        outputs = SqlAudioOutputRepository(session_factory)
    else:
        logger.warning("DATABASE_URL not set, using in-memory repositories")
        documents = InMemoryDocumentRepository()
        chunks = InMemoryChunkRepository()
        outputs = InMemoryAudioOutputRepository()

    options = JobOptions.from_settings(settings)
    redis_client: redis.Redis | None = None
    queues: dict[Stage, JobQueue]

    if settings.redis_url:
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        queues = {
            stage: RedisJobQueue(redis_client, name, options) for stage, name in QUEUE_NAMES.items()
        }
    else:
        logger.warning("REDIS_URL not set, using in-process job queues")
        queues = {stage: InMemoryJobQueue(name, options) for stage, name in QUEUE_NAMES.items()}

    return PipelineContext(
        settings=settings,
        documents=documents,
        chunks=chunks,
        outputs=outputs,
        file_store=LocalFileStore(Path(settings.uploads_root)),
        script_generator=get_script_generator(settings),
        speech_client=get_speech_client(settings),
        toolkit=FfmpegToolkit(settings.ffmpeg_bin, settings.ffprobe_bin),
        audio_storage=AudioStorage(
            Path(settings.work_root),
            Path(settings.audio_storage_root),
            settings.audio_file_name,
        ),
        queues=queues,
        metrics=PrometheusJobMetrics(),
        job_logger=StructuredJobLogger(),
        engine=engine,
        redis_client=redis_client,
    )
