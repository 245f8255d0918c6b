"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fakes import FakeMediaToolkit, FakeScriptGenerator, FakeSpeechClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.audio.storage import AudioStorage
from backend.app.config import Settings
from backend.app.content.extract import LocalFileStore
from backend.app.db.inmemory import (
    InMemoryAudioOutputRepository,
    InMemoryChunkRepository,
    InMemoryDocumentRepository,
)
from backend.app.db.models import Base
from backend.app.models.jobs import QUEUE_NAMES
from backend.app.orchestration.context import PipelineContext
from backend.app.queue.jobs import JobOptions
from backend.app.queue.memory import InMemoryJobQueue


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory with fast retries."""
    return Settings(
        _env_file=None,
        database_url="",
        redis_url="",
        work_root=str(tmp_path / "temp"),
        audio_storage_root=str(tmp_path / "temp-audio"),
        uploads_root=str(tmp_path / "uploads"),
        job_backoff_seconds=0.01,
        progress_poll_interval_seconds=0.01,
    )


@pytest.fixture
def script_generator() -> FakeScriptGenerator:
    return FakeScriptGenerator()


@pytest.fixture
def speech_client() -> FakeSpeechClient:
    return FakeSpeechClient()


@pytest.fixture
def toolkit() -> FakeMediaToolkit:
    return FakeMediaToolkit()


@pytest.fixture
def context(
    settings: Settings,
    script_generator: FakeScriptGenerator,
    speech_client: FakeSpeechClient,
    toolkit: FakeMediaToolkit,
) -> PipelineContext:
    """In-memory pipeline context wired with fake collaborators."""
    options = JobOptions.from_settings(settings)
    return PipelineContext(
        settings=settings,
        documents=InMemoryDocumentRepository(),
        chunks=InMemoryChunkRepository(),
        outputs=InMemoryAudioOutputRepository(),
        file_store=LocalFileStore(Path(settings.uploads_root)),
        script_generator=script_generator,
        speech_client=speech_client,
        toolkit=toolkit,
        audio_storage=AudioStorage(
            Path(settings.work_root), Path(settings.audio_storage_root), settings.audio_file_name
        ),
        queues={stage: InMemoryJobQueue(name, options) for stage, name in QUEUE_NAMES.items()},
    )


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Async SQLite engine with the schema created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires POSTGRES_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("POSTGRES_URL")
    if not database_url:
        pytest.skip("POSTGRES_URL not set - skipping postgres test")

    # Convert to async driver if needed
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=False,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup: drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

