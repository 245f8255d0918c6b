"""FastAPI application."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from fastapi import FastAPI

from backend.app.api.routes.audio import router as audio_router
from backend.app.api.routes.documents import router as documents_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.api.routes.progress import router as progress_router
from backend.app.config import get_settings
from backend.app.orchestration.cleanup import run_cleanup_loop
from backend.app.orchestration.context import PipelineContext, build_context
from backend.app.orchestration.pipeline import Pipeline
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(context: PipelineContext | None = None) -> FastAPI:
    """Create the API application.

    Args:
        context: Prebuilt collaborators (tests); built from settings when omitted
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if context is None:
            settings = get_settings()
            configure_logging(settings.log_level)
            ctx = build_context(settings)
        else:
            ctx = context
        await ctx.initialize()
        pipeline = Pipeline(ctx)
        app.state.pipeline = pipeline

        cleanup_task: asyncio.Task[None] | None = None
        if ctx.settings.workers_in_api:
            logger.info("Running stage workers inside the API process")
            await pipeline.start()
            cleanup_task = asyncio.create_task(
                run_cleanup_loop(
                    Path(ctx.settings.audio_storage_root),
                    max_age_hours=ctx.settings.cleanup_max_age_hours,
                    interval_seconds=ctx.settings.cleanup_interval_seconds,
                    file_name=ctx.settings.audio_file_name,
                )
            )

        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
                await asyncio.gather(cleanup_task, return_exceptions=True)
            await pipeline.stop()
            if context is None:
                await ctx.aclose()

    app = FastAPI(title="Newsletter Narrator API", version="0.1.0", lifespan=lifespan)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(documents_router)
    app.include_router(audio_router)
    app.include_router(progress_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Newsletter Narrator API", "version": "0.1.0"}

    return app


app = create_app()
