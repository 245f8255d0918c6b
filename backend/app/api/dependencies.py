"""FastAPI dependencies resolving the process-wide pipeline."""

from fastapi import Request

from backend.app.orchestration.context import PipelineContext
from backend.app.orchestration.pipeline import Pipeline


def get_pipeline(request: Request) -> Pipeline:
    """Pipeline built by the application lifespan."""
    pipeline: Pipeline = request.app.state.pipeline
    return pipeline


def get_context(request: Request) -> PipelineContext:
    """Collaborators shared with the pipeline."""
    return get_pipeline(request).context
