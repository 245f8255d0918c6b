"""Health check endpoints.

- /health: process is up
- /healthz: database and Redis connectivity with component details
"""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text

from backend.app.api.dependencies import get_context
from backend.app.orchestration.context import PipelineContext

router = APIRouter()


async def check_db(ctx: PipelineContext) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    if ctx.engine is None:
        return (True, "in_memory")

    try:
        async with ctx.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(ctx: PipelineContext) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if ctx.redis_client is None:
        return (True, "not_configured")

    try:
        await ctx.redis_client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(
    ctx: Annotated[PipelineContext, Depends(get_context)],
) -> dict[str, Any] | Response:
    """Health check endpoint.

    Returns:
        200 with component status if core systems ok
        503 if the database or Redis is unreachable
    """
    db_ok, db_status = await check_db(ctx)
    redis_ok, redis_status = await check_redis(ctx)

    core_ok = db_ok and redis_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
        },
    }

    if not core_ok:
        return Response(
            content=json.dumps(response_body),
            status_code=503,
            media_type="application/json",
        )

    return response_body
