"""
Notebook Backend: Health Check Route
=====================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database and the summarizer and reports an aggregate status.
Who:   Docker health checks, Render's health probe, uptime monitors.

Status levels:
    - healthy:   all dependencies operational (HTTP 200)
    - degraded:  summarizer unconfigured, unreachable or circuit open (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from notebook import __version__
from notebook.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Health of the backend and its dependencies (database, summarizer, storage).",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Check details:
        Database:   SELECT 1 on the app's engine
        Summarizer: configuration and circuit breaker state, then a model
                    listing call (no token cost)
    """
    state = request.app.state
    db_status = "connected"
    overall = "healthy"

    try:
        async with state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    summarizer_status = state.summarizer.status()
    if summarizer_status == "available" and not await state.summarizer.health_check():
        summarizer_status = "unavailable"
    if summarizer_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        summarizer=summarizer_status,
        storage=state.settings.storage_backend,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
