"""Health and probe endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from settlement_engine import __version__
from settlement_engine.api.dependencies import Config, DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service health with the queues this instance drains."""

    status: str
    version: str
    timestamp: datetime
    database: str
    queue: str
    error_queue: str


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, config: Config) -> HealthResponse:
    """Report degraded, not down, when the database is unreachable."""
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        database=database,
        queue=config.queue.queue_name,
        error_queue=config.queue.error_queue_name,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
