"""Health check endpoints."""

import redis
from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tldw.config import settings
from tldw.logging import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    components: dict[str, bool] | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response.

    ``broker`` is None when the Celery broker is not Redis (e.g. the
    in-memory transport used in tests) and is not probed.
    """

    ready: bool
    database: bool
    broker: bool | None = None


def live_integrations() -> dict[str, bool]:
    """Which external integrations are configured live rather than stubbed."""
    return {
        "llm": settings.llm_mode != "stub",
        "transcripts": settings.transcript_provider != "stub",
        "payments": settings.payment_provider != "stub",
    }


def _database_ok() -> bool:
    from tldw.db.session import engine

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
    return True


def _broker_ok() -> bool | None:
    if not settings.celery_broker_url.startswith(("redis://", "rediss://")):
        return None
    try:
        redis.from_url(settings.celery_broker_url, socket_timeout=2).ping()
    except redis.RedisError as e:
        logger.error("broker_health_check_failed", error=str(e))
        return False
    return True


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Basic health check endpoint that verifies the API is running.",
)
async def health_check() -> HealthResponse:
    from tldw import __version__

    return HealthResponse(status="healthy", version=__version__, components=live_integrations())


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Verifies the database and, for Redis brokers, the Celery broker.",
)
async def readiness_check() -> ReadinessResponse:
    database = _database_ok()
    broker = _broker_ok()
    return ReadinessResponse(ready=database and broker is not False, database=database, broker=broker)


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Simple liveness probe for Kubernetes.",
)
async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe - is the process alive?"""
    return {"status": "alive"}
