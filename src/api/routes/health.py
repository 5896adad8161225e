"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.dependencies import get_notification_engine
from core.config import settings
from domain.services.notification_engine import NotificationEngine
from infrastructure.database.session import get_async_session

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    environment: str
    database: str | None = None
    scheduler: str | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    """Liveness probe; touches no dependencies."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        timestamp=_now(),
        environment=settings.app_env,
    )


@router.get(
    "/health/detailed",
    response_model=HealthResponse,
    summary="Detailed health check",
)
async def detailed_health_check(
    db: AsyncSession = Depends(get_async_session),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> HealthResponse:
    """
    Health check including database connectivity and scheduler state.

    Reports ``degraded`` when the database is unreachable or the engine
    has been stopped.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {e}"

    healthy = db_status == "healthy" and engine.is_active()
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        version=VERSION,
        timestamp=_now(),
        environment=settings.app_env,
        database=db_status,
        scheduler=engine.scheduler_state.value,
    )
