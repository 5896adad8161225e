"""Engine control surface, digests and audit trail routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.v1.dependencies import get_notification_engine
from api.v1.schemas.common import ErrorResponse
from api.v1.schemas.engine import (
    AuditEntryResponse,
    AuditListResponse,
    BriefingResponse,
    DigestListResponse,
    DigestResponse,
    EngineStatusResponse,
    TickResponse,
)
from api.v1.schemas.notification import NotificationResponse, StatsResponse
from core.rate_limit import CONTROL_LIMIT, READ_LIMIT, limiter
from domain.entities.audit import AuditSeverity
from domain.entities.notification import NotificationRecord
from domain.services.notification_engine import NotificationEngine

router = APIRouter(prefix="/engine", tags=["engine"])
digests_router = APIRouter(prefix="/digests", tags=["digests"])
audit_router = APIRouter(prefix="/audit", tags=["audit"])


def _briefing(record: NotificationRecord | None) -> BriefingResponse:
    if record is None:
        return BriefingResponse(created=False)
    return BriefingResponse(created=True, notification=NotificationResponse.model_validate(record))


@router.get("/status", response_model=EngineStatusResponse, summary="Engine status")
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_status(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> EngineStatusResponse:
    return EngineStatusResponse(
        state=engine.scheduler_state,
        active=engine.is_active(),
        stats=StatsResponse.model_validate(engine.get_stats()),
    )


@router.post(
    "/tick",
    response_model=TickResponse,
    summary="Run one evaluation pass now",
    responses={409: {"model": ErrorResponse, "description": "Engine is stopped"}},
)
@limiter.limit(CONTROL_LIMIT)  # type: ignore[untyped-decorator]
async def run_tick(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> TickResponse:
    return TickResponse.model_validate(await engine.tick())


@router.post(
    "/daily-briefing",
    response_model=BriefingResponse,
    summary="Send today's briefing",
    responses={409: {"model": ErrorResponse, "description": "Engine is stopped"}},
)
@limiter.limit(CONTROL_LIMIT)  # type: ignore[untyped-decorator]
async def daily_briefing(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> BriefingResponse:
    """Idempotent per calendar day: a second call the same day creates nothing."""
    return _briefing(await engine.generate_daily_briefing())


@router.post(
    "/weekly-summary",
    response_model=BriefingResponse,
    summary="Send the weekly summary",
    responses={409: {"model": ErrorResponse, "description": "Engine is stopped"}},
)
@limiter.limit(CONTROL_LIMIT)  # type: ignore[untyped-decorator]
async def weekly_summary(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> BriefingResponse:
    return _briefing(await engine.generate_weekly_summary())


@digests_router.get("", response_model=DigestListResponse, summary="List digests")
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_digests(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> DigestListResponse:
    return DigestListResponse(data=[DigestResponse.model_validate(d) for d in engine.list_digests()])


@digests_router.get(
    "/{digest_id}",
    response_model=DigestResponse,
    summary="Get a digest",
    responses={404: {"model": ErrorResponse, "description": "Digest not found"}},
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_digest(
    request: Request,
    digest_id: UUID,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> DigestResponse:
    return DigestResponse.model_validate(engine.get_digest(digest_id))


@audit_router.get("", response_model=AuditListResponse, summary="List audit entries")
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_audit_entries(
    request: Request,
    severity: AuditSeverity | None = Query(None, description="Filter by severity"),
    category: str | None = Query(None, description="Filter by category, e.g. digest.flushed"),
    limit: int = Query(50, ge=1, le=200, description="Page size"),
    offset: int = Query(0, ge=0, description="Entries to skip"),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> AuditListResponse:
    entries = await engine.list_audit_entries(
        limit=limit, offset=offset, severity=severity, category=category
    )
    return AuditListResponse(
        data=[AuditEntryResponse.model_validate(e) for e in entries],
        meta={"limit": limit, "offset": offset},
    )
