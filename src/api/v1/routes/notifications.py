"""Notification record API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.v1.dependencies import get_notification_engine
from api.v1.schemas.common import CountResponse, ErrorResponse
from api.v1.schemas.notification import (
    AcknowledgeCategoryRequest,
    NotificationListResponse,
    NotificationResponse,
    StatsResponse,
)
from core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from domain.entities.notification import Channel, EventCategory, NotificationStatus
from domain.services.notification_engine import NotificationEngine

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notification records",
    responses={200: {"description": "Records, newest first"}},
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_notifications(
    request: Request,
    recipient_id: str | None = Query(None, description="Filter by recipient"),
    status: NotificationStatus | None = Query(None, description="Filter by status"),
    category: EventCategory | None = Query(None, description="Filter by event category"),
    channel: Channel | None = Query(None, description="Filter by channel"),
    limit: int = Query(100, ge=1, le=500, description="Page size"),
    offset: int = Query(0, ge=0, description="Records to skip"),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> NotificationListResponse:
    records = engine.list_records(
        recipient_id=recipient_id,
        status=status,
        category=category,
        channel=channel,
        limit=limit,
        offset=offset,
    )
    return NotificationListResponse(
        data=[NotificationResponse.model_validate(r) for r in records],
        meta={"limit": limit, "offset": offset, "count": len(records)},
    )


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Notification counters",
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_stats(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> StatsResponse:
    return StatsResponse.model_validate(engine.get_stats())


@router.post(
    "/acknowledge-category",
    response_model=CountResponse,
    summary="Acknowledge every record of a category",
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def acknowledge_category(
    request: Request,
    body: AcknowledgeCategoryRequest,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> CountResponse:
    count = await engine.acknowledge_category(body.category)
    return CountResponse(count=count)


@router.get(
    "/{record_id}",
    response_model=NotificationResponse,
    summary="Get a notification record",
    responses={404: {"model": ErrorResponse, "description": "Notification not found"}},
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_notification(
    request: Request,
    record_id: UUID,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> NotificationResponse:
    return NotificationResponse.model_validate(engine.get_record(record_id))


@router.post(
    "/{record_id}/acknowledge",
    response_model=NotificationResponse,
    summary="Acknowledge a notification",
    responses={404: {"model": ErrorResponse, "description": "Notification not found"}},
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def acknowledge_notification(
    request: Request,
    record_id: UUID,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> NotificationResponse:
    return NotificationResponse.model_validate(await engine.acknowledge(record_id))


@router.post(
    "/{record_id}/retry",
    response_model=NotificationResponse,
    summary="Retry a failed notification",
    responses={
        404: {"model": ErrorResponse, "description": "Notification not found"},
        409: {
            "model": ErrorResponse,
            "description": "Notification is not failed, or the engine is stopped",
        },
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def retry_notification(
    request: Request,
    record_id: UUID,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> NotificationResponse:
    """Put a failed record back on the send path; the send runs in the background."""
    return NotificationResponse.model_validate(await engine.retry_failed(record_id))


@router.post(
    "/{record_id}/delivered",
    response_model=NotificationResponse,
    summary="Record a delivery receipt",
    responses={404: {"model": ErrorResponse, "description": "Notification not found"}},
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def mark_delivered(
    request: Request,
    record_id: UUID,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> NotificationResponse:
    return NotificationResponse.model_validate(engine.mark_delivered(record_id))


@router.post(
    "/{record_id}/opened",
    response_model=NotificationResponse,
    summary="Record an open receipt",
    responses={404: {"model": ErrorResponse, "description": "Notification not found"}},
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def mark_opened(
    request: Request,
    record_id: UUID,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> NotificationResponse:
    return NotificationResponse.model_validate(engine.mark_opened(record_id))
