"""Event intake route."""

from fastapi import APIRouter, Depends, Request, status

from api.v1.dependencies import get_notification_engine
from api.v1.schemas.common import ErrorResponse
from api.v1.schemas.notification import (
    FireEventRequest,
    FireEventResponse,
    NotificationResponse,
)
from core.exceptions import UnknownEventCategoryError
from core.rate_limit import WRITE_LIMIT, limiter
from domain.entities.notification import EventCategory, EventOccurrence
from domain.services.notification_engine import NotificationEngine

router = APIRouter(prefix="/events", tags=["events"])


@router.post(
    "",
    response_model=FireEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Fire an event",
    responses={
        201: {"description": "Records created; empty when deduplicated or filtered"},
        400: {"model": ErrorResponse, "description": "Unknown event category"},
        409: {"model": ErrorResponse, "description": "Engine is stopped"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def fire_event(
    request: Request,
    body: FireEventRequest,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> FireEventResponse:
    """Resolve an occurrence against the rules and fan it out per channel."""
    try:
        category = EventCategory(body.category)
    except ValueError:
        raise UnknownEventCategoryError(body.category) from None

    occurrence = EventOccurrence(
        category=category,
        recipient_id=body.recipient_id,
        variables=body.variables,
        matter_id=body.matter_id,
        case_id=body.case_id,
        deadline_id=body.deadline_id,
        court_date_id=body.court_date_id,
        priority=body.priority,
        dedup_key=body.dedup_key,
    )
    records = await engine.fire_event(occurrence)
    return FireEventResponse(
        data=[NotificationResponse.model_validate(r) for r in records],
        meta={"created": len(records)},
    )
