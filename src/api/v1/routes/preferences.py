"""Recipient preference and reminder settings API routes."""

from fastapi import APIRouter, Depends, Query, Request

from api.v1.dependencies import get_notification_engine
from api.v1.schemas.preference import (
    PreferenceListResponse,
    PreferenceRequest,
    PreferenceResponse,
    PriorityChannelsRequest,
    PriorityChannelsResponse,
    ReminderSettingsResponse,
    ReminderSettingsUpdate,
)
from core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from domain.entities.notification import Audience, Channel
from domain.entities.preference import RecipientPreference
from domain.services.notification_engine import NotificationEngine

router = APIRouter(prefix="/preferences", tags=["preferences"])
reminder_settings_router = APIRouter(prefix="/reminder-settings", tags=["preferences"])


# --- Priority channel maps ---
# Registered before "/{recipient_id}/{channel}" so the literal segment wins.


@router.get(
    "/{recipient_id}/priority-channels",
    response_model=PriorityChannelsResponse,
    summary="Get a recipient's priority channel map",
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_priority_channels(
    request: Request,
    recipient_id: str,
    audience: Audience = Query(Audience.CLIENT, description="Recipient audience"),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> PriorityChannelsResponse:
    """Lawyers without their own map fall back to the reminder settings map."""
    return PriorityChannelsResponse(
        recipient_id=recipient_id,
        audience=audience,
        channels=engine.get_priority_channels(recipient_id, audience),
    )


@router.put(
    "/{recipient_id}/priority-channels",
    response_model=PriorityChannelsResponse,
    summary="Replace a recipient's priority channel map",
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def set_priority_channels(
    request: Request,
    recipient_id: str,
    body: PriorityChannelsRequest,
    audience: Audience = Query(Audience.CLIENT, description="Recipient audience"),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> PriorityChannelsResponse:
    channels = await engine.set_priority_channels(recipient_id, body.channels)
    return PriorityChannelsResponse(recipient_id=recipient_id, audience=audience, channels=channels)


# --- Per-channel preferences ---


@router.get(
    "/{recipient_id}",
    response_model=PreferenceListResponse,
    summary="List a recipient's stored preferences",
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_preferences(
    request: Request,
    recipient_id: str,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> PreferenceListResponse:
    return PreferenceListResponse(
        data=[PreferenceResponse.model_validate(p) for p in engine.list_preferences(recipient_id)]
    )


@router.get(
    "/{recipient_id}/{channel}",
    response_model=PreferenceResponse,
    summary="Get the effective preference for a channel",
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_preference(
    request: Request,
    recipient_id: str,
    channel: Channel,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> PreferenceResponse:
    """Returns the permissive default when nothing is stored."""
    return PreferenceResponse.model_validate(engine.get_preference(recipient_id, channel))


@router.put(
    "/{recipient_id}/{channel}",
    response_model=PreferenceResponse,
    summary="Create or replace the preference for a channel",
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def update_preference(
    request: Request,
    recipient_id: str,
    channel: Channel,
    body: PreferenceRequest,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> PreferenceResponse:
    preference = RecipientPreference(
        recipient_id=recipient_id,
        channel=channel,
        **body.model_dump(),
    )
    return PreferenceResponse.model_validate(await engine.update_preference(preference))


# --- Lawyer reminder settings ---


@reminder_settings_router.get(
    "",
    response_model=ReminderSettingsResponse,
    summary="Get the lawyer reminder settings",
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_reminder_settings(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> ReminderSettingsResponse:
    return ReminderSettingsResponse.model_validate(engine.get_reminder_settings())


@reminder_settings_router.patch(
    "",
    response_model=ReminderSettingsResponse,
    summary="Update the lawyer reminder settings",
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def update_reminder_settings(
    request: Request,
    body: ReminderSettingsUpdate,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> ReminderSettingsResponse:
    """Threshold and timer changes apply from the next tick or timer firing."""
    updated = await engine.update_reminder_settings(body.model_dump(exclude_unset=True))
    return ReminderSettingsResponse.model_validate(updated)
