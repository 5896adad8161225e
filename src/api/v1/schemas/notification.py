"""Pydantic schemas for notification records and events."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.notification import (
    Audience,
    Channel,
    EventCategory,
    NotificationStatus,
    Priority,
)


class NotificationResponse(BaseModel):
    """One (occurrence, channel) record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: str
    audience: Audience
    category: EventCategory
    priority: Priority
    channel: Channel
    status: NotificationStatus
    title: str
    body: str
    dedup_key: str
    address: str | None = None
    rule_id: str | None = None
    digest_id: UUID | None = None
    matter_id: str | None = None
    case_id: str | None = None
    deadline_id: str | None = None
    court_date_id: str | None = None
    retry_count: int
    max_retries: int
    error_message: str | None = None
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    opened_at: datetime | None = None
    failed_at: datetime | None = None
    acknowledged_at: datetime | None = None


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class AcknowledgeCategoryRequest(BaseModel):
    category: EventCategory


class StatsResponse(BaseModel):
    """Counters over the engine's records and dedup maps."""

    model_config = ConfigDict(from_attributes=True)

    total_sent: int
    pending: int
    scheduled: int
    suppressed: int
    failed: int
    today_count: int
    critical_open: int
    pending_digests: int
    sent_dedup_keys: int
    deferred_dedup_keys: int
    in_flight: int


class FireEventRequest(BaseModel):
    """An externally raised occurrence.

    ``category`` is validated by the route so unknown values map to a
    dedicated error code.
    """

    category: str = Field(..., min_length=1, max_length=100)
    recipient_id: str = Field(..., min_length=1, max_length=255)
    variables: dict[str, str] = Field(default_factory=dict)
    matter_id: str | None = None
    case_id: str | None = None
    deadline_id: str | None = None
    court_date_id: str | None = None
    priority: Priority | None = None
    dedup_key: str | None = Field(None, max_length=500)


class FireEventResponse(BaseModel):
    data: list[NotificationResponse]
    meta: dict[str, Any] = Field(default_factory=dict)
