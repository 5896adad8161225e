"""Pydantic schemas for digests, audit entries and the engine control surface."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from api.v1.schemas.notification import NotificationResponse, StatsResponse
from domain.entities.audit import AuditSeverity
from domain.entities.digest import DigestStatus
from domain.entities.preference import DigestFrequency
from domain.services.scheduler import SchedulerState


class DigestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: str
    frequency: DigestFrequency
    status: DigestStatus
    scheduled_at: datetime
    notification_ids: list[UUID]
    composite_id: UUID | None = None
    sent_at: datetime | None = None
    created_at: datetime


class DigestListResponse(BaseModel):
    data: list[DigestResponse]


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    category: str
    severity: AuditSeverity
    details: str
    metadata: dict[str, Any]
    created_at: datetime


class AuditListResponse(BaseModel):
    data: list[AuditEntryResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class EngineStatusResponse(BaseModel):
    state: SchedulerState
    active: bool
    stats: StatsResponse


class TickResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    promoted: int
    flushed: int
    digests_flushed: int
    occurrences: int
    created: int
    snapshot_loaded: bool


class BriefingResponse(BaseModel):
    """Result of a briefing request; ``notification`` is None when nothing was sent."""

    created: bool
    notification: NotificationResponse | None = None
