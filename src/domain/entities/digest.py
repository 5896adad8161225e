"""Digest domain entity."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4

from domain.entities.preference import DigestFrequency


class DigestStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class Digest:
    """A batch of non-urgent notifications for one (recipient, frequency)."""

    recipient_id: str
    frequency: DigestFrequency
    scheduled_at: datetime
    id: UUID = field(default_factory=uuid4)
    notification_ids: list[UUID] = field(default_factory=list)
    status: DigestStatus = DigestStatus.PENDING
    composite_id: UUID | None = None
    sent_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
