"""Read-only case data consumed by the event scanner.

A ``CaseSnapshot`` is fetched once per tick and treated as immutable for the
rest of that tick. All datetimes are naive local wall-clock values.
"""

from dataclasses import dataclass, field
from datetime import datetime

from domain.entities.notification import Audience, Channel


@dataclass
class Deadline:
    id: str
    title: str
    due_at: datetime
    status: str = "open"
    matter_id: str | None = None
    case_id: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.status in ("completed", "acknowledged")


@dataclass
class CourtDate:
    id: str
    title: str
    starts_at: datetime
    court: str = ""
    location: str | None = None
    status: str = "scheduled"
    matter_id: str | None = None
    case_id: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.status in ("cancelled", "concluded")


@dataclass
class FollowUp:
    id: str
    title: str
    due_at: datetime
    done: bool = False
    matter_id: str | None = None


@dataclass
class CalendarEvent:
    id: str
    title: str
    start_at: datetime
    end_at: datetime
    all_day: bool = False
    source: str = "manual"


@dataclass
class Matter:
    id: str
    title: str
    reference: str = ""
    status: str = "active"
    client_id: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ("active", "pending")


@dataclass
class Recipient:
    """Addressable person: the lawyer or a client."""

    id: str
    audience: Audience
    name: str = ""
    email: str | None = None
    phone: str | None = None
    chat_id: str | None = None
    default_channel: Channel = Channel.EMAIL

    def address_for(self, channel: Channel) -> str | None:
        """Return the channel-specific address, or None when unreachable."""
        if channel == Channel.EMAIL:
            return self.email
        if channel == Channel.SMS:
            return self.phone
        if channel == Channel.CHAT:
            return self.chat_id or self.id
        # push, in_app and portal are addressed by recipient id
        return self.id


@dataclass
class CaseSnapshot:
    """Immutable view of the case data for one tick."""

    deadlines: list[Deadline] = field(default_factory=list)
    court_dates: list[CourtDate] = field(default_factory=list)
    follow_ups: list[FollowUp] = field(default_factory=list)
    calendar_events: list[CalendarEvent] = field(default_factory=list)
    matters: list[Matter] = field(default_factory=list)
    recipients: list[Recipient] = field(default_factory=list)
    default_lawyer_id: str = "default-lawyer"

    def matter(self, matter_id: str | None) -> Matter | None:
        if matter_id is None:
            return None
        return next((m for m in self.matters if m.id == matter_id), None)

    def recipient(self, recipient_id: str) -> Recipient | None:
        return next((r for r in self.recipients if r.id == recipient_id), None)
