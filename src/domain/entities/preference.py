"""Recipient preference and reminder settings entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from domain.entities.notification import Channel, EventCategory, Priority


class DigestFrequency(StrEnum):
    """How often non-urgent notifications reach a recipient."""

    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass
class RecipientPreference:
    """Domain entity for a recipient's preference on one channel."""

    recipient_id: str
    channel: Channel
    enabled: bool = True
    digest_frequency: DigestFrequency = DigestFrequency.IMMEDIATE
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    enabled_events: list[EventCategory] = field(default_factory=list)
    disabled_events: list[EventCategory] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def allows(self, category: EventCategory) -> bool:
        """Check the enabled flag and the allow/deny lists for ``category``."""
        if not self.enabled:
            return False
        if category in self.disabled_events:
            return False
        if self.enabled_events and category not in self.enabled_events:
            return False
        return True


DEFAULT_LAWYER_PRIORITY_CHANNELS: dict[Priority, list[Channel]] = {
    Priority.CRITICAL: [Channel.EMAIL, Channel.PUSH, Channel.CHAT],
    Priority.IMMEDIATE: [Channel.EMAIL, Channel.PUSH, Channel.CHAT],
    Priority.HIGH: [Channel.EMAIL, Channel.PUSH],
    Priority.NORMAL: [Channel.EMAIL],
    Priority.LOW: [Channel.IN_APP],
    Priority.DIGEST: [Channel.IN_APP],
}


WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass
class ReminderSettings:
    """Lawyer-side reminder configuration."""

    # Minutes before due time; the most urgent crossed threshold fires.
    deadline_thresholds: list[int] = field(
        default_factory=lambda: [20160, 10080, 1440, 180, 60]
    )
    court_date_thresholds: list[int] = field(default_factory=lambda: [1440, 180, 60])
    follow_up_lookahead_minutes: int = 1440
    conflict_lookahead_days: int = 7
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    daily_briefing_time: str = "07:30"
    daily_briefing_enabled: bool = True
    weekly_summary_day: str = "monday"
    weekly_summary_hour: int = 8
    weekly_summary_enabled: bool = True
    disabled_categories: list[EventCategory] = field(default_factory=list)
    priority_channels: dict[Priority, list[Channel]] = field(
        default_factory=lambda: {
            priority: list(channels)
            for priority, channels in DEFAULT_LAWYER_PRIORITY_CHANNELS.items()
        }
    )

    def is_category_enabled(self, category: EventCategory) -> bool:
        return category not in self.disabled_categories
