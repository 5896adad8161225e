"""Pydantic schemas for recipient preferences and reminder settings."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.entities.notification import Audience, Channel, EventCategory, Priority
from domain.entities.preference import WEEKDAYS, DigestFrequency

HHMM_PATTERN = r"^\d{1,2}:\d{2}$"


class PreferenceRequest(BaseModel):
    """Schema for creating/replacing a (recipient, channel) preference.

    Quiet hours are kept as given; a malformed value disables the window
    and is reported in the logs.
    """

    enabled: bool = True
    digest_frequency: DigestFrequency = DigestFrequency.IMMEDIATE
    quiet_hours_start: str | None = Field(None, max_length=5)
    quiet_hours_end: str | None = Field(None, max_length=5)
    enabled_events: list[EventCategory] = Field(default_factory=list)
    disabled_events: list[EventCategory] = Field(default_factory=list)


class PreferenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    recipient_id: str
    channel: Channel
    enabled: bool
    digest_frequency: DigestFrequency
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    enabled_events: list[EventCategory]
    disabled_events: list[EventCategory]
    created_at: datetime
    updated_at: datetime


class PreferenceListResponse(BaseModel):
    data: list[PreferenceResponse]


class PriorityChannelsRequest(BaseModel):
    channels: dict[Priority, list[Channel]]


class PriorityChannelsResponse(BaseModel):
    recipient_id: str
    audience: Audience
    # None: no map configured, every rule channel is allowed
    channels: dict[Priority, list[Channel]] | None = None


class ReminderSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    deadline_thresholds: list[int]
    court_date_thresholds: list[int]
    follow_up_lookahead_minutes: int
    conflict_lookahead_days: int
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    daily_briefing_time: str
    daily_briefing_enabled: bool
    weekly_summary_day: str
    weekly_summary_hour: int
    weekly_summary_enabled: bool
    disabled_categories: list[EventCategory]
    priority_channels: dict[Priority, list[Channel]]


class ReminderSettingsUpdate(BaseModel):
    """Partial update of the lawyer reminder settings."""

    model_config = ConfigDict(extra="forbid")

    deadline_thresholds: list[int] | None = None
    court_date_thresholds: list[int] | None = None
    follow_up_lookahead_minutes: int | None = Field(None, ge=0)
    conflict_lookahead_days: int | None = Field(None, ge=1, le=90)
    quiet_hours_start: str | None = Field(None, max_length=5)
    quiet_hours_end: str | None = Field(None, max_length=5)
    daily_briefing_time: str | None = Field(None, pattern=HHMM_PATTERN)
    daily_briefing_enabled: bool | None = None
    weekly_summary_day: str | None = None
    weekly_summary_hour: int | None = Field(None, ge=0, le=23)
    weekly_summary_enabled: bool | None = None
    disabled_categories: list[EventCategory] | None = None
    priority_channels: dict[Priority, list[Channel]] | None = None

    @field_validator("deadline_thresholds", "court_date_thresholds")
    @classmethod
    def thresholds_positive(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(minutes <= 0 for minutes in value):
            raise ValueError("thresholds must be positive minute counts")
        return value

    @field_validator("weekly_summary_day")
    @classmethod
    def known_weekday(cls, value: str | None) -> str | None:
        if value is None:
            return value
        day = value.strip().lower()
        if day not in WEEKDAYS:
            raise ValueError(f"weekly_summary_day must be one of {', '.join(WEEKDAYS)}")
        return day
