"""Pydantic schemas for trigger rules."""

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.notification import Channel, EventCategory, Priority


class RuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: EventCategory
    channels: list[Channel]
    priority: Priority
    subject_template: str
    body_template: str
    enabled: bool
    delay_minutes: int
    condition: str | None = None
    description: str | None = None
    tags: list[str]


class RuleListResponse(BaseModel):
    data: list[RuleResponse]


class RuleUpdateRequest(BaseModel):
    """Partial update; only the fields sent are applied."""

    model_config = ConfigDict(extra="forbid")

    channels: list[Channel] | None = Field(None, min_length=1)
    priority: Priority | None = None
    enabled: bool | None = None
    delay_minutes: int | None = Field(None, ge=0)
    subject_template: str | None = Field(None, max_length=500)
    body_template: str | None = Field(None, max_length=5000)
    condition: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=500)
