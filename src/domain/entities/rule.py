"""Trigger rule domain entity."""

from dataclasses import dataclass, field

from domain.entities.notification import Channel, EventCategory, Priority


@dataclass
class TriggerRule:
    """Maps an event category to channels, a priority and message templates."""

    id: str
    category: EventCategory
    channels: list[Channel]
    priority: Priority
    subject_template: str
    body_template: str
    enabled: bool = True
    delay_minutes: int = 0
    condition: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)


# Fields an operator may change through update_rule().
UPDATABLE_RULE_FIELDS: frozenset[str] = frozenset(
    {
        "channels",
        "priority",
        "enabled",
        "delay_minutes",
        "subject_template",
        "body_template",
        "condition",
        "description",
    }
)
