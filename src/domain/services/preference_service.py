"""Recipient preferences, priority channel maps and reminder settings."""

from dataclasses import fields, replace
from datetime import datetime
from typing import Any

import structlog

from core.exceptions import ValidationError
from domain.entities.notification import Audience, Channel, EventCategory, Priority
from domain.entities.preference import (
    DigestFrequency,
    RecipientPreference,
    ReminderSettings,
)
from domain.entities.snapshot import PreferencesSnapshot

logger = structlog.get_logger()


class PreferenceService:
    """In-memory preference state owned by one engine instance.

    Lookups fall back to permissive defaults: a missing preference means
    the channel is enabled, immediate, and has no quiet hours.
    """

    def __init__(self, reminder_settings: ReminderSettings | None = None) -> None:
        self._preferences: dict[tuple[str, Channel], RecipientPreference] = {}
        self._priority_channels: dict[str, dict[Priority, list[Channel]]] = {}
        self._reminder_settings = reminder_settings or ReminderSettings()

    # --- Recipient preferences ---

    def get(self, recipient_id: str, channel: Channel) -> RecipientPreference | None:
        return self._preferences.get((recipient_id, channel))

    def effective(self, recipient_id: str, channel: Channel) -> RecipientPreference:
        """Get the stored preference or the permissive default."""
        stored = self.get(recipient_id, channel)
        if stored is not None:
            return stored
        return RecipientPreference(recipient_id=recipient_id, channel=channel)

    def list_for(self, recipient_id: str) -> list[RecipientPreference]:
        return [
            pref
            for (owner, _), pref in self._preferences.items()
            if owner == recipient_id
        ]

    def upsert(self, preference: RecipientPreference, now: datetime) -> RecipientPreference:
        """Insert or replace the preference for (recipient, channel)."""
        key = (preference.recipient_id, preference.channel)
        existing = self._preferences.get(key)
        if existing is not None:
            preference.created_at = existing.created_at
        preference.updated_at = now
        self._preferences[key] = preference
        logger.info(
            "preference_updated",
            recipient_id=preference.recipient_id,
            channel=preference.channel.value,
        )
        return preference

    def digest_frequency(self, recipient_id: str, channel: Channel) -> DigestFrequency:
        return self.effective(recipient_id, channel).digest_frequency

    def quiet_window(
        self,
        recipient_id: str,
        audience: Audience,
        channel: Channel,
    ) -> tuple[str | None, str | None]:
        """Quiet window for a (recipient, channel).

        The channel preference wins; lawyers fall back to the reminder
        settings window.
        """
        pref = self.get(recipient_id, channel)
        if pref is not None and pref.quiet_hours_start and pref.quiet_hours_end:
            return pref.quiet_hours_start, pref.quiet_hours_end
        if audience == Audience.LAWYER:
            return (
                self._reminder_settings.quiet_hours_start,
                self._reminder_settings.quiet_hours_end,
            )
        return None, None

    # --- Priority channel maps ---

    def channels_for_priority(
        self,
        recipient_id: str,
        audience: Audience,
        priority: Priority,
    ) -> list[Channel] | None:
        """Channels the recipient accepts for ``priority``; None means unrestricted."""
        mapping = self.priority_channels(recipient_id, audience)
        if mapping is None:
            return None
        return mapping.get(priority, [])

    def priority_channels(
        self,
        recipient_id: str,
        audience: Audience,
    ) -> dict[Priority, list[Channel]] | None:
        configured = self._priority_channels.get(recipient_id)
        if configured is not None:
            return configured
        if audience == Audience.LAWYER:
            return self._reminder_settings.priority_channels
        return None

    def set_priority_channels(
        self,
        recipient_id: str,
        mapping: dict[Priority, list[Channel]],
    ) -> dict[Priority, list[Channel]]:
        self._priority_channels[recipient_id] = {
            priority: list(channels) for priority, channels in mapping.items()
        }
        logger.info("priority_channels_updated", recipient_id=recipient_id)
        return self._priority_channels[recipient_id]

    # --- Reminder settings ---

    @property
    def reminder_settings(self) -> ReminderSettings:
        return self._reminder_settings

    def update_reminder_settings(self, patch: dict[str, Any]) -> ReminderSettings:
        """Apply a partial update to the lawyer reminder settings."""
        known = {f.name for f in fields(ReminderSettings)}
        unknown = sorted(set(patch) - known)
        if unknown:
            raise ValidationError(
                message="Unknown reminder settings fields",
                details={"fields": unknown},
            )
        self._reminder_settings = replace(self._reminder_settings, **patch)
        logger.info("reminder_settings_updated", fields=sorted(patch))
        return self._reminder_settings

    # --- Persistence ---

    def to_snapshot(self, rule_patches: dict[str, dict[str, Any]]) -> PreferencesSnapshot:
        return PreferencesSnapshot(
            preferences=list(self._preferences.values()),
            priority_channels=dict(self._priority_channels),
            reminder_settings=self._reminder_settings,
            rule_patches=rule_patches,
        )

    def load_snapshot(self, snapshot: PreferencesSnapshot) -> None:
        self._preferences = {
            (pref.recipient_id, pref.channel): pref for pref in snapshot.preferences
        }
        self._priority_channels = dict(snapshot.priority_channels)
        self._reminder_settings = snapshot.reminder_settings

    def is_category_enabled(self, category: EventCategory) -> bool:
        return self._reminder_settings.is_category_enabled(category)
