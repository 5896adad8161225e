"""Versioned snapshots persisted through the state store.

Two blobs are stored: the preferences blob (recipient preferences,
priority channel maps, reminder settings, rule patches) and the runtime
blob (briefing date keys, dedup maps, outstanding work). Both carry a
``version`` so older blobs are migrated on load instead of dropped.
"""

from datetime import datetime, tzinfo
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field, ValidationError

from domain.entities.digest import Digest
from domain.entities.notification import Channel, NotificationRecord, Priority
from domain.entities.preference import RecipientPreference, ReminderSettings

logger = structlog.get_logger()

PREFERENCES_KEY = "preferences"
RUNTIME_KEY = "runtime"

RUNTIME_SNAPSHOT_VERSION = 2
PREFERENCES_SNAPSHOT_VERSION = 1


class RuntimeSnapshot(BaseModel):
    """Engine runtime state that must survive a restart."""

    version: Literal[2] = RUNTIME_SNAPSHOT_VERSION
    last_briefing_date_key: str = ""
    last_weekly_summary_date_key: str = ""
    sent_dedup_keys: list[tuple[str, datetime]] = Field(default_factory=list)
    deferred_dedup_keys: list[tuple[str, datetime]] = Field(default_factory=list)
    outstanding_records: list[NotificationRecord] = Field(default_factory=list)
    pending_digests: list[Digest] = Field(default_factory=list)


class PreferencesSnapshot(BaseModel):
    """Operator-editable configuration."""

    version: Literal[1] = PREFERENCES_SNAPSHOT_VERSION
    preferences: list[RecipientPreference] = Field(default_factory=list)
    priority_channels: dict[str, dict[Priority, list[Channel]]] = Field(
        default_factory=dict
    )
    reminder_settings: ReminderSettings = Field(default_factory=ReminderSettings)
    rule_patches: dict[str, dict[str, Any]] = Field(default_factory=dict)


def _migrate_runtime_v1(blob: dict[str, Any], tz: tzinfo | None) -> dict[str, Any]:
    """Translate the legacy camelCase blob with epoch-millisecond stamps."""

    def convert(pairs: Any) -> list[tuple[str, datetime]]:
        converted = []
        for key, millis in pairs or []:
            stamp = datetime.fromtimestamp(float(millis) / 1000, tz)
            converted.append((str(key), stamp.replace(tzinfo=None)))
        return converted

    return {
        "version": RUNTIME_SNAPSHOT_VERSION,
        "last_briefing_date_key": blob.get("lastBriefingDateKey") or "",
        "last_weekly_summary_date_key": blob.get("lastWeeklySummaryDateKey") or "",
        "sent_dedup_keys": convert(blob.get("sentDedupKeys")),
        "deferred_dedup_keys": convert(blob.get("deferredDedupKeys")),
    }


def _is_legacy_runtime(blob: dict[str, Any]) -> bool:
    return "version" not in blob and any(
        key in blob
        for key in (
            "lastBriefingDateKey",
            "lastWeeklySummaryDateKey",
            "sentDedupKeys",
            "deferredDedupKeys",
        )
    )


def load_runtime_snapshot(
    blob: dict[str, Any] | None,
    tz: tzinfo | None = None,
) -> RuntimeSnapshot | None:
    """Validate a persisted runtime blob, migrating older versions.

    Returns None (after logging) when the blob is missing, carries an
    unknown version or fails validation.
    """
    if not blob:
        return None

    try:
        if _is_legacy_runtime(blob) or blob.get("version") == 1:
            logger.info("runtime_snapshot_migrating", from_version=1)
            blob = _migrate_runtime_v1(blob, tz)
        elif blob.get("version") != RUNTIME_SNAPSHOT_VERSION:
            logger.warning(
                "runtime_snapshot_unknown_version",
                version=blob.get("version"),
            )
            return None
        return RuntimeSnapshot.model_validate(blob)
    except (ValidationError, TypeError, ValueError) as exc:
        logger.warning("runtime_snapshot_invalid", error=str(exc))
        return None


def load_preferences_snapshot(blob: dict[str, Any] | None) -> PreferencesSnapshot | None:
    """Validate a persisted preferences blob; invalid blobs are logged and skipped."""
    if not blob:
        return None

    if blob.get("version", PREFERENCES_SNAPSHOT_VERSION) != PREFERENCES_SNAPSHOT_VERSION:
        logger.warning(
            "preferences_snapshot_unknown_version",
            version=blob.get("version"),
        )
        return None
    try:
        return PreferencesSnapshot.model_validate(blob)
    except ValidationError as exc:
        logger.warning("preferences_snapshot_invalid", error=str(exc))
        return None
