"""Unit tests for persisted snapshot loading and migration."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from domain.entities.notification import (
    Audience,
    Channel,
    EventCategory,
    NotificationRecord,
    NotificationStatus,
    Priority,
)
from domain.entities.preference import DigestFrequency, RecipientPreference
from domain.entities.snapshot import (
    PreferencesSnapshot,
    RuntimeSnapshot,
    load_preferences_snapshot,
    load_runtime_snapshot,
)


def _millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class TestRuntimeSnapshot:
    def test_missing_blob_is_none(self) -> None:
        assert load_runtime_snapshot(None) is None
        assert load_runtime_snapshot({}) is None

    def test_legacy_camel_case_blob_is_migrated(self) -> None:
        stamp = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
        blob = {
            "lastBriefingDateKey": "2026-03-02",
            "sentDedupKeys": [["deadline_expired:d-1", _millis(stamp)]],
            "deferredDedupKeys": [],
        }

        snapshot = load_runtime_snapshot(blob, ZoneInfo("Europe/Berlin"))

        assert snapshot is not None
        assert snapshot.version == 2
        assert snapshot.last_briefing_date_key == "2026-03-02"
        assert snapshot.last_weekly_summary_date_key == ""
        assert snapshot.sent_dedup_keys == [("deadline_expired:d-1", datetime(2026, 3, 2, 9, 0))]
        assert snapshot.outstanding_records == []

    def test_explicit_version_one_is_migrated(self) -> None:
        snapshot = load_runtime_snapshot(
            {"version": 1, "lastWeeklySummaryDateKey": "2026-03-02"}, timezone.utc
        )

        assert snapshot is not None
        assert snapshot.last_weekly_summary_date_key == "2026-03-02"

    def test_unknown_version_is_dropped(self) -> None:
        assert load_runtime_snapshot({"version": 99, "sent_dedup_keys": []}) is None

    def test_invalid_blob_is_dropped(self) -> None:
        assert load_runtime_snapshot({"version": 2, "sent_dedup_keys": "nope"}) is None

    def test_outstanding_records_survive_json(self) -> None:
        record = NotificationRecord(
            recipient_id="client-1",
            audience=Audience.CLIENT,
            category=EventCategory.DOCUMENT_UPLOADED,
            priority=Priority.NORMAL,
            channel=Channel.EMAIL,
            title="New document",
            body="A document was added.",
            dedup_key="document.uploaded:client-1:abc",
            status=NotificationStatus.SCHEDULED,
            scheduled_at=datetime(2026, 3, 2, 9, 2),
        )
        blob = RuntimeSnapshot(outstanding_records=[record]).model_dump(mode="json")

        snapshot = load_runtime_snapshot(blob)

        assert snapshot is not None
        [restored] = snapshot.outstanding_records
        assert restored.id == record.id
        assert restored.status == NotificationStatus.SCHEDULED
        assert restored.scheduled_at == datetime(2026, 3, 2, 9, 2)


class TestPreferencesSnapshot:
    def test_round_trips_preferences(self) -> None:
        blob = PreferencesSnapshot(
            preferences=[
                RecipientPreference(
                    "client-1", Channel.EMAIL, digest_frequency=DigestFrequency.WEEKLY
                )
            ],
            priority_channels={"client-1": {Priority.HIGH: [Channel.EMAIL]}},
            rule_patches={"rule:invoice.sent": {"enabled": False}},
        ).model_dump(mode="json")

        snapshot = load_preferences_snapshot(blob)

        assert snapshot is not None
        assert snapshot.preferences[0].digest_frequency == DigestFrequency.WEEKLY
        assert snapshot.priority_channels["client-1"][Priority.HIGH] == [Channel.EMAIL]
        assert snapshot.rule_patches == {"rule:invoice.sent": {"enabled": False}}

    def test_unknown_version_is_dropped(self) -> None:
        assert load_preferences_snapshot({"version": 7}) is None
