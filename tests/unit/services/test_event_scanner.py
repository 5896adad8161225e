"""Unit tests for the event scanner."""

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from domain.entities.case import CalendarEvent, CaseSnapshot, CourtDate, Deadline, FollowUp
from domain.entities.notification import EventCategory, Priority
from domain.entities.preference import ReminderSettings
from domain.services.event_scanner import EventScanner, deadline_priority, select_threshold

NOW = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def scanner() -> EventScanner:
    return EventScanner()


@pytest.fixture
def settings() -> ReminderSettings:
    return ReminderSettings()


class TestSelectThreshold:
    def test_picks_smallest_crossed_threshold(self) -> None:
        assert select_threshold(50, [1440, 180, 60]) == 60

    def test_configuration_order_does_not_matter(self) -> None:
        assert select_threshold(150, [60, 1440, 180]) == 180

    def test_none_when_no_threshold_crossed(self) -> None:
        assert select_threshold(2000, [1440, 180, 60]) is None

    def test_priority_bands(self) -> None:
        assert deadline_priority(30) == Priority.CRITICAL
        assert deadline_priority(600) == Priority.HIGH
        assert deadline_priority(5000) == Priority.NORMAL


class TestDeadlines:
    def test_approaching_deadline_uses_threshold_in_dedup_key(
        self, scanner: EventScanner, settings: ReminderSettings, snapshot: CaseSnapshot
    ) -> None:
        snapshot.deadlines.append(
            Deadline("d-1", "Appeal brief", NOW + timedelta(minutes=50), matter_id="m-1")
        )

        [occurrence] = scanner.scan(snapshot, NOW, settings)

        assert occurrence.category == EventCategory.DEADLINE_APPROACHING
        assert occurrence.dedup_key == "deadline_approaching:d-1:60"
        assert occurrence.priority == Priority.CRITICAL
        assert occurrence.recipient_id == "lawyer-1"
        assert occurrence.variables["time_until"] == "50 minutes"
        assert occurrence.variables["matter_title"] == "Klein vs. Acme (AZ-2026-17)"

    def test_expired_deadline_is_critical(
        self, scanner: EventScanner, settings: ReminderSettings, snapshot: CaseSnapshot
    ) -> None:
        snapshot.deadlines.append(Deadline("d-1", "Reply", NOW - timedelta(minutes=5)))

        [occurrence] = scanner.scan(snapshot, NOW, settings)

        assert occurrence.category == EventCategory.DEADLINE_EXPIRED
        assert occurrence.priority == Priority.CRITICAL
        assert occurrence.dedup_key == "deadline_expired:d-1"

    def test_closed_and_distant_deadlines_are_ignored(
        self, scanner: EventScanner, settings: ReminderSettings, snapshot: CaseSnapshot
    ) -> None:
        snapshot.deadlines.extend(
            [
                Deadline("d-1", "Done", NOW + timedelta(minutes=30), status="completed"),
                Deadline("d-2", "Far away", NOW + timedelta(days=30)),
            ]
        )

        assert scanner.scan(snapshot, NOW, settings) == []

    def test_disabled_category_is_skipped(
        self, scanner: EventScanner, snapshot: CaseSnapshot
    ) -> None:
        settings = ReminderSettings(disabled_categories=[EventCategory.DEADLINE_APPROACHING])
        snapshot.deadlines.append(Deadline("d-1", "Brief", NOW + timedelta(minutes=30)))

        assert scanner.scan(snapshot, NOW, settings) == []


class TestCourtDates:
    def test_tomorrow_band(
        self, scanner: EventScanner, settings: ReminderSettings, snapshot: CaseSnapshot
    ) -> None:
        snapshot.court_dates.append(
            CourtDate("c-1", "Hearing", NOW + timedelta(hours=20), court="Regional Court")
        )

        [occurrence] = scanner.scan(snapshot, NOW, settings)

        assert occurrence.category == EventCategory.COURT_DATE_TOMORROW
        assert occurrence.priority == Priority.HIGH
        assert occurrence.dedup_key == "court_date:c-1:1440"

    def test_within_the_hour_is_approaching_and_critical(
        self, scanner: EventScanner, settings: ReminderSettings, snapshot: CaseSnapshot
    ) -> None:
        snapshot.court_dates.append(CourtDate("c-1", "Hearing", NOW + timedelta(minutes=45)))

        [occurrence] = scanner.scan(snapshot, NOW, settings)

        assert occurrence.category == EventCategory.COURT_DATE_APPROACHING
        assert occurrence.priority == Priority.CRITICAL
        assert occurrence.variables["court"] == "Hearing"

    def test_cancelled_court_date_is_ignored(
        self, scanner: EventScanner, settings: ReminderSettings, snapshot: CaseSnapshot
    ) -> None:
        snapshot.court_dates.append(
            CourtDate("c-1", "Hearing", NOW + timedelta(minutes=45), status="cancelled")
        )

        assert scanner.scan(snapshot, NOW, settings) == []


class TestFollowUps:
    def test_follow_up_inside_lookahead(
        self, scanner: EventScanner, settings: ReminderSettings, snapshot: CaseSnapshot
    ) -> None:
        snapshot.follow_ups.extend(
            [
                FollowUp("f-1", "Call client", NOW + timedelta(minutes=30)),
                FollowUp("f-2", "Later", NOW + timedelta(days=3)),
                FollowUp("f-3", "Done", NOW + timedelta(minutes=10), done=True),
            ]
        )

        [occurrence] = scanner.scan(snapshot, NOW, settings)

        assert occurrence.dedup_key == "follow_up:f-1"
        assert occurrence.priority == Priority.HIGH


class TestConflicts:
    def test_overlapping_events_produce_one_conflict(
        self, scanner: EventScanner, settings: ReminderSettings
    ) -> None:
        start = datetime(2026, 3, 3, 10, 0)
        events = [
            CalendarEvent("b", "Client meeting", start + timedelta(minutes=30), start + timedelta(hours=2)),
            CalendarEvent("a", "Hearing", start, start + timedelta(hours=1)),
        ]

        [conflict] = scanner.detect_conflicts(events, NOW, settings, "lawyer-1")

        assert conflict.dedup_key == "conflict:a:b"
        assert conflict.variables["first_title"] == "Hearing"

    def test_touching_intervals_do_not_conflict(
        self, scanner: EventScanner, settings: ReminderSettings
    ) -> None:
        start = datetime(2026, 3, 3, 10, 0)
        events = [
            CalendarEvent("a", "One", start, start + timedelta(hours=1)),
            CalendarEvent("b", "Two", start + timedelta(hours=1), start + timedelta(hours=2)),
        ]

        assert scanner.detect_conflicts(events, NOW, settings, "lawyer-1") == []

    def test_all_day_and_out_of_horizon_events_are_ignored(
        self, scanner: EventScanner, settings: ReminderSettings
    ) -> None:
        start = datetime(2026, 3, 3, 0, 0)
        far = NOW + timedelta(days=10)
        events = [
            CalendarEvent("a", "Holiday", start, start + timedelta(days=1), all_day=True),
            CalendarEvent("b", "Meeting", start + timedelta(hours=9), start + timedelta(hours=10)),
            CalendarEvent("c", "Far", far, far + timedelta(hours=1)),
            CalendarEvent("d", "Far too", far, far + timedelta(hours=1)),
        ]

        assert scanner.detect_conflicts(events, NOW, settings, "lawyer-1") == []


class TestBriefings:
    def test_daily_briefing_with_overdue_deadline_is_critical(
        self, scanner: EventScanner, snapshot: CaseSnapshot
    ) -> None:
        snapshot.deadlines.extend(
            [
                Deadline("d-1", "Overdue reply", NOW - timedelta(hours=2), matter_id="m-1"),
                Deadline("d-2", "Filing", NOW + timedelta(hours=3)),
                Deadline("d-3", "Next week", NOW + timedelta(days=3)),
            ]
        )

        briefing = scanner.build_daily_briefing(snapshot, NOW)

        assert briefing.priority == Priority.CRITICAL
        assert briefing.title == "Daily briefing: 2 deadlines, 0 court dates"
        assert "OVERDUE DEADLINES (1):" in briefing.body
        assert "  • Overdue reply - matter: Klein vs. Acme" in briefing.body
        assert "DEADLINES THIS WEEK (1):" in briefing.body

    def test_quiet_day_briefing(self, scanner: EventScanner, snapshot: CaseSnapshot) -> None:
        briefing = scanner.build_daily_briefing(snapshot, NOW)

        assert briefing.priority == Priority.NORMAL
        assert briefing.body.endswith("Nothing urgent is due today.")

    def test_weekly_summary_counts(self, scanner: EventScanner, snapshot: CaseSnapshot) -> None:
        snapshot = replace(
            snapshot,
            deadlines=[Deadline("d-1", "Filing", NOW + timedelta(days=2))],
            court_dates=[CourtDate("c-1", "Hearing", NOW + timedelta(days=4), court="Labour Court")],
        )

        summary = scanner.build_weekly_summary(snapshot, NOW)

        assert summary.title == "Weekly summary: 1 deadlines, 1 court dates"
        assert summary.priority == Priority.NORMAL
        assert "Labour Court" in summary.body
