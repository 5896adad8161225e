"""Turns a case snapshot into lawyer reminder occurrences."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import combinations

import structlog

from domain.entities.case import CalendarEvent, CaseSnapshot, CourtDate, Deadline, FollowUp
from domain.entities.notification import EventCategory, EventOccurrence, Priority
from domain.entities.preference import ReminderSettings
from domain.services.time_window import MINUTES_PER_DAY, format_time_until, minutes_until

logger = structlog.get_logger()

WEEK = timedelta(days=7)


def select_threshold(minutes: float, thresholds: list[int]) -> int | None:
    """Return the most urgent crossed threshold, or None when none is crossed.

    Thresholds are sorted first so configuration order does not matter; the
    smallest threshold still at or above ``minutes`` wins.
    """
    for threshold in sorted(thresholds):
        if minutes <= threshold:
            return threshold
    return None


def deadline_priority(minutes: float) -> Priority:
    if minutes <= 60:
        return Priority.CRITICAL
    if minutes <= MINUTES_PER_DAY:
        return Priority.HIGH
    return Priority.NORMAL


def _stamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M")


def _day(value: datetime) -> str:
    return value.strftime("%a %d.%m.")


@dataclass(frozen=True, slots=True)
class Briefing:
    """Rendered text of a daily briefing or weekly summary."""

    title: str
    body: str
    priority: Priority


class EventScanner:
    """Evaluates deadlines, court dates, follow-ups and calendar conflicts."""

    def scan(
        self,
        snapshot: CaseSnapshot,
        now: datetime,
        settings: ReminderSettings,
    ) -> list[EventOccurrence]:
        occurrences: list[EventOccurrence] = []
        lawyer_id = snapshot.default_lawyer_id

        for deadline in snapshot.deadlines:
            occurrence = self._scan_deadline(deadline, snapshot, now, settings, lawyer_id)
            if occurrence is not None:
                occurrences.append(occurrence)

        if settings.is_category_enabled(EventCategory.COURT_DATE_APPROACHING):
            for court_date in snapshot.court_dates:
                occurrence = self._scan_court_date(court_date, snapshot, now, settings, lawyer_id)
                if occurrence is not None:
                    occurrences.append(occurrence)

        if settings.is_category_enabled(EventCategory.FOLLOW_UP_DUE):
            for follow_up in snapshot.follow_ups:
                occurrence = self._scan_follow_up(follow_up, snapshot, now, settings, lawyer_id)
                if occurrence is not None:
                    occurrences.append(occurrence)

        if settings.is_category_enabled(EventCategory.CALENDAR_CONFLICT):
            occurrences.extend(
                self.detect_conflicts(snapshot.calendar_events, now, settings, lawyer_id)
            )

        logger.debug("case_snapshot_scanned", occurrences=len(occurrences))
        return occurrences

    def _matter_variables(self, snapshot: CaseSnapshot, matter_id: str | None) -> dict[str, str]:
        matter = snapshot.matter(matter_id)
        if matter is None:
            return {}
        title = f"{matter.title} ({matter.reference})" if matter.reference else matter.title
        return {"matter_title": title, "matter_reference": matter.reference}

    def _scan_deadline(
        self,
        deadline: Deadline,
        snapshot: CaseSnapshot,
        now: datetime,
        settings: ReminderSettings,
        lawyer_id: str,
    ) -> EventOccurrence | None:
        if deadline.is_closed:
            return None

        minutes = math.floor(minutes_until(now, deadline.due_at))
        variables = {
            "deadline_title": deadline.title,
            "due_at": _stamp(deadline.due_at),
            "time_until": format_time_until(minutes),
            **self._matter_variables(snapshot, deadline.matter_id),
        }

        if minutes < 0:
            if not settings.is_category_enabled(EventCategory.DEADLINE_EXPIRED):
                return None
            return EventOccurrence(
                category=EventCategory.DEADLINE_EXPIRED,
                recipient_id=lawyer_id,
                variables=variables,
                matter_id=deadline.matter_id,
                case_id=deadline.case_id,
                deadline_id=deadline.id,
                priority=Priority.CRITICAL,
                dedup_key=f"deadline_expired:{deadline.id}",
            )

        if not settings.is_category_enabled(EventCategory.DEADLINE_APPROACHING):
            return None
        threshold = select_threshold(minutes, settings.deadline_thresholds)
        if threshold is None:
            return None
        return EventOccurrence(
            category=EventCategory.DEADLINE_APPROACHING,
            recipient_id=lawyer_id,
            variables=variables,
            matter_id=deadline.matter_id,
            case_id=deadline.case_id,
            deadline_id=deadline.id,
            priority=deadline_priority(minutes),
            dedup_key=f"deadline_approaching:{deadline.id}:{threshold}",
        )

    def _scan_court_date(
        self,
        court_date: CourtDate,
        snapshot: CaseSnapshot,
        now: datetime,
        settings: ReminderSettings,
        lawyer_id: str,
    ) -> EventOccurrence | None:
        if court_date.is_closed:
            return None
        minutes = math.floor(minutes_until(now, court_date.starts_at))
        if minutes < 0:
            return None
        threshold = select_threshold(minutes, settings.court_date_thresholds)
        if threshold is None:
            return None

        tomorrow = 60 < minutes <= MINUTES_PER_DAY
        category = (
            EventCategory.COURT_DATE_TOMORROW if tomorrow else EventCategory.COURT_DATE_APPROACHING
        )
        return EventOccurrence(
            category=category,
            recipient_id=lawyer_id,
            variables={
                "court": court_date.court or court_date.title,
                "court_date_title": court_date.title,
                "starts_at": _stamp(court_date.starts_at),
                "location": court_date.location or "",
                "time_until": format_time_until(minutes),
                **self._matter_variables(snapshot, court_date.matter_id),
            },
            matter_id=court_date.matter_id,
            case_id=court_date.case_id,
            court_date_id=court_date.id,
            priority=Priority.CRITICAL if minutes <= 180 else Priority.HIGH,
            dedup_key=f"court_date:{court_date.id}:{threshold}",
        )

    def _scan_follow_up(
        self,
        follow_up: FollowUp,
        snapshot: CaseSnapshot,
        now: datetime,
        settings: ReminderSettings,
        lawyer_id: str,
    ) -> EventOccurrence | None:
        if follow_up.done:
            return None
        minutes = math.floor(minutes_until(now, follow_up.due_at))
        if minutes < 0 or minutes > settings.follow_up_lookahead_minutes:
            return None
        return EventOccurrence(
            category=EventCategory.FOLLOW_UP_DUE,
            recipient_id=lawyer_id,
            variables={
                "follow_up_title": follow_up.title,
                "due_at": _stamp(follow_up.due_at),
                "time_until": format_time_until(minutes),
                **self._matter_variables(snapshot, follow_up.matter_id),
            },
            matter_id=follow_up.matter_id,
            priority=Priority.HIGH if minutes <= 60 else Priority.NORMAL,
            dedup_key=f"follow_up:{follow_up.id}",
        )

    def detect_conflicts(
        self,
        events: list[CalendarEvent],
        now: datetime,
        settings: ReminderSettings,
        lawyer_id: str,
    ) -> list[EventOccurrence]:
        """Flag every pair of timed events whose ``[start, end)`` intervals overlap."""
        horizon = now + timedelta(days=settings.conflict_lookahead_days)
        candidates = [
            e
            for e in events
            if not e.all_day and e.end_at > now and e.start_at < horizon
        ]

        occurrences = []
        for first, second in combinations(candidates, 2):
            if not (first.start_at < second.end_at and second.start_at < first.end_at):
                continue
            first, second = sorted((first, second), key=lambda e: e.id)
            occurrences.append(
                EventOccurrence(
                    category=EventCategory.CALENDAR_CONFLICT,
                    recipient_id=lawyer_id,
                    variables={
                        "first_title": first.title,
                        "first_start": _stamp(first.start_at),
                        "second_title": second.title,
                        "second_start": _stamp(second.start_at),
                    },
                    priority=Priority.HIGH,
                    dedup_key=f"conflict:{first.id}:{second.id}",
                )
            )
        return occurrences

    # --- Periodic digests ---

    def build_daily_briefing(self, snapshot: CaseSnapshot, now: datetime) -> Briefing:
        """Summarise today's agenda and the deadlines of the coming week."""
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1)
        week_end = day_start + WEEK

        open_deadlines = [d for d in snapshot.deadlines if not d.is_closed]
        overdue = [d for d in open_deadlines if d.due_at < now]
        due_today = [d for d in open_deadlines if now <= d.due_at < day_end]
        this_week = sorted(
            (d for d in open_deadlines if day_end <= d.due_at < week_end),
            key=lambda d: d.due_at,
        )
        hearings = [
            c
            for c in snapshot.court_dates
            if not c.is_closed and day_start <= c.starts_at < day_end
        ]
        follow_ups = [
            f for f in snapshot.follow_ups if not f.done and day_start <= f.due_at < day_end
        ]
        appointments = [
            e for e in snapshot.calendar_events if day_start <= e.start_at < day_end
        ]

        def matter_suffix(matter_id: str | None) -> str:
            matter = snapshot.matter(matter_id)
            return f" - matter: {matter.title}" if matter else ""

        lines = [f"Good morning! Your agenda for {now.strftime('%A, %d %B %Y')}:", ""]
        if overdue:
            lines.append(f"OVERDUE DEADLINES ({len(overdue)}):")
            lines.extend(f"  • {d.title}{matter_suffix(d.matter_id)}" for d in overdue)
            lines.append("")
        if due_today:
            lines.append(f"DEADLINES TODAY ({len(due_today)}):")
            lines.extend(f"  • {d.title}{matter_suffix(d.matter_id)}" for d in due_today)
            lines.append("")
        if hearings:
            lines.append(f"COURT DATES TODAY ({len(hearings)}):")
            lines.extend(
                f"  • {c.starts_at.strftime('%H:%M')} - {c.court or c.title}" for c in hearings
            )
            lines.append("")
        if follow_ups:
            lines.append(f"FOLLOW-UPS TODAY ({len(follow_ups)}):")
            lines.extend(f"  • {f.title}" for f in follow_ups)
            lines.append("")
        if appointments:
            lines.append(f"APPOINTMENTS ({len(appointments)}):")
            lines.extend(
                f"  • {'all day' if e.all_day else e.start_at.strftime('%H:%M')} - {e.title}"
                for e in appointments
            )
            lines.append("")
        if this_week:
            lines.append(f"DEADLINES THIS WEEK ({len(this_week)}):")
            lines.extend(
                f"  • {_day(d.due_at)}: {d.title}{matter_suffix(d.matter_id)}"
                for d in this_week[:5]
            )
            if len(this_week) > 5:
                lines.append(f"  ... and {len(this_week) - 5} more")
            lines.append("")

        active_matters = sum(1 for m in snapshot.matters if m.is_active)
        lines.append("-- Summary --")
        lines.append(f"Open deadlines: {len(open_deadlines)} | Active matters: {active_matters}")
        if not (overdue or due_today or hearings or follow_ups):
            lines.append("")
            lines.append("Nothing urgent is due today.")

        todays_deadlines = len(overdue) + len(due_today)
        if overdue:
            priority = Priority.CRITICAL
        elif due_today or hearings:
            priority = Priority.HIGH
        else:
            priority = Priority.NORMAL
        return Briefing(
            title=f"Daily briefing: {todays_deadlines} deadlines, {len(hearings)} court dates",
            body="\n".join(lines),
            priority=priority,
        )

    def build_weekly_summary(self, snapshot: CaseSnapshot, now: datetime) -> Briefing:
        """Summarise the next seven days."""
        week_end = now + WEEK
        open_deadlines = [d for d in snapshot.deadlines if not d.is_closed]
        overdue = sum(1 for d in open_deadlines if d.due_at < now)
        upcoming = sorted(
            (d for d in open_deadlines if now <= d.due_at < week_end),
            key=lambda d: d.due_at,
        )
        hearings = sorted(
            (c for c in snapshot.court_dates if not c.is_closed and now <= c.starts_at < week_end),
            key=lambda c: c.starts_at,
        )

        lines = ["Weekly summary:", ""]
        lines.append(f"Overdue deadlines: {overdue}")
        lines.append(f"Deadlines this week: {len(upcoming)}")
        lines.append(f"Court dates this week: {len(hearings)}")
        lines.append("")
        if upcoming:
            lines.append("DEADLINES:")
            lines.extend(f"  • {_day(d.due_at)}: {d.title}" for d in upcoming[:10])
            lines.append("")
        if hearings:
            lines.append("COURT DATES:")
            lines.extend(
                f"  • {_day(c.starts_at)} {c.starts_at.strftime('%H:%M')}: {c.court or c.title}"
                for c in hearings[:10]
            )

        return Briefing(
            title=f"Weekly summary: {len(upcoming)} deadlines, {len(hearings)} court dates",
            body="\n".join(lines).rstrip(),
            priority=Priority.HIGH if overdue else Priority.NORMAL,
        )
