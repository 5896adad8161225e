"""Notification engine: owns the live state and coordinates the components.

Control flow per tick::

    fetch snapshot -> promote due retries -> flush quiet-hours deferrals
    -> flush due digests -> scan -> resolve -> dedup -> digest / quiet hours
    -> dispatch -> audit -> prune dedup keys -> persist runtime

All state mutation runs on the event loop thread. Channel sends are the
only suspension points that outlive a call: they run as tasks and check
``is_active()`` before touching state again.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Any
from uuid import UUID

import structlog

from core.exceptions import (
    DigestNotFoundError,
    EngineNotRunningError,
    NotificationNotFoundError,
    NotificationNotRetriableError,
)
from domain.entities.audit import AuditActions, AuditEntry, AuditSeverity
from domain.entities.case import CaseSnapshot, Recipient
from domain.entities.digest import Digest
from domain.entities.notification import (
    Audience,
    Channel,
    EventCategory,
    EventOccurrence,
    NotificationRecord,
    NotificationStatus,
    Priority,
)
from domain.entities.preference import DigestFrequency, RecipientPreference, ReminderSettings
from domain.entities.rule import TriggerRule
from domain.entities.snapshot import (
    PREFERENCES_KEY,
    RUNTIME_KEY,
    RuntimeSnapshot,
    load_preferences_snapshot,
    load_runtime_snapshot,
)
from domain.repositories.audit_repository import IAuditSink
from domain.repositories.case_data_source import ICaseDataSource
from domain.repositories.channel_adapter import IChannelAdapter
from domain.repositories.state_repository import IStateStore
from domain.services.audit_recorder import AuditRecorder
from domain.services.dedup_guard import DEFAULT_DEDUP_WINDOW, DedupGuard
from domain.services.digest_aggregator import DigestAggregator
from domain.services.dispatcher import DEFAULT_BASE_BACKOFF, Dispatcher
from domain.services.event_scanner import EventScanner
from domain.services.preference_service import PreferenceService
from domain.services.rule_resolver import RuleResolver
from domain.services.scheduler import Scheduler, SchedulerState
from domain.services.time_window import Clock, date_key, is_in_quiet_hours

logger = structlog.get_logger()

OUTSTANDING_STATUSES = frozenset(
    {
        NotificationStatus.PENDING,
        NotificationStatus.SENDING,
        NotificationStatus.SCHEDULED,
        NotificationStatus.SUPPRESSED,
    }
)
DELIVERED_STATUSES = frozenset(
    {NotificationStatus.SENT, NotificationStatus.DELIVERED, NotificationStatus.OPENED}
)


@dataclass
class TickReport:
    """What one tick did."""

    promoted: int = 0
    flushed: int = 0
    digests_flushed: int = 0
    occurrences: int = 0
    created: int = 0
    snapshot_loaded: bool = False


@dataclass
class EngineStats:
    total_sent: int
    pending: int
    scheduled: int
    suppressed: int
    failed: int
    today_count: int
    critical_open: int
    pending_digests: int
    sent_dedup_keys: int
    deferred_dedup_keys: int
    in_flight: int


class NotificationEngine:
    """One engine instance with its own records, rules, dedup maps and digests.

    Collaborators are injected so several instances can run side by side
    (one per test, for example).
    """

    def __init__(
        self,
        case_source: ICaseDataSource,
        channels: Mapping[Channel, IChannelAdapter],
        audit_sink: IAuditSink,
        state_store: IStateStore,
        clock: Clock | None = None,
        *,
        tz: tzinfo | None = None,
        dedup_window: timedelta = DEFAULT_DEDUP_WINDOW,
        base_backoff: timedelta = DEFAULT_BASE_BACKOFF,
        max_retries: int = 3,
        snapshot_max_entries: int = 4000,
        rules: list[TriggerRule] | None = None,
        reminder_settings: ReminderSettings | None = None,
    ) -> None:
        self._case_source = case_source
        self._state_store = state_store
        self._audit_sink = audit_sink
        self._clock: Clock = clock or datetime.now
        self._tz = tz
        self._max_retries = max_retries
        self._snapshot_max_entries = snapshot_max_entries

        self._records: dict[UUID, NotificationRecord] = {}
        self._preferences = PreferenceService(reminder_settings)
        self._resolver = RuleResolver(self._preferences, rules)
        self._dedup = DedupGuard(dedup_window)
        self._digests = DigestAggregator()
        self._scanner = EventScanner()
        self._audit = AuditRecorder(audit_sink, self._clock)
        self._dispatcher = Dispatcher(
            channels, self._audit, self._clock, self.is_active, base_backoff
        )

        self._scheduler: Scheduler | None = None
        self._stopped = False
        self._hydrated = False
        self._snapshot: CaseSnapshot | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._in_flight: set[UUID] = set()
        self._last_briefing_date_key = ""
        self._last_weekly_summary_date_key = ""

    # --- Lifecycle ---

    def is_active(self) -> bool:
        return not self._stopped

    @property
    def scheduler_state(self) -> SchedulerState:
        if self._scheduler is None:
            return SchedulerState.STOPPED if self._stopped else SchedulerState.IDLE
        return self._scheduler.state

    @property
    def preferences(self) -> PreferenceService:
        return self._preferences

    async def start(self, tick_interval: float = 60.0) -> None:
        """Hydrate persisted state, then start the polling loop and timers."""
        if self._scheduler is not None and self._scheduler.state == SchedulerState.RUNNING:
            return
        self._stopped = False
        await self.hydrate()
        self._scheduler = Scheduler(
            self,
            self._clock,
            tick_interval,
            lambda: self._preferences.reminder_settings,
        )
        self._scheduler.start()
        logger.info("notification_engine_started", tick_interval=tick_interval)

    async def stop(self) -> None:
        """Cancel the loop and timers; in-flight sends finish without mutating state."""
        self._stopped = True
        if self._scheduler is not None:
            await self._scheduler.stop()
        await self.persist_runtime()
        logger.info("notification_engine_stopped", in_flight=len(self._in_flight))

    async def drain(self) -> None:
        """Wait until every launched send task has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _require_active(self) -> None:
        if self._stopped:
            raise EngineNotRunningError()

    # --- Persistence ---

    async def hydrate(self) -> None:
        """Restore preferences, dedup maps and outstanding work before the first tick."""
        if self._hydrated:
            return
        self._hydrated = True
        now = self._clock()

        try:
            preferences_blob = await self._state_store.get(PREFERENCES_KEY)
            runtime_blob = await self._state_store.get(RUNTIME_KEY)
        except Exception as exc:
            logger.error("state_load_failed", error=str(exc))
            return

        preferences = load_preferences_snapshot(preferences_blob)
        if preferences is not None:
            self._preferences.load_snapshot(preferences)
            self._resolver.apply_patches(preferences.rule_patches)

        runtime = load_runtime_snapshot(runtime_blob, self._tz)
        if runtime is None:
            return
        self._last_briefing_date_key = runtime.last_briefing_date_key
        self._last_weekly_summary_date_key = runtime.last_weekly_summary_date_key
        self._dedup.hydrate(runtime.sent_dedup_keys, runtime.deferred_dedup_keys, now)
        for record in runtime.outstanding_records:
            if record.status == NotificationStatus.SENDING:
                # at-least-once: an interrupted send goes out again
                record.status = NotificationStatus.PENDING
            self._records[record.id] = record
        self._digests.hydrate(runtime.pending_digests)
        logger.info(
            "runtime_state_restored",
            sent_keys=self._dedup.sent_count,
            deferred_keys=self._dedup.deferred_count,
            outstanding=len(runtime.outstanding_records),
            digests=len(runtime.pending_digests),
        )

    def runtime_snapshot(self) -> RuntimeSnapshot:
        sent, deferred = self._dedup.export(self._snapshot_max_entries)
        return RuntimeSnapshot(
            last_briefing_date_key=self._last_briefing_date_key,
            last_weekly_summary_date_key=self._last_weekly_summary_date_key,
            sent_dedup_keys=sent,
            deferred_dedup_keys=deferred,
            outstanding_records=[
                r for r in self._records.values() if r.status in OUTSTANDING_STATUSES
            ],
            pending_digests=self._digests.pending(),
        )

    async def persist_runtime(self) -> None:
        """Best-effort write of the runtime blob; failures are logged only."""
        try:
            blob = self.runtime_snapshot().model_dump(mode="json")
            await self._state_store.set(RUNTIME_KEY, blob)
        except Exception as exc:
            logger.error("runtime_persist_failed", error=str(exc))

    async def persist_preferences(self) -> None:
        try:
            snapshot = self._preferences.to_snapshot(self._resolver.patches)
            await self._state_store.set(PREFERENCES_KEY, snapshot.model_dump(mode="json"))
        except Exception as exc:
            logger.error("preferences_persist_failed", error=str(exc))

    # --- Tick ---

    async def tick(self) -> TickReport:
        """Run one evaluation pass."""
        self._require_active()
        await self.hydrate()
        now = self._clock()
        report = TickReport()

        # 1. Fetch the case data this tick evaluates
        snapshot = await self._refresh_snapshot()
        report.snapshot_loaded = snapshot is not None

        # 2. Retries and delayed sends whose time has come
        promoted = self._dispatcher.promote_due(self._records.values())
        report.promoted = len(promoted)

        # 3. Deferred records whose quiet window ended
        report.flushed = await self._flush_suppressed(now)

        # 4. Digests due for delivery
        report.digests_flushed = await self._flush_digests(now)

        # Pending records without a running send (promoted or restored)
        for record in list(self._records.values()):
            if record.status == NotificationStatus.PENDING:
                self._launch(record)

        # 5. New occurrences from the snapshot
        if snapshot is not None:
            occurrences = self._scanner.scan(
                snapshot, now, self._preferences.reminder_settings
            )
            report.occurrences = len(occurrences)
            for occurrence in occurrences:
                created = await self._emit(occurrence, now)
                report.created += len(created)

        # 6. Prune and persist
        self._dedup.cleanup(now)
        await self.persist_runtime()

        logger.info(
            "tick_completed",
            promoted=report.promoted,
            flushed=report.flushed,
            digests_flushed=report.digests_flushed,
            occurrences=report.occurrences,
            created=report.created,
        )
        return report

    async def _refresh_snapshot(self) -> CaseSnapshot | None:
        try:
            self._snapshot = await self._case_source.fetch_snapshot()
        except Exception as exc:
            logger.error("case_snapshot_fetch_failed", error=str(exc))
            return None
        return self._snapshot

    def _recipient(self, recipient_id: str, audience: Audience) -> Recipient:
        if self._snapshot is not None:
            known = self._snapshot.recipient(recipient_id)
            if known is not None:
                return known
        return Recipient(id=recipient_id, audience=audience)

    # --- Emission ---

    async def fire_event(self, occurrence: EventOccurrence) -> list[NotificationRecord]:
        """Resolve and emit one occurrence outside the polling loop."""
        self._require_active()
        await self.hydrate()
        if self._snapshot is None:
            await self._refresh_snapshot()
        return await self._emit(occurrence, self._clock())

    async def _emit(
        self,
        occurrence: EventOccurrence,
        now: datetime,
    ) -> list[NotificationRecord]:
        """Create records for an occurrence.

        Each channel tuple becomes one record that is either held in a
        digest, deferred by quiet hours, scheduled for a rule delay, or
        dispatched now. The dedup key is marked before any send task
        exists.
        """
        resolved = self._resolver.resolve(occurrence)
        if not resolved:
            return []

        dedup_key = resolved[0].dedup_key
        if not self._dedup.should_fire(dedup_key, now):
            logger.debug("notification_deduplicated", dedup_key=dedup_key)
            return []

        category = EventCategory(occurrence.category)
        audience = category.audience
        recipient = self._recipient(occurrence.recipient_id, audience)
        records: list[NotificationRecord] = []
        to_send: list[NotificationRecord] = []
        queued: list[tuple[NotificationRecord, Digest]] = []
        deferred: list[NotificationRecord] = []

        for item in resolved:
            record = NotificationRecord(
                recipient_id=occurrence.recipient_id,
                audience=audience,
                category=category,
                priority=item.priority,
                channel=item.channel,
                title=item.subject,
                body=item.body,
                dedup_key=item.dedup_key,
                address=recipient.address_for(item.channel),
                rule_id=item.rule_id,
                matter_id=occurrence.matter_id,
                case_id=occurrence.case_id,
                deadline_id=occurrence.deadline_id,
                court_date_id=occurrence.court_date_id,
                max_retries=self._max_retries,
                created_at=now,
                updated_at=now,
            )

            frequency = self._preferences.digest_frequency(record.recipient_id, record.channel)
            quiet_start, quiet_end = self._preferences.quiet_window(
                record.recipient_id, audience, record.channel
            )

            if frequency != DigestFrequency.IMMEDIATE and record.priority.is_digestible:
                queued.append((record, self._digests.append(record, frequency, now)))
            elif not record.priority.is_urgent and is_in_quiet_hours(now, quiet_start, quiet_end):
                record.status = NotificationStatus.SUPPRESSED
                deferred.append(record)
            elif item.delay_minutes > 0:
                record.status = NotificationStatus.SCHEDULED
                record.scheduled_at = now + timedelta(minutes=item.delay_minutes)
            else:
                to_send.append(record)

            self._records[record.id] = record
            records.append(record)

        if deferred:
            self._dedup.mark_deferred(dedup_key, now)
        else:
            self._dedup.mark_sent(dedup_key, now)

        for record in to_send:
            self._launch(record)

        await self._audit.record(
            AuditActions.NOTIFICATION_FANNED_OUT,
            f"{category.value} fanned out to {len(records)} channel(s)",
            recipient_id=occurrence.recipient_id,
            event_category=category.value,
            dedup_key=dedup_key,
            channels=[r.channel.value for r in records],
            record_ids=[str(r.id) for r in records],
        )
        for record in deferred:
            await self._audit.record_for(
                AuditActions.NOTIFICATION_DEFERRED,
                record,
                "Deferred until quiet hours end",
            )
        for record, digest in queued:
            await self._audit.record_for(
                AuditActions.DIGEST_QUEUED,
                record,
                f"Held for {digest.frequency.value} digest",
                digest_id=str(digest.id),
            )
        for record in records:
            if record.status == NotificationStatus.SCHEDULED and record.digest_id is None:
                await self._audit.record_for(
                    AuditActions.NOTIFICATION_SCHEDULED,
                    record,
                    f"Delayed until {record.scheduled_at.isoformat() if record.scheduled_at else ''}",
                )

        logger.info(
            "notification_emitted",
            category=category.value,
            recipient_id=occurrence.recipient_id,
            dedup_key=dedup_key,
            records=len(records),
            deferred=len(deferred),
            digested=len(queued),
        )
        return records

    def _launch(self, record: NotificationRecord) -> None:
        if record.id in self._in_flight or not self.is_active():
            return
        self._in_flight.add(record.id)
        task = asyncio.create_task(self._send(record))
        self._tasks.add(task)

        def finished(done: asyncio.Task[None]) -> None:
            self._tasks.discard(done)
            self._in_flight.discard(record.id)

        task.add_done_callback(finished)

    async def _send(self, record: NotificationRecord) -> None:
        try:
            await self._dispatcher.dispatch(record)
            if record.category == EventCategory.DIGEST:
                await self._settle_digest(record)
        except Exception:
            logger.exception("dispatch_task_failed", record_id=str(record.id))

    # --- Quiet hours ---

    async def _flush_suppressed(self, now: datetime) -> int:
        flushed = 0
        for record in list(self._records.values()):
            if record.status != NotificationStatus.SUPPRESSED:
                continue
            start, end = self._preferences.quiet_window(
                record.recipient_id, record.audience, record.channel
            )
            if is_in_quiet_hours(now, start, end):
                continue

            record.status = NotificationStatus.PENDING
            record.updated_at = now
            self._dedup.release(record.dedup_key, now)
            self._launch(record)
            flushed += 1
            await self._audit.record_for(
                AuditActions.NOTIFICATION_FLUSHED,
                record,
                "Quiet hours ended; dispatching deferred notification",
            )
        return flushed

    # --- Digests ---

    async def _flush_digests(self, now: datetime) -> int:
        flushed = 0
        for digest in self._digests.due(now):
            constituents = [
                record
                for record_id in digest.notification_ids
                if (record := self._records.get(record_id)) is not None
                and record.status == NotificationStatus.SCHEDULED
                and record.digest_id == digest.id
            ]
            if not constituents:
                self._digests.settle(digest, True, now)
                continue

            audience = constituents[0].audience
            recipient = self._recipient(digest.recipient_id, audience)
            channel = recipient.default_channel
            start, end = self._preferences.quiet_window(digest.recipient_id, audience, channel)
            if is_in_quiet_hours(now, start, end):
                continue

            title, body = DigestAggregator.compose(digest, constituents)
            composite = NotificationRecord(
                recipient_id=digest.recipient_id,
                audience=audience,
                category=EventCategory.DIGEST,
                priority=Priority.DIGEST,
                channel=channel,
                title=title,
                body=body,
                dedup_key=f"digest:{digest.id}",
                address=recipient.address_for(channel),
                max_retries=self._max_retries,
                metadata={"digest_id": str(digest.id)},
                created_at=now,
                updated_at=now,
            )
            self._records[composite.id] = composite
            digest.composite_id = composite.id
            self._dedup.mark_sent(composite.dedup_key, now)
            self._launch(composite)
            flushed += 1

            await self._audit.record(
                AuditActions.DIGEST_FLUSHED,
                f"{digest.frequency.value} digest with {len(constituents)} notification(s)",
                digest_id=str(digest.id),
                recipient_id=digest.recipient_id,
                record_id=str(composite.id),
                channel=channel.value,
            )
        return flushed

    async def _settle_digest(self, composite: NotificationRecord) -> None:
        if not self.is_active():
            return
        digest = self._digests.get(UUID(composite.metadata["digest_id"]))
        if digest is None:
            return

        now = self._clock()
        if composite.status in DELIVERED_STATUSES | {NotificationStatus.ACKNOWLEDGED}:
            delivered = True
        elif composite.status == NotificationStatus.FAILED:
            delivered = False
        else:
            # retry scheduled; the retried send settles the digest
            return

        for record_id in digest.notification_ids:
            record = self._records.get(record_id)
            if record is None or record.status != NotificationStatus.SCHEDULED:
                continue
            record.updated_at = now
            if delivered:
                record.status = NotificationStatus.SENT
                record.sent_at = now
            else:
                record.status = NotificationStatus.FAILED
                record.failed_at = now
                record.error_message = composite.error_message or "Digest delivery failed"

        self._digests.settle(digest, delivered, now)
        if not delivered:
            await self._audit.record(
                AuditActions.DIGEST_FAILED,
                composite.error_message or "Digest delivery failed",
                AuditSeverity.WARNING,
                digest_id=str(digest.id),
                recipient_id=digest.recipient_id,
            )

    # --- Periodic briefings ---

    async def generate_daily_briefing(self) -> NotificationRecord | None:
        """Send today's briefing once per calendar day.

        Returns:
            The primary record created, or None when disabled, already sent
            today, or filtered out.
        """
        self._require_active()
        await self.hydrate()
        settings = self._preferences.reminder_settings
        if not settings.daily_briefing_enabled:
            return None
        if not settings.is_category_enabled(EventCategory.DAILY_BRIEFING):
            return None

        now = self._clock()
        today = date_key(now)
        if self._last_briefing_date_key == today:
            return None
        self._last_briefing_date_key = today
        await self.persist_runtime()

        snapshot = await self._refresh_snapshot() or self._snapshot or CaseSnapshot()
        briefing = self._scanner.build_daily_briefing(snapshot, now)
        records = await self._emit(
            EventOccurrence(
                category=EventCategory.DAILY_BRIEFING,
                recipient_id=snapshot.default_lawyer_id,
                variables={"title": briefing.title, "body": briefing.body},
                priority=briefing.priority,
                dedup_key=f"daily_briefing:{today}",
            ),
            now,
        )
        return records[0] if records else None

    async def generate_weekly_summary(self) -> NotificationRecord | None:
        """Send the weekly summary once per calendar day it is requested."""
        self._require_active()
        await self.hydrate()
        settings = self._preferences.reminder_settings
        if not settings.weekly_summary_enabled:
            return None
        if not settings.is_category_enabled(EventCategory.WEEKLY_SUMMARY):
            return None

        now = self._clock()
        today = date_key(now)
        if self._last_weekly_summary_date_key == today:
            return None
        self._last_weekly_summary_date_key = today
        await self.persist_runtime()

        snapshot = await self._refresh_snapshot() or self._snapshot or CaseSnapshot()
        summary = self._scanner.build_weekly_summary(snapshot, now)
        records = await self._emit(
            EventOccurrence(
                category=EventCategory.WEEKLY_SUMMARY,
                recipient_id=snapshot.default_lawyer_id,
                variables={"title": summary.title, "body": summary.body},
                priority=summary.priority,
                dedup_key=f"weekly_summary:week:{today}",
            ),
            now,
        )
        return records[0] if records else None

    # --- Control surface ---

    def get_record(self, record_id: UUID) -> NotificationRecord:
        record = self._records.get(record_id)
        if record is None:
            raise NotificationNotFoundError(str(record_id))
        return record

    def list_records(
        self,
        recipient_id: str | None = None,
        status: NotificationStatus | None = None,
        category: EventCategory | None = None,
        channel: Channel | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[NotificationRecord]:
        records = [
            r
            for r in self._records.values()
            if (recipient_id is None or r.recipient_id == recipient_id)
            and (status is None or r.status == status)
            and (category is None or r.category == category)
            and (channel is None or r.channel == channel)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[offset : offset + limit]

    async def acknowledge(self, record_id: UUID) -> NotificationRecord:
        record = self.get_record(record_id)
        if record.status != NotificationStatus.ACKNOWLEDGED:
            now = self._clock()
            record.status = NotificationStatus.ACKNOWLEDGED
            record.acknowledged_at = now
            record.updated_at = now
            await self._audit.record_for(
                AuditActions.NOTIFICATION_ACKNOWLEDGED, record, "Acknowledged"
            )
        return record

    async def acknowledge_category(self, category: EventCategory) -> int:
        """Acknowledge every open record of ``category``. Returns the count."""
        now = self._clock()
        count = 0
        for record in self._records.values():
            if record.category != category or record.status == NotificationStatus.ACKNOWLEDGED:
                continue
            record.status = NotificationStatus.ACKNOWLEDGED
            record.acknowledged_at = now
            record.updated_at = now
            count += 1
        if count:
            await self._audit.record(
                AuditActions.NOTIFICATION_ACKNOWLEDGED,
                f"Acknowledged {count} {category.value} notification(s)",
                event_category=category.value,
                count=count,
            )
        return count

    async def retry_failed(self, record_id: UUID) -> NotificationRecord:
        """Put a failed record back on the send path."""
        self._require_active()
        record = self.get_record(record_id)
        if record.status != NotificationStatus.FAILED:
            raise NotificationNotRetriableError(str(record_id), record.status.value)

        now = self._clock()
        if record.category == EventCategory.DIGEST:
            self._reopen_digest(record, now)
        record.retry_count += 1
        record.status = NotificationStatus.PENDING
        record.error_message = None
        record.digest_id = None
        record.updated_at = now
        self._launch(record)
        await self._audit.record_for(
            AuditActions.NOTIFICATION_RETRIED,
            record,
            f"Manual retry (attempt {record.retry_count})",
        )
        return record

    def _reopen_digest(self, composite: NotificationRecord, now: datetime) -> None:
        digest = self._digests.get(UUID(composite.metadata["digest_id"]))
        if digest is None:
            return
        for record_id in digest.notification_ids:
            record = self._records.get(record_id)
            if (
                record is None
                or record.status != NotificationStatus.FAILED
                or record.digest_id != digest.id
            ):
                continue
            record.status = NotificationStatus.SCHEDULED
            record.failed_at = None
            record.error_message = None
            record.updated_at = now
        self._digests.reopen(digest)

    def mark_delivered(self, record_id: UUID) -> NotificationRecord:
        record = self.get_record(record_id)
        self._dispatcher.mark_delivered(record)
        return record

    def mark_opened(self, record_id: UUID) -> NotificationRecord:
        record = self.get_record(record_id)
        self._dispatcher.mark_opened(record)
        return record

    # --- Rules ---

    def list_rules(self) -> list[TriggerRule]:
        return self._resolver.list_rules()

    def get_rule(self, rule_id: str) -> TriggerRule:
        return self._resolver.get_rule(rule_id)

    async def update_rule(self, rule_id: str, patch: dict[str, Any]) -> TriggerRule:
        rule = self._resolver.update_rule(rule_id, patch)
        await self.persist_preferences()
        await self._audit.record(
            AuditActions.RULE_UPDATED,
            f"Rule {rule_id} updated",
            rule_id=rule_id,
            fields=sorted(patch),
        )
        return rule

    # --- Preferences ---

    def get_preference(self, recipient_id: str, channel: Channel) -> RecipientPreference:
        return self._preferences.effective(recipient_id, channel)

    def list_preferences(self, recipient_id: str) -> list[RecipientPreference]:
        return self._preferences.list_for(recipient_id)

    async def update_preference(self, preference: RecipientPreference) -> RecipientPreference:
        """Store a preference; the next resolver lookup sees it."""
        updated = self._preferences.upsert(preference, self._clock())
        await self.persist_preferences()
        await self._audit.record(
            AuditActions.PREFERENCE_UPDATED,
            f"Preference for {preference.channel.value} updated",
            recipient_id=preference.recipient_id,
            channel=preference.channel.value,
        )
        return updated

    def get_priority_channels(
        self,
        recipient_id: str,
        audience: Audience,
    ) -> dict[Priority, list[Channel]] | None:
        return self._preferences.priority_channels(recipient_id, audience)

    async def set_priority_channels(
        self,
        recipient_id: str,
        mapping: dict[Priority, list[Channel]],
    ) -> dict[Priority, list[Channel]]:
        updated = self._preferences.set_priority_channels(recipient_id, mapping)
        await self.persist_preferences()
        return updated

    def get_reminder_settings(self) -> ReminderSettings:
        return self._preferences.reminder_settings

    async def update_reminder_settings(self, patch: dict[str, Any]) -> ReminderSettings:
        updated = self._preferences.update_reminder_settings(patch)
        await self.persist_preferences()
        return updated

    # --- Read models ---

    def list_digests(self) -> list[Digest]:
        return self._digests.all()

    def get_digest(self, digest_id: UUID) -> Digest:
        digest = self._digests.get(digest_id)
        if digest is None:
            raise DigestNotFoundError(str(digest_id))
        return digest

    async def list_audit_entries(
        self,
        limit: int = 50,
        offset: int = 0,
        severity: AuditSeverity | None = None,
        category: str | None = None,
    ) -> list[AuditEntry]:
        return await self._audit_sink.list_recent(
            limit=limit, offset=offset, severity=severity, category=category
        )

    def get_stats(self) -> EngineStats:
        records = list(self._records.values())
        today = self._clock().date()

        def count(*statuses: NotificationStatus) -> int:
            return sum(1 for r in records if r.status in statuses)

        return EngineStats(
            total_sent=count(*DELIVERED_STATUSES),
            pending=count(NotificationStatus.PENDING, NotificationStatus.SENDING),
            scheduled=count(NotificationStatus.SCHEDULED),
            suppressed=count(NotificationStatus.SUPPRESSED),
            failed=count(NotificationStatus.FAILED),
            today_count=sum(1 for r in records if r.created_at.date() == today),
            critical_open=sum(
                1
                for r in records
                if r.priority.is_urgent and r.status != NotificationStatus.ACKNOWLEDGED
            ),
            pending_digests=len(self._digests.pending()),
            sent_dedup_keys=self._dedup.sent_count,
            deferred_dedup_keys=self._dedup.deferred_count,
            in_flight=len(self._in_flight),
        )
