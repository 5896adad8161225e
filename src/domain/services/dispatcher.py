"""Channel-agnostic send orchestration with retry and backoff."""

from collections.abc import Callable, Iterable, Mapping
from datetime import timedelta

import structlog

from core.exceptions import PermanentDeliveryError
from domain.entities.audit import AuditActions, AuditSeverity
from domain.entities.notification import (
    Channel,
    NotificationRecord,
    NotificationStatus,
    SendResult,
)
from domain.repositories.channel_adapter import IChannelAdapter
from domain.services.audit_recorder import AuditRecorder
from domain.services.time_window import Clock

logger = structlog.get_logger()

DEFAULT_BASE_BACKOFF = timedelta(seconds=30)


class Dispatcher:
    """Drives a record through ``pending -> sending -> sent | scheduled | failed``.

    The dispatcher knows nothing about transports: it calls the adapter
    registered for the record's channel and interprets the ``SendResult``.
    """

    def __init__(
        self,
        adapters: Mapping[Channel, IChannelAdapter],
        audit: AuditRecorder,
        clock: Clock,
        is_active: Callable[[], bool],
        base_backoff: timedelta = DEFAULT_BASE_BACKOFF,
    ) -> None:
        self._adapters = adapters
        self._audit = audit
        self._clock = clock
        self._is_active = is_active
        self._base_backoff = base_backoff

    def backoff_for(self, retry_count: int) -> timedelta:
        """Delay before the next attempt: ``2^retry_count * base``."""
        return self._base_backoff * (2**retry_count)

    async def dispatch(self, record: NotificationRecord) -> NotificationStatus:
        """Send one record and apply the outcome.

        Args:
            record: A record in ``pending`` status.

        Returns:
            The record's status after the attempt. When the engine stopped
            while the send was in flight, the record is left untouched.
        """
        if not self._is_active():
            return record.status

        adapter = self._adapters.get(record.channel)
        if adapter is None:
            await self._fail(record, f"No adapter registered for channel {record.channel}")
            return record.status
        if not record.address:
            await self._fail(record, "Missing recipient address")
            return record.status

        record.status = NotificationStatus.SENDING
        record.updated_at = self._clock()

        try:
            result = await adapter.send(record)
        except PermanentDeliveryError as exc:
            result = SendResult(ok=False, message=exc.message, retryable=False)
        except Exception as exc:
            logger.warning(
                "channel_send_raised",
                record_id=str(record.id),
                channel=record.channel.value,
                error=str(exc),
            )
            result = SendResult(ok=False, message=str(exc) or type(exc).__name__)

        if not self._is_active():
            logger.info("dispatch_completed_after_stop", record_id=str(record.id))
            return record.status

        if record.status != NotificationStatus.SENDING:
            # changed while in flight (e.g. acknowledged); keep the newer state
            if result.ok and record.sent_at is None:
                record.sent_at = self._clock()
            logger.info(
                "dispatch_outcome_superseded",
                record_id=str(record.id),
                status=record.status.value,
                ok=result.ok,
            )
            return record.status

        if result.ok:
            self._mark_sent(record, result)
        elif result.retryable:
            await self._retry_or_fail(record, result.message)
        else:
            await self._fail(record, result.message)
        return record.status

    def _mark_sent(self, record: NotificationRecord, result: SendResult) -> None:
        now = self._clock()
        record.sent_at = now
        record.updated_at = now
        record.error_message = None
        if result.delivered:
            record.status = NotificationStatus.DELIVERED
            record.delivered_at = now
        else:
            record.status = NotificationStatus.SENT
        logger.info(
            "notification_sent",
            record_id=str(record.id),
            channel=record.channel.value,
            status=record.status.value,
        )

    async def _retry_or_fail(self, record: NotificationRecord, message: str) -> None:
        if record.retry_count >= record.max_retries:
            await self._fail(record, message)
            return

        now = self._clock()
        delay = self.backoff_for(record.retry_count)
        record.status = NotificationStatus.SCHEDULED
        record.scheduled_at = now + delay
        record.retry_count += 1
        record.error_message = message
        record.updated_at = now
        logger.info(
            "notification_retry_scheduled",
            record_id=str(record.id),
            retry_count=record.retry_count,
            delay_seconds=delay.total_seconds(),
        )
        await self._audit.record_for(
            AuditActions.NOTIFICATION_RETRY_SCHEDULED,
            record,
            f"Retry {record.retry_count}/{record.max_retries} in {int(delay.total_seconds())}s: {message}",
            retry_count=record.retry_count,
        )

    async def _fail(self, record: NotificationRecord, message: str) -> None:
        now = self._clock()
        record.status = NotificationStatus.FAILED
        record.failed_at = now
        record.updated_at = now
        record.error_message = message
        logger.warning(
            "notification_failed",
            record_id=str(record.id),
            channel=record.channel.value,
            error=message,
        )
        await self._audit.record_for(
            AuditActions.NOTIFICATION_FAILED,
            record,
            message,
            AuditSeverity.WARNING,
            retry_count=record.retry_count,
        )

    def promote_due(self, records: Iterable[NotificationRecord]) -> list[NotificationRecord]:
        """Move scheduled records whose time elapsed back to ``pending``.

        Records held by a digest are left alone; the digest flush owns them.
        """
        now = self._clock()
        promoted = []
        for record in records:
            if (
                record.status == NotificationStatus.SCHEDULED
                and record.digest_id is None
                and record.scheduled_at is not None
                and record.scheduled_at <= now
            ):
                record.status = NotificationStatus.PENDING
                record.updated_at = now
                promoted.append(record)
        return promoted

    def mark_delivered(self, record: NotificationRecord) -> bool:
        if record.status != NotificationStatus.SENT:
            return False
        now = self._clock()
        record.status = NotificationStatus.DELIVERED
        record.delivered_at = now
        record.updated_at = now
        return True

    def mark_opened(self, record: NotificationRecord) -> bool:
        if record.status not in (NotificationStatus.SENT, NotificationStatus.DELIVERED):
            return False
        now = self._clock()
        record.delivered_at = record.delivered_at or now
        record.status = NotificationStatus.OPENED
        record.opened_at = now
        record.updated_at = now
        return True
