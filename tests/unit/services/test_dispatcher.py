"""Unit tests for the dispatcher's retry and failure handling."""

from datetime import timedelta

import pytest

from core.exceptions import PermanentDeliveryError
from domain.entities.audit import AuditActions
from domain.entities.notification import (
    Audience,
    Channel,
    EventCategory,
    NotificationRecord,
    NotificationStatus,
    Priority,
    SendResult,
)
from domain.services.audit_recorder import AuditRecorder
from domain.services.dispatcher import Dispatcher


def _record(**overrides: object) -> NotificationRecord:
    values: dict[str, object] = {
        "recipient_id": "client-1",
        "audience": Audience.CLIENT,
        "category": EventCategory.INVOICE_SENT,
        "priority": Priority.HIGH,
        "channel": Channel.CHAT,
        "title": "Invoice sent",
        "body": "Invoice 42 is available.",
        "dedup_key": "invoice.sent:client-1:abc",
        "address": "chat-1",
    }
    values.update(overrides)
    return NotificationRecord(**values)  # type: ignore[arg-type]


class _Active:
    def __init__(self) -> None:
        self.value = True

    def __call__(self) -> bool:
        return self.value


@pytest.fixture
def active() -> _Active:
    return _Active()


@pytest.fixture
def dispatcher(adapters, audit_sink, clock, active) -> Dispatcher:
    return Dispatcher(
        adapters,
        AuditRecorder(audit_sink, clock),
        clock,
        active,
        base_backoff=timedelta(seconds=30),
    )


class TestBackoff:
    def test_doubles_per_attempt(self, dispatcher: Dispatcher) -> None:
        assert [dispatcher.backoff_for(n).total_seconds() for n in range(4)] == [30, 60, 120, 240]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_success_marks_sent(self, dispatcher, adapters, clock) -> None:
        record = _record()

        status = await dispatcher.dispatch(record)

        assert status == NotificationStatus.SENT
        assert record.sent_at == clock.now
        assert adapters[Channel.CHAT].sent == [record]

    @pytest.mark.asyncio
    async def test_confirmed_receipt_marks_delivered(self, dispatcher, adapters) -> None:
        adapters[Channel.CHAT].results.append(SendResult(ok=True, delivered=True))
        record = _record()

        assert await dispatcher.dispatch(record) == NotificationStatus.DELIVERED
        assert record.delivered_at is not None

    @pytest.mark.asyncio
    async def test_transient_failure_schedules_retry(
        self, dispatcher, adapters, audit_sink, clock
    ) -> None:
        adapters[Channel.CHAT].results.append(SendResult(ok=False, message="HTTP 503"))
        record = _record()

        status = await dispatcher.dispatch(record)

        assert status == NotificationStatus.SCHEDULED
        assert record.retry_count == 1
        assert record.scheduled_at == clock.now + timedelta(seconds=30)
        assert record.error_message == "HTTP 503"
        assert audit_sink.categories() == [AuditActions.NOTIFICATION_RETRY_SCHEDULED]

    @pytest.mark.asyncio
    async def test_raised_exception_counts_as_transient(self, dispatcher, adapters) -> None:
        adapters[Channel.CHAT].results.append(ConnectionError("reset by peer"))
        record = _record()

        assert await dispatcher.dispatch(record) == NotificationStatus.SCHEDULED
        assert record.error_message == "reset by peer"

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail(self, dispatcher, adapters, audit_sink) -> None:
        adapters[Channel.CHAT].results.append(SendResult(ok=False, message="HTTP 500"))
        record = _record(retry_count=3, max_retries=3)

        assert await dispatcher.dispatch(record) == NotificationStatus.FAILED
        assert record.failed_at is not None
        assert audit_sink.categories() == [AuditActions.NOTIFICATION_FAILED]

    @pytest.mark.asyncio
    async def test_three_transient_failures_then_fail(
        self, dispatcher, adapters, clock
    ) -> None:
        adapters[Channel.CHAT].results.extend(
            SendResult(ok=False, message="timeout") for _ in range(4)
        )
        record = _record()
        delays = []

        for _ in range(3):
            await dispatcher.dispatch(record)
            delays.append((record.scheduled_at - clock.now).total_seconds())
            clock.set(record.scheduled_at)
            dispatcher.promote_due([record])

        assert delays == [30, 60, 120]
        assert await dispatcher.dispatch(record) == NotificationStatus.FAILED
        assert record.retry_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_fails_without_retry(self, dispatcher, adapters) -> None:
        adapters[Channel.CHAT].results.append(PermanentDeliveryError("chat", "Webhook gone"))
        record = _record()

        assert await dispatcher.dispatch(record) == NotificationStatus.FAILED
        assert record.retry_count == 0
        assert record.error_message == "Webhook gone"

    @pytest.mark.asyncio
    async def test_non_retryable_result_fails(self, dispatcher, adapters) -> None:
        adapters[Channel.CHAT].results.append(SendResult(ok=False, message="400", retryable=False))
        record = _record()

        assert await dispatcher.dispatch(record) == NotificationStatus.FAILED

    @pytest.mark.asyncio
    async def test_missing_address_fails(self, dispatcher, adapters) -> None:
        record = _record(channel=Channel.EMAIL, address=None)

        assert await dispatcher.dispatch(record) == NotificationStatus.FAILED
        assert record.error_message == "Missing recipient address"
        assert adapters[Channel.EMAIL].sent == []

    @pytest.mark.asyncio
    async def test_missing_adapter_fails(self, audit_sink, clock, active) -> None:
        dispatcher = Dispatcher({}, AuditRecorder(audit_sink, clock), clock, active)
        record = _record()

        assert await dispatcher.dispatch(record) == NotificationStatus.FAILED

    @pytest.mark.asyncio
    async def test_inactive_engine_leaves_record_untouched(self, dispatcher, adapters, active) -> None:
        active.value = False
        record = _record()

        assert await dispatcher.dispatch(record) == NotificationStatus.PENDING
        assert adapters[Channel.CHAT].sent == []


class TestPromoteDue:
    def test_promotes_only_elapsed_non_digest_records(self, dispatcher, clock) -> None:
        due = _record(status=NotificationStatus.SCHEDULED, scheduled_at=clock.now)
        later = _record(
            status=NotificationStatus.SCHEDULED, scheduled_at=clock.now + timedelta(minutes=1)
        )
        held = _record(
            status=NotificationStatus.SCHEDULED,
            scheduled_at=clock.now,
            digest_id=_record().id,
        )

        assert dispatcher.promote_due([due, later, held]) == [due]
        assert due.status == NotificationStatus.PENDING
        assert held.status == NotificationStatus.SCHEDULED


class TestReceipts:
    def test_delivered_then_opened(self, dispatcher) -> None:
        record = _record(status=NotificationStatus.SENT)

        assert dispatcher.mark_delivered(record) is True
        assert dispatcher.mark_opened(record) is True
        assert record.status == NotificationStatus.OPENED

    def test_receipts_ignored_for_unsent_records(self, dispatcher) -> None:
        record = _record(status=NotificationStatus.FAILED)

        assert dispatcher.mark_delivered(record) is False
        assert dispatcher.mark_opened(record) is False
        assert record.status == NotificationStatus.FAILED
