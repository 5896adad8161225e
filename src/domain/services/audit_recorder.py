"""Best-effort audit trail writer."""

from typing import Any

import structlog

from domain.entities.audit import AuditEntry, AuditSeverity
from domain.entities.notification import NotificationRecord
from domain.repositories.audit_repository import IAuditSink
from domain.services.time_window import Clock

logger = structlog.get_logger()


class AuditRecorder:
    """Wraps the audit sink so a failing write never reaches the dispatch path."""

    def __init__(self, sink: IAuditSink, clock: Clock) -> None:
        self._sink = sink
        self._clock = clock

    async def record(
        self,
        category: str,
        details: str,
        severity: AuditSeverity = AuditSeverity.INFO,
        **metadata: Any,
    ) -> None:
        entry = AuditEntry(
            category=category,
            severity=severity,
            details=details,
            metadata=metadata,
            created_at=self._clock(),
        )
        try:
            await self._sink.append(entry)
        except Exception as exc:
            logger.error("audit_append_failed", category=category, error=str(exc))

    async def record_for(
        self,
        category: str,
        record: NotificationRecord,
        details: str,
        severity: AuditSeverity = AuditSeverity.INFO,
        **metadata: Any,
    ) -> None:
        await self.record(
            category,
            details,
            severity,
            record_id=str(record.id),
            recipient_id=record.recipient_id,
            channel=record.channel.value,
            event_category=record.category.value,
            priority=record.priority.value,
            dedup_key=record.dedup_key,
            **metadata,
        )
