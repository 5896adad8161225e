"""Audit entry domain entity and category constants."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

# --- Audit Category Constants ---
# Format: {entity_type}.{action}


class AuditActions:
    """Audit category constants using dot-notation."""

    # Notification lifecycle
    NOTIFICATION_FANNED_OUT = "notification.fanned_out"
    NOTIFICATION_DEFERRED = "notification.deferred"
    NOTIFICATION_FLUSHED = "notification.flushed"
    NOTIFICATION_SCHEDULED = "notification.scheduled"
    NOTIFICATION_RETRY_SCHEDULED = "notification.retry_scheduled"
    NOTIFICATION_FAILED = "notification.failed"
    NOTIFICATION_ACKNOWLEDGED = "notification.acknowledged"
    NOTIFICATION_RETRIED = "notification.retried"

    # Digest lifecycle
    DIGEST_QUEUED = "digest.queued"
    DIGEST_FLUSHED = "digest.flushed"
    DIGEST_FAILED = "digest.failed"

    # Configuration
    RULE_UPDATED = "rule.updated"
    PREFERENCE_UPDATED = "preference.updated"


class AuditSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class AuditEntry:
    """Domain entity for an audit trail entry."""

    category: str
    severity: AuditSeverity
    details: str
    id: UUID = field(default_factory=uuid4)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
