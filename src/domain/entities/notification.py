"""Notification domain entities and enumerations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4


class Audience(StrEnum):
    """Who a notification is addressed to."""

    LAWYER = "lawyer"
    CLIENT = "client"


class Priority(StrEnum):
    """Notification priority.

    ``critical`` is the lawyer-facing top tier and ``immediate`` the
    client-facing one; both bypass quiet hours and digests.
    """

    CRITICAL = "critical"
    IMMEDIATE = "immediate"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"
    DIGEST = "digest"

    @property
    def is_urgent(self) -> bool:
        return self in (Priority.CRITICAL, Priority.IMMEDIATE)

    @property
    def is_digestible(self) -> bool:
        """Priorities below ``high`` may be batched into a digest."""
        return self in (Priority.NORMAL, Priority.LOW, Priority.DIGEST)


class Channel(StrEnum):
    """Outbound delivery channel."""

    EMAIL = "email"
    PUSH = "push"
    CHAT = "chat"
    IN_APP = "in_app"
    SMS = "sms"
    PORTAL = "portal"


class NotificationStatus(StrEnum):
    """Delivery state of a notification record."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    OPENED = "opened"
    FAILED = "failed"
    SUPPRESSED = "suppressed"
    ACKNOWLEDGED = "acknowledged"


class EventCategory(StrEnum):
    """Closed set of event categories.

    Lawyer reminders use snake_case names; client events use
    ``{entity}.{action}`` dot-notation.
    """

    # Lawyer reminders
    DEADLINE_APPROACHING = "deadline_approaching"
    DEADLINE_EXPIRED = "deadline_expired"
    COURT_DATE_APPROACHING = "court_date_approaching"
    COURT_DATE_TOMORROW = "court_date_tomorrow"
    FOLLOW_UP_DUE = "follow_up_due"
    DAILY_BRIEFING = "daily_briefing"
    WEEKLY_SUMMARY = "weekly_summary"
    CALENDAR_CONFLICT = "calendar_conflict"
    DOCUMENT_ACTION_REQUIRED = "document_action_required"

    # Client: matters
    MATTER_STATUS_CHANGED = "matter.status_changed"
    MATTER_ASSIGNED = "matter.assigned"
    MATTER_CLOSED = "matter.closed"
    MATTER_REOPENED = "matter.reopened"

    # Client: deadlines
    CLIENT_DEADLINE_APPROACHING = "deadline.approaching"
    CLIENT_DEADLINE_EXPIRED = "deadline.expired"
    DEADLINE_CREATED = "deadline.created"
    DEADLINE_COMPLETED = "deadline.completed"

    # Client: documents
    DOCUMENT_UPLOADED = "document.uploaded"
    DOCUMENT_FINALIZED = "document.finalized"
    DOCUMENT_SHARED = "document.shared"
    DOCUMENT_SIGNATURE_REQUIRED = "document.signature_required"

    # Client: court dates
    COURT_DATE_SCHEDULED = "court_date.scheduled"
    CLIENT_COURT_DATE_APPROACHING = "court_date.approaching"
    COURT_DATE_RESCHEDULED = "court_date.rescheduled"
    COURT_DATE_CANCELLED = "court_date.cancelled"

    # Client: invoices and payments
    INVOICE_CREATED = "invoice.created"
    INVOICE_SENT = "invoice.sent"
    INVOICE_OVERDUE = "invoice.overdue"
    INVOICE_PAID = "invoice.paid"
    INVOICE_PARTIALLY_PAID = "invoice.partially_paid"
    PAYMENT_RECEIVED = "payment.received"
    PAYMENT_REMINDER = "payment.reminder"

    # Client: analysis
    ANALYSIS_COMPLETE = "analysis.complete"
    ANALYSIS_FINDINGS = "analysis.findings"

    # Client: power of attorney and KYC
    POWER_OF_ATTORNEY_REQUIRED = "power_of_attorney.required"
    POWER_OF_ATTORNEY_SIGNED = "power_of_attorney.signed"
    POWER_OF_ATTORNEY_EXPIRED = "power_of_attorney.expired"
    KYC_REQUIRED = "kyc.required"
    KYC_SUBMITTED = "kyc.submitted"
    KYC_APPROVED = "kyc.approved"
    KYC_REJECTED = "kyc.rejected"

    # Client: portal and communication
    PORTAL_DOCUMENT_REQUEST = "portal.document_request"
    PORTAL_MESSAGE_RECEIVED = "portal.message_received"
    CASE_MILESTONE = "case.milestone"
    CASE_NOTE_ADDED = "case.note_added"
    COMMUNICATION_NEW_MESSAGE = "communication.new_message"

    # Composite digest message
    DIGEST = "notification.digest"

    @property
    def audience(self) -> Audience:
        return Audience.LAWYER if self in LAWYER_CATEGORIES else Audience.CLIENT


LAWYER_CATEGORIES: frozenset[EventCategory] = frozenset(
    {
        EventCategory.DEADLINE_APPROACHING,
        EventCategory.DEADLINE_EXPIRED,
        EventCategory.COURT_DATE_APPROACHING,
        EventCategory.COURT_DATE_TOMORROW,
        EventCategory.FOLLOW_UP_DUE,
        EventCategory.DAILY_BRIEFING,
        EventCategory.WEEKLY_SUMMARY,
        EventCategory.CALENDAR_CONFLICT,
        EventCategory.DOCUMENT_ACTION_REQUIRED,
    }
)


@dataclass
class EventOccurrence:
    """One logical occurrence of an event, before rule resolution."""

    category: EventCategory
    recipient_id: str
    variables: dict[str, str] = field(default_factory=dict)
    matter_id: str | None = None
    case_id: str | None = None
    deadline_id: str | None = None
    court_date_id: str | None = None
    # Overrides the rule priority (lawyer reminders derive it from urgency).
    priority: Priority | None = None
    dedup_key: str | None = None

    @property
    def audience(self) -> Audience:
        return self.category.audience


@dataclass
class NotificationRecord:
    """Domain entity for one (occurrence, channel) firing attempt."""

    recipient_id: str
    audience: Audience
    category: EventCategory
    priority: Priority
    channel: Channel
    title: str
    body: str
    dedup_key: str
    id: UUID = field(default_factory=uuid4)
    status: NotificationStatus = NotificationStatus.PENDING
    address: str | None = None
    rule_id: str | None = None
    digest_id: UUID | None = None
    matter_id: str | None = None
    case_id: str | None = None
    deadline_id: str | None = None
    court_date_id: str | None = None
    retry_count: int = 0
    max_retries: int = 3
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    opened_at: datetime | None = None
    failed_at: datetime | None = None
    acknowledged_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ResolvedNotification:
    """Read-only value object: one channel tuple produced by the rule resolver."""

    rule_id: str
    channel: Channel
    priority: Priority
    dedup_key: str
    subject: str
    body: str
    delay_minutes: int = 0


@dataclass(frozen=True, slots=True)
class SendResult:
    """Outcome reported by a channel adapter."""

    ok: bool
    message: str = ""
    # Adapters that confirm receipt (e.g. an accepted webhook) report it here.
    delivered: bool = False
    # False marks a failure that retrying cannot fix.
    retryable: bool = True
