"""Trigger rule lookup, preference filtering and template rendering."""

import hashlib
import json
import operator
import re
from collections.abc import Callable
from dataclasses import replace
from typing import Any

import structlog

from core.exceptions import InvalidRulePatchError, RuleNotFoundError
from core.logging import warn_once
from domain.entities.notification import (
    Channel,
    EventCategory,
    EventOccurrence,
    Priority,
    ResolvedNotification,
)
from domain.entities.rule import UPDATABLE_RULE_FIELDS, TriggerRule
from domain.services.preference_service import PreferenceService

logger = structlog.get_logger()

UNRESOLVED_PLACEHOLDER = "not specified"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")
_CONDITION = re.compile(r"^\s*(\w+)\s*(?:(==|!=|>=|<=|>|<)\s*(.+?))?\s*$")
_FALSY = {"", "0", "false", "no", "none", "null"}

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}

_LAWYER_CHANNELS = [Channel.EMAIL, Channel.PUSH, Channel.CHAT, Channel.IN_APP]


def _rule(
    category: EventCategory,
    channels: list[Channel],
    priority: Priority,
    subject: str,
    body: str,
    delay_minutes: int = 0,
    condition: str | None = None,
) -> TriggerRule:
    return TriggerRule(
        id=f"rule:{category.value}",
        category=category,
        channels=list(channels),
        priority=priority,
        subject_template=subject,
        body_template=body,
        delay_minutes=delay_minutes,
        condition=condition,
    )


def default_trigger_rules() -> list[TriggerRule]:
    """Build a fresh copy of the built-in rule set."""
    return [
        # --- Lawyer reminders ---
        _rule(
            EventCategory.DEADLINE_APPROACHING,
            _LAWYER_CHANNELS,
            Priority.HIGH,
            "Deadline in {time_until}: {deadline_title}",
            "A deadline needs your attention:\n\nTitle: {deadline_title}\n"
            "Due: {due_at}\nRemaining: {time_until}\nMatter: {matter_title}",
        ),
        _rule(
            EventCategory.DEADLINE_EXPIRED,
            _LAWYER_CHANNELS,
            Priority.CRITICAL,
            "OVERDUE: {deadline_title}",
            "The deadline {deadline_title} expired on {due_at}.\n\nMatter: {matter_title}",
        ),
        _rule(
            EventCategory.COURT_DATE_APPROACHING,
            _LAWYER_CHANNELS,
            Priority.HIGH,
            "Court date in {time_until}: {court}",
            "Court: {court}\nDate: {starts_at}\nLocation: {location}\n"
            "Remaining: {time_until}\nMatter: {matter_title}",
        ),
        _rule(
            EventCategory.COURT_DATE_TOMORROW,
            _LAWYER_CHANNELS,
            Priority.HIGH,
            "Court date tomorrow: {court}",
            "Court: {court}\nDate: {starts_at}\nLocation: {location}\n"
            "Remaining: {time_until}\nMatter: {matter_title}",
        ),
        _rule(
            EventCategory.FOLLOW_UP_DUE,
            _LAWYER_CHANNELS,
            Priority.NORMAL,
            "Follow-up due: {follow_up_title}",
            'The follow-up "{follow_up_title}" is due in {time_until}.\n\nMatter: {matter_title}',
        ),
        _rule(
            EventCategory.CALENDAR_CONFLICT,
            _LAWYER_CHANNELS,
            Priority.HIGH,
            "Calendar conflict: {first_title} / {second_title}",
            "Two appointments overlap:\n\n1) {first_title} at {first_start}\n"
            "2) {second_title} at {second_start}\n\nPlease move one of them.",
        ),
        _rule(
            EventCategory.DAILY_BRIEFING,
            _LAWYER_CHANNELS,
            Priority.NORMAL,
            "{title}",
            "{body}",
        ),
        _rule(
            EventCategory.WEEKLY_SUMMARY,
            _LAWYER_CHANNELS,
            Priority.NORMAL,
            "{title}",
            "{body}",
        ),
        _rule(
            EventCategory.DOCUMENT_ACTION_REQUIRED,
            _LAWYER_CHANNELS,
            Priority.HIGH,
            "Document needs action: {document_title}",
            "{details}\n\nMatter: {matter_title}",
        ),
        # --- Client: matters ---
        _rule(
            EventCategory.MATTER_STATUS_CHANGED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.NORMAL,
            "Status update for your matter {matter_reference}",
            "The status of your matter ({matter_title}) changed to: {new_status}.\n\n{details}",
        ),
        _rule(
            EventCategory.MATTER_CLOSED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.HIGH,
            "Your matter {matter_reference} has been closed",
            "Your matter ({matter_title}) has been concluded.\n\n{details}\n\n"
            "Thank you for your trust.",
        ),
        _rule(
            EventCategory.MATTER_ASSIGNED,
            [Channel.EMAIL],
            Priority.NORMAL,
            "New responsible lawyer for your matter {matter_reference}",
            "{lawyer_name} is now responsible for your matter ({matter_title}).",
        ),
        # --- Client: deadlines ---
        _rule(
            EventCategory.CLIENT_DEADLINE_APPROACHING,
            [Channel.EMAIL, Channel.PORTAL, Channel.PUSH],
            Priority.HIGH,
            "Deadline: {deadline_title} expires on {deadline_date}",
            "An important deadline in your matter ({matter_title}) expires soon:\n\n"
            "{deadline_title}\nExpires: {deadline_date}\n\n{action_required}",
        ),
        _rule(
            EventCategory.CLIENT_DEADLINE_EXPIRED,
            [Channel.EMAIL, Channel.PORTAL, Channel.PUSH],
            Priority.IMMEDIATE,
            "OVERDUE: deadline {deadline_title} has expired",
            "The deadline {deadline_title} in your matter ({matter_title}) has expired.\n\n"
            "Please contact us immediately.",
        ),
        _rule(
            EventCategory.DEADLINE_CREATED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.NORMAL,
            "New deadline in your matter {matter_reference}",
            "A new deadline was recorded for your matter ({matter_title}):\n\n"
            "{deadline_title}\nExpires: {deadline_date}",
            delay_minutes=5,
        ),
        # --- Client: documents ---
        _rule(
            EventCategory.DOCUMENT_UPLOADED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.NORMAL,
            "New document in your matter {matter_reference}",
            'The document "{document_title}" was added to your matter ({matter_title}).',
            delay_minutes=2,
        ),
        _rule(
            EventCategory.DOCUMENT_FINALIZED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.HIGH,
            "Document ready: {document_title}",
            'The document "{document_title}" for your matter ({matter_title}) is final '
            "and available in your portal.",
        ),
        _rule(
            EventCategory.DOCUMENT_SIGNATURE_REQUIRED,
            [Channel.EMAIL, Channel.PORTAL, Channel.PUSH],
            Priority.HIGH,
            "Signature required: {document_title}",
            'Please sign the document "{document_title}" for your matter ({matter_title}).'
            "\n\n{action_required}",
        ),
        # --- Client: court dates ---
        _rule(
            EventCategory.COURT_DATE_SCHEDULED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.HIGH,
            "Court date scheduled: {court_date}",
            "A hearing in your matter ({matter_title}) was scheduled:\n\n"
            "Date: {court_date}\nCourt: {court}\nLocation: {location}",
        ),
        _rule(
            EventCategory.CLIENT_COURT_DATE_APPROACHING,
            [Channel.EMAIL, Channel.PORTAL, Channel.PUSH],
            Priority.IMMEDIATE,
            "Reminder: court date on {court_date}",
            "Your hearing is coming up:\n\nDate: {court_date}\nCourt: {court}\n"
            "Location: {location}\n\n{preparation_notes}",
        ),
        _rule(
            EventCategory.COURT_DATE_RESCHEDULED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.HIGH,
            "Court date moved to {court_date}",
            "The hearing in your matter ({matter_title}) was moved.\n\n"
            "New date: {court_date}\nCourt: {court}",
        ),
        _rule(
            EventCategory.COURT_DATE_CANCELLED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.HIGH,
            "Court date cancelled",
            "The hearing on {court_date} in your matter ({matter_title}) was cancelled.",
        ),
        # --- Client: invoices and payments ---
        _rule(
            EventCategory.INVOICE_CREATED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.NORMAL,
            "New invoice {invoice_number}",
            "Invoice {invoice_number} over {amount} was issued for your matter "
            "({matter_title}).\nDue date: {due_date}",
        ),
        _rule(
            EventCategory.INVOICE_SENT,
            [Channel.EMAIL, Channel.PORTAL, Channel.CHAT],
            Priority.HIGH,
            "Invoice {invoice_number} sent",
            "Invoice {invoice_number} over {amount} is now available.\nDue date: {due_date}",
        ),
        _rule(
            EventCategory.INVOICE_OVERDUE,
            [Channel.EMAIL, Channel.PORTAL, Channel.PUSH],
            Priority.HIGH,
            "Payment reminder: invoice {invoice_number}",
            "Invoice {invoice_number} over {amount} was due on {due_date} and is still open.",
        ),
        _rule(
            EventCategory.PAYMENT_RECEIVED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.NORMAL,
            "Payment received",
            "We received your payment of {amount} for invoice {invoice_number}. Thank you.",
        ),
        _rule(
            EventCategory.PAYMENT_REMINDER,
            [Channel.EMAIL],
            Priority.NORMAL,
            "Open balance on invoice {invoice_number}",
            "An amount of {amount_due} is still open on invoice {invoice_number}.",
            condition="amount_due > 0",
        ),
        # --- Client: analysis ---
        _rule(
            EventCategory.ANALYSIS_COMPLETE,
            [Channel.EMAIL, Channel.PORTAL, Channel.CHAT],
            Priority.NORMAL,
            "Analysis of your matter {matter_reference} is complete",
            "The analysis of your documents for {matter_title} is complete.\n\n{summary}",
            delay_minutes=5,
        ),
        # --- Client: power of attorney and KYC ---
        _rule(
            EventCategory.POWER_OF_ATTORNEY_REQUIRED,
            [Channel.EMAIL, Channel.PORTAL, Channel.PUSH],
            Priority.HIGH,
            "Power of attorney required",
            "To proceed with your matter ({matter_title}) we need a signed power of "
            "attorney.\n\n{action_required}",
        ),
        _rule(
            EventCategory.KYC_REQUIRED,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.HIGH,
            "Identity verification required",
            "Please complete the identity verification for your matter ({matter_title}).",
        ),
        # --- Client: portal and communication ---
        _rule(
            EventCategory.PORTAL_DOCUMENT_REQUEST,
            [Channel.EMAIL, Channel.PORTAL, Channel.PUSH],
            Priority.HIGH,
            "Documents requested: {document_title}",
            "Please upload the following documents in your portal:\n\n{requested_documents}",
        ),
        _rule(
            EventCategory.PORTAL_MESSAGE_RECEIVED,
            [Channel.EMAIL],
            Priority.NORMAL,
            "New message in your portal",
            "You have a new message from {sender_name} regarding {matter_title}.",
            delay_minutes=1,
        ),
        _rule(
            EventCategory.CASE_MILESTONE,
            [Channel.EMAIL, Channel.PORTAL],
            Priority.NORMAL,
            "Progress in your matter {matter_reference}",
            "Your matter ({matter_title}) reached a milestone: {milestone}.\n\n{details}",
        ),
    ]


def coerce_category(value: EventCategory | str) -> EventCategory | None:
    """Map a category string onto the closed enum; unknown values are reported once."""
    if isinstance(value, EventCategory):
        return value
    try:
        return EventCategory(value)
    except ValueError:
        warn_once("event_category_unknown", value)
        return None


def interpolate(template: str, variables: dict[str, str]) -> str:
    """Replace ``{name}`` tokens; unresolved or blank values render as a marker."""

    def substitute(match: re.Match[str]) -> str:
        value = variables.get(match.group(1))
        if value is None or str(value).strip() == "":
            return UNRESOLVED_PLACEHOLDER
        return str(value)

    return _PLACEHOLDER.sub(substitute, template)


def _literal(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        return raw[1:-1]
    return raw


def evaluate_condition(condition: str | None, variables: dict[str, str]) -> bool:
    """Evaluate ``"<var>"`` or ``"<var> <op> <literal>"`` against the variables.

    Numeric comparison is used when both sides parse as numbers. An
    unparseable condition is reported once and passes.
    """
    if condition is None or not condition.strip():
        return True

    match = _CONDITION.match(condition)
    if match is None:
        warn_once("rule_condition_unparseable", condition)
        return True

    name, op, raw_literal = match.groups()
    value = variables.get(name)
    if op is None:
        return value is not None and value.strip().lower() not in _FALSY

    literal = _literal(raw_literal)
    if value is None:
        return op == "!="
    try:
        return _OPERATORS[op](float(value), float(literal))
    except ValueError:
        return _OPERATORS[op](value, literal)


def default_dedup_key(occurrence: EventOccurrence, category: EventCategory) -> str:
    """``{category}:{recipient}:{sha1}`` over correlation ids and variables."""
    payload = {
        "matter_id": occurrence.matter_id,
        "case_id": occurrence.case_id,
        "deadline_id": occurrence.deadline_id,
        "court_date_id": occurrence.court_date_id,
        "variables": occurrence.variables,
    }
    digest = hashlib.sha1(
        json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
    return f"{category.value}:{occurrence.recipient_id}:{digest}"


class RuleResolver:
    """Turns an event occurrence into per-channel notification tuples."""

    def __init__(
        self,
        preferences: PreferenceService,
        rules: list[TriggerRule] | None = None,
    ) -> None:
        self._preferences = preferences
        self._rules: dict[str, TriggerRule] = {
            rule.id: rule for rule in (rules if rules is not None else default_trigger_rules())
        }
        self._patches: dict[str, dict[str, Any]] = {}

    @property
    def patches(self) -> dict[str, dict[str, Any]]:
        """Accumulated rule updates, persisted with the preferences blob."""
        return self._patches

    def list_rules(self) -> list[TriggerRule]:
        return list(self._rules.values())

    def get_rule(self, rule_id: str) -> TriggerRule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def rules_for(self, category: EventCategory) -> list[TriggerRule]:
        return [
            rule
            for rule in self._rules.values()
            if rule.category == category and rule.enabled
        ]

    def update_rule(self, rule_id: str, patch: dict[str, Any]) -> TriggerRule:
        """Apply ``patch`` to a rule.

        Args:
            rule_id: Identifier of the rule to change.
            patch: Field name to new value; only updatable fields are accepted.

        Returns:
            The updated rule.

        Raises:
            RuleNotFoundError: If no rule has ``rule_id``.
            InvalidRulePatchError: If the patch names fields that cannot change.
        """
        rule = self.get_rule(rule_id)
        invalid = [name for name in patch if name not in UPDATABLE_RULE_FIELDS]
        if invalid:
            raise InvalidRulePatchError(invalid)

        changes = dict(patch)
        if "channels" in changes:
            changes["channels"] = [Channel(channel) for channel in changes["channels"]]
        if "priority" in changes:
            changes["priority"] = Priority(changes["priority"])
        if "delay_minutes" in changes and int(changes["delay_minutes"]) < 0:
            raise InvalidRulePatchError(["delay_minutes"])

        updated = replace(rule, **changes)
        self._rules[rule_id] = updated
        self._patches.setdefault(rule_id, {}).update(
            {
                name: ([c.value for c in value] if name == "channels" else value)
                for name, value in changes.items()
            }
        )
        logger.info("rule_updated", rule_id=rule_id, fields=sorted(changes))
        return updated

    def apply_patches(self, patches: dict[str, dict[str, Any]]) -> None:
        """Re-apply persisted rule updates; patches for unknown rules are skipped."""
        for rule_id, patch in patches.items():
            if rule_id not in self._rules:
                warn_once("rule_patch_unknown_rule", rule_id)
                continue
            self.update_rule(rule_id, patch)

    def resolve(self, occurrence: EventOccurrence) -> list[ResolvedNotification]:
        """Resolve an occurrence into (channel, priority, dedup key, text) tuples.

        For each enabled rule of the category and each of its channels, the
        tuple is dropped when the recipient disabled the channel, deny-lists
        the category, has an allow-list without it, or does not accept the
        priority on that channel.
        """
        category = coerce_category(occurrence.category)
        if category is None:
            return []

        rules = self.rules_for(category)
        if not rules:
            logger.debug("no_rules_for_category", category=category.value)
            return []

        dedup_key = occurrence.dedup_key or default_dedup_key(occurrence, category)
        resolved: list[ResolvedNotification] = []

        for rule in rules:
            if not evaluate_condition(rule.condition, occurrence.variables):
                continue

            priority = occurrence.priority or rule.priority
            allowed = self._preferences.channels_for_priority(
                occurrence.recipient_id, category.audience, priority
            )
            subject = interpolate(rule.subject_template, occurrence.variables)
            body = interpolate(rule.body_template, occurrence.variables)

            for channel in rule.channels:
                pref = self._preferences.effective(occurrence.recipient_id, channel)
                if not pref.allows(category):
                    continue
                if allowed is not None and channel not in allowed:
                    continue
                resolved.append(
                    ResolvedNotification(
                        rule_id=rule.id,
                        channel=channel,
                        priority=priority,
                        dedup_key=dedup_key,
                        subject=subject,
                        body=body,
                        delay_minutes=rule.delay_minutes,
                    )
                )

        return resolved
