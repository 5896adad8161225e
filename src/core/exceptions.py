"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Not found errors (404)
    NOTIFICATION_NOT_FOUND = "NOTIFICATION_NOT_FOUND"
    RULE_NOT_FOUND = "RULE_NOT_FOUND"
    DIGEST_NOT_FOUND = "DIGEST_NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_RULE_PATCH = "INVALID_RULE_PATCH"
    UNKNOWN_EVENT_CATEGORY = "UNKNOWN_EVENT_CATEGORY"

    # Conflict errors (409)
    NOTIFICATION_NOT_RETRIABLE = "NOTIFICATION_NOT_RETRIABLE"
    ENGINE_NOT_RUNNING = "ENGINE_NOT_RUNNING"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Delivery errors (502)
    DELIVERY_FAILED = "DELIVERY_FAILED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotificationNotFoundError(AppException):
    """Notification record not found."""

    def __init__(self, record_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.NOTIFICATION_NOT_FOUND,
            message=f"Notification not found: {record_id}",
            status_code=404,
            details={"record_id": record_id},
        )


class RuleNotFoundError(AppException):
    """Trigger rule not found."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.RULE_NOT_FOUND,
            message=f"Trigger rule not found: {rule_id}",
            status_code=404,
            details={"rule_id": rule_id},
        )


class DigestNotFoundError(AppException):
    """Digest not found."""

    def __init__(self, digest_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.DIGEST_NOT_FOUND,
            message=f"Digest not found: {digest_id}",
            status_code=404,
            details={"digest_id": digest_id},
        )


class ValidationError(AppException):
    """Request payload failed domain validation."""

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.VALIDATION_ERROR,
            message=message,
            status_code=400,
            details=details,
        )


class InvalidRulePatchError(AppException):
    """A rule update names fields that cannot be changed."""

    def __init__(self, fields: list[str]) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_RULE_PATCH,
            message=f"Rule fields cannot be updated: {', '.join(sorted(fields))}",
            status_code=400,
            details={"fields": sorted(fields)},
        )


class UnknownEventCategoryError(AppException):
    """Event category is not part of the closed category set."""

    def __init__(self, category: str) -> None:
        super().__init__(
            error_code=ErrorCode.UNKNOWN_EVENT_CATEGORY,
            message=f"Unknown event category: {category}",
            status_code=400,
            details={"category": category},
        )


class NotificationNotRetriableError(AppException):
    """Only failed notifications can be retried."""

    def __init__(self, record_id: str, status: str) -> None:
        super().__init__(
            error_code=ErrorCode.NOTIFICATION_NOT_RETRIABLE,
            message=f"Notification {record_id} is {status}; only failed notifications can be retried",
            status_code=409,
            details={"record_id": record_id, "status": status},
        )


class EngineNotRunningError(AppException):
    """The notification engine has been stopped."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.ENGINE_NOT_RUNNING,
            message="Notification engine is stopped",
            status_code=409,
        )


class PermanentDeliveryError(AppException):
    """A channel adapter rejected a send in a way retrying cannot fix.

    Raised for a missing recipient address or an invalid channel
    configuration. The dispatcher fails the record without retrying.
    """

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(
            error_code=ErrorCode.DELIVERY_FAILED,
            message=message,
            status_code=502,
            details={"channel": channel},
        )
