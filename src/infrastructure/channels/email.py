"""Email channel adapter using SendGrid."""

import asyncio
import html
import json
from typing import Any

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import From, Mail

from core.exceptions import PermanentDeliveryError
from domain.entities.notification import Channel, NotificationRecord, SendResult

logger = structlog.get_logger()


def extract_sendgrid_error(body: Any) -> str | None:
    """Return a readable description of a SendGrid error payload."""
    if body in (None, "", b""):
        return None
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(body, str):
        body = body.strip()
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return body or None

    if isinstance(body, dict):
        messages = [
            str(item["message"])
            for item in body.get("errors", [])
            if isinstance(item, dict) and item.get("message")
        ]
        if messages:
            return "; ".join(messages)
        return json.dumps(body)
    return str(body)


def _is_permanent(status_code: int | None) -> bool:
    # 408 and 429 are worth retrying; other client errors are not.
    return status_code is not None and 400 <= status_code < 500 and status_code not in (408, 429)


class SendGridEmailAdapter:
    """Sends a record as a plain-text plus HTML email."""

    channel = Channel.EMAIL

    def __init__(
        self,
        api_key: str,
        sender_address: str,
        sender_name: str = "",
        subject_prefix: str = "",
        client: SendGridAPIClient | None = None,
    ) -> None:
        self._sender = From(sender_address, sender_name or None)
        self._subject_prefix = subject_prefix
        self._client = client or (SendGridAPIClient(api_key) if api_key else None)

    def build_message(self, record: NotificationRecord) -> Mail:
        subject = f"{self._subject_prefix} {record.title}".strip()
        html_body = "<br>".join(html.escape(line) for line in record.body.splitlines())
        return Mail(
            from_email=self._sender,
            to_emails=record.address,
            subject=subject,
            plain_text_content=record.body,
            html_content=f"<p>{html_body}</p>",
        )

    async def send(self, record: NotificationRecord) -> SendResult:
        if not record.address:
            raise PermanentDeliveryError(self.channel.value, "Recipient has no email address")
        if self._client is None:
            return SendResult(ok=False, message="SendGrid is not configured", retryable=False)

        message = self.build_message(record)
        try:
            # the SendGrid client is synchronous
            response = await asyncio.to_thread(self._client.send, message)
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            details = extract_sendgrid_error(getattr(exc, "body", None)) or str(exc)
            logger.warning(
                "sendgrid_request_failed",
                record_id=str(record.id),
                status_code=status_code,
                error=details,
            )
            return SendResult(
                ok=False,
                message=f"SendGrid error {status_code}: {details}" if status_code else details,
                retryable=not _is_permanent(status_code),
            )

        status_code = getattr(response, "status_code", None)
        if isinstance(status_code, int) and 200 <= status_code < 300:
            return SendResult(ok=True, message=f"Accepted by SendGrid ({status_code})")

        details = extract_sendgrid_error(getattr(response, "body", None))
        logger.warning(
            "sendgrid_unsuccessful_response",
            record_id=str(record.id),
            status_code=status_code,
            error=details,
        )
        return SendResult(
            ok=False,
            message=f"SendGrid responded with {status_code}" + (f": {details}" if details else ""),
            retryable=not _is_permanent(status_code),
        )
