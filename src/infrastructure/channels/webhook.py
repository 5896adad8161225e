"""Webhook channel adapter for chat, push and SMS dispatch.

The receiving workflow (messenger bot, push gateway, SMS gateway) gets one
JSON document per record and is responsible for the last hop.
"""

import httpx
import structlog

from domain.entities.notification import Channel, NotificationRecord, SendResult

logger = structlog.get_logger()


class WebhookChannelAdapter:
    """POSTs records to a webhook; 4xx is permanent, 5xx and network errors are transient."""

    def __init__(
        self,
        channel: Channel,
        url: str,
        client: httpx.AsyncClient,
    ) -> None:
        self.channel = channel
        self._url = url
        self._client = client

    def payload(self, record: NotificationRecord) -> dict:
        return {
            "channel": self.channel.value,
            "record_id": str(record.id),
            "recipient_id": record.recipient_id,
            "address": record.address,
            "category": record.category.value,
            "priority": record.priority.value,
            "title": record.title,
            "body": record.body,
            "matter_id": record.matter_id,
        }

    async def send(self, record: NotificationRecord) -> SendResult:
        if not self._url:
            return SendResult(
                ok=False,
                message=f"No webhook configured for {self.channel.value}",
                retryable=False,
            )

        try:
            response = await self._client.post(self._url, json=self.payload(record))
        except httpx.HTTPError as exc:
            logger.warning(
                "webhook_request_failed",
                channel=self.channel.value,
                record_id=str(record.id),
                error=str(exc),
            )
            return SendResult(ok=False, message=f"Webhook unreachable: {exc}")

        if response.is_success:
            return SendResult(ok=True, message=f"Webhook accepted ({response.status_code})")

        status = response.status_code
        retryable = status >= 500 or status in (408, 429)
        logger.warning(
            "webhook_rejected",
            channel=self.channel.value,
            record_id=str(record.id),
            status_code=status,
        )
        return SendResult(
            ok=False,
            message=f"Webhook responded with {status}: {response.text[:200]}",
            retryable=retryable,
        )
