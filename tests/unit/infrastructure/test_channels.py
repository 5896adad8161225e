"""Unit tests for channel adapters."""

import json
from unittest.mock import MagicMock

import httpx
import pytest

from core.config import Settings
from core.exceptions import PermanentDeliveryError
from domain.entities.notification import (
    Audience,
    Channel,
    EventCategory,
    NotificationRecord,
    Priority,
)
from infrastructure.channels import build_channel_adapters
from infrastructure.channels.email import SendGridEmailAdapter, extract_sendgrid_error
from infrastructure.channels.inbox import InboxChannelAdapter
from infrastructure.channels.webhook import WebhookChannelAdapter

WEBHOOK_URL = "https://hooks.example.com/chat"


def _record(channel: Channel = Channel.CHAT, address: str | None = "chat-1") -> NotificationRecord:
    return NotificationRecord(
        recipient_id="client-1",
        audience=Audience.CLIENT,
        category=EventCategory.INVOICE_SENT,
        priority=Priority.HIGH,
        channel=channel,
        title="Invoice 42 sent",
        body="Invoice 42 over 1,200.00 EUR is now available.\nDue date: 2026-03-16",
        dedup_key="invoice.sent:client-1:abc",
        address=address,
        matter_id="m-1",
    )


def _webhook(handler) -> WebhookChannelAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookChannelAdapter(Channel.CHAT, WEBHOOK_URL, client)


class TestWebhookChannelAdapter:
    @pytest.mark.asyncio
    async def test_posts_record_payload(self) -> None:
        received: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(202)

        record = _record()
        result = await _webhook(handler).send(record)

        assert result.ok is True
        assert received[0]["record_id"] == str(record.id)
        assert received[0]["address"] == "chat-1"
        assert received[0]["category"] == "invoice.sent"

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self) -> None:
        result = await _webhook(lambda request: httpx.Response(503, text="busy")).send(_record())

        assert result.ok is False
        assert result.retryable is True
        assert result.message == "Webhook responded with 503: busy"

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self) -> None:
        result = await _webhook(lambda request: httpx.Response(404)).send(_record())

        assert result.ok is False
        assert result.retryable is False

    @pytest.mark.asyncio
    async def test_rate_limited_is_retryable(self) -> None:
        result = await _webhook(lambda request: httpx.Response(429)).send(_record())

        assert result.retryable is True

    @pytest.mark.asyncio
    async def test_network_error_is_retryable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await _webhook(handler).send(_record())

        assert result.ok is False
        assert result.retryable is True
        assert result.message.startswith("Webhook unreachable")

    @pytest.mark.asyncio
    async def test_missing_url_fails_permanently(self) -> None:
        adapter = WebhookChannelAdapter(Channel.SMS, "", httpx.AsyncClient())

        result = await adapter.send(_record(Channel.SMS, "+4915100000001"))

        assert result.ok is False
        assert result.retryable is False


class _SendGridHTTPError(Exception):
    def __init__(self, status_code: int, body: bytes) -> None:
        super().__init__(f"HTTP Error {status_code}")
        self.status_code = status_code
        self.body = body


class TestSendGridEmailAdapter:
    @pytest.fixture
    def sendgrid_client(self) -> MagicMock:
        client = MagicMock()
        client.send.return_value = MagicMock(status_code=202, body=b"")
        return client

    @pytest.fixture
    def adapter(self, sendgrid_client: MagicMock) -> SendGridEmailAdapter:
        return SendGridEmailAdapter(
            api_key="",
            sender_address="kanzlei@example.com",
            sender_name="Kanzlei Weber",
            subject_prefix="[Kanzlei]",
            client=sendgrid_client,
        )

    @pytest.mark.asyncio
    async def test_accepted_message(self, adapter, sendgrid_client) -> None:
        result = await adapter.send(_record(Channel.EMAIL, "jana@example.com"))

        assert result.ok is True
        sendgrid_client.send.assert_called_once()

    def test_builds_subject_and_escaped_html(self, adapter) -> None:
        record = _record(Channel.EMAIL, "jana@example.com")
        record.body = "Amount <due>\nsecond line"

        message = adapter.build_message(record).get()

        assert message["subject"] == "[Kanzlei] Invoice 42 sent"
        html_part = next(c for c in message["content"] if c["type"] == "text/html")
        assert html_part["value"] == "<p>Amount &lt;due&gt;<br>second line</p>"

    @pytest.mark.asyncio
    async def test_missing_address_is_permanent(self, adapter) -> None:
        with pytest.raises(PermanentDeliveryError):
            await adapter.send(_record(Channel.EMAIL, None))

    @pytest.mark.asyncio
    async def test_unconfigured_client_fails_permanently(self) -> None:
        adapter = SendGridEmailAdapter(api_key="", sender_address="kanzlei@example.com")

        result = await adapter.send(_record(Channel.EMAIL, "jana@example.com"))

        assert result.ok is False
        assert result.retryable is False

    @pytest.mark.asyncio
    async def test_bad_request_is_permanent(self, adapter, sendgrid_client) -> None:
        sendgrid_client.send.side_effect = _SendGridHTTPError(
            400, b'{"errors": [{"message": "Invalid to address"}]}'
        )

        result = await adapter.send(_record(Channel.EMAIL, "not-an-address"))

        assert result.ok is False
        assert result.retryable is False
        assert result.message == "SendGrid error 400: Invalid to address"

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self, adapter, sendgrid_client) -> None:
        sendgrid_client.send.side_effect = _SendGridHTTPError(502, b"Bad gateway")

        result = await adapter.send(_record(Channel.EMAIL, "jana@example.com"))

        assert result.retryable is True


class TestExtractSendGridError:
    def test_joins_error_messages(self) -> None:
        body = {"errors": [{"message": "one"}, {"message": "two"}]}

        assert extract_sendgrid_error(body) == "one; two"

    def test_plain_text_body(self) -> None:
        assert extract_sendgrid_error(b"Unauthorized") == "Unauthorized"

    def test_empty_body(self) -> None:
        assert extract_sendgrid_error(b"") is None


class TestInboxChannelAdapter:
    @pytest.mark.asyncio
    async def test_stores_message_as_delivered(self) -> None:
        adapter = InboxChannelAdapter(Channel.PORTAL)
        record = _record(Channel.PORTAL, "client-1")

        result = await adapter.send(record)

        assert result.delivered is True
        assert [m.record_id for m in adapter.messages_for("client-1")] == [record.id]

    @pytest.mark.asyncio
    async def test_inbox_is_bounded(self) -> None:
        adapter = InboxChannelAdapter(Channel.IN_APP, max_messages=2)
        for _ in range(3):
            await adapter.send(_record(Channel.IN_APP, "client-1"))

        assert len(adapter.messages_for("client-1")) == 2


class TestRegistry:
    def test_every_channel_has_an_adapter(self) -> None:
        adapters = build_channel_adapters(Settings(), httpx.AsyncClient())

        assert set(adapters) == set(Channel)
        assert isinstance(adapters[Channel.PORTAL], InboxChannelAdapter)
