"""Channel capability protocol."""

from typing import Protocol

from domain.entities.notification import Channel, NotificationRecord, SendResult


class IChannelAdapter(Protocol):
    """Sends one record over one channel.

    Adapters return ``SendResult(ok=False)`` or raise for transient
    failures, and return ``retryable=False`` or raise
    ``PermanentDeliveryError`` for failures that retrying cannot fix.
    """

    channel: Channel

    async def send(self, record: NotificationRecord) -> SendResult:
        ...
