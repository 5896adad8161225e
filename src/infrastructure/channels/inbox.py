"""In-app and portal channel: messages land in a per-recipient inbox."""

from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from domain.entities.notification import Channel, NotificationRecord, SendResult


@dataclass(frozen=True, slots=True)
class InboxMessage:
    record_id: UUID
    title: str
    body: str
    received_at: datetime


class InboxChannelAdapter:
    """Stores messages for the UI to pick up; delivery is immediate."""

    def __init__(self, channel: Channel, max_messages: int = 200) -> None:
        self.channel = channel
        self._max_messages = max_messages
        self._inboxes: dict[str, deque[InboxMessage]] = defaultdict(
            lambda: deque(maxlen=self._max_messages)
        )

    async def send(self, record: NotificationRecord) -> SendResult:
        self._inboxes[record.recipient_id].append(
            InboxMessage(
                record_id=record.id,
                title=record.title,
                body=record.body,
                received_at=datetime.now(),
            )
        )
        return SendResult(ok=True, message="Stored in inbox", delivered=True)

    def messages_for(self, recipient_id: str) -> list[InboxMessage]:
        return list(self._inboxes.get(recipient_id, ()))
