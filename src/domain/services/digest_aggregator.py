"""Batching of non-urgent notifications into per-recipient digests."""

from datetime import datetime, timedelta
from uuid import UUID

import structlog

from domain.entities.digest import Digest, DigestStatus
from domain.entities.notification import NotificationRecord, NotificationStatus
from domain.entities.preference import DigestFrequency

logger = structlog.get_logger()

DIGEST_DELAYS: dict[DigestFrequency, timedelta] = {
    DigestFrequency.DAILY: timedelta(hours=24),
    DigestFrequency.WEEKLY: timedelta(days=7),
}


class DigestAggregator:
    """Holds at most one pending digest per (recipient, frequency)."""

    def __init__(self) -> None:
        self._digests: dict[UUID, Digest] = {}

    def all(self) -> list[Digest]:
        return sorted(self._digests.values(), key=lambda d: d.created_at, reverse=True)

    def get(self, digest_id: UUID) -> Digest | None:
        return self._digests.get(digest_id)

    def pending(self) -> list[Digest]:
        return [d for d in self._digests.values() if d.status == DigestStatus.PENDING]

    def pending_for(self, recipient_id: str, frequency: DigestFrequency) -> Digest | None:
        return next(
            (
                d
                for d in self.pending()
                if d.recipient_id == recipient_id
                and d.frequency == frequency
                and d.composite_id is None
            ),
            None,
        )

    def append(
        self,
        record: NotificationRecord,
        frequency: DigestFrequency,
        now: datetime,
    ) -> Digest:
        """Hold ``record`` in the recipient's pending digest, creating it lazily."""
        digest = self.pending_for(record.recipient_id, frequency)
        if digest is None:
            digest = Digest(
                recipient_id=record.recipient_id,
                frequency=frequency,
                scheduled_at=now + DIGEST_DELAYS[frequency],
                created_at=now,
            )
            self._digests[digest.id] = digest
            logger.info(
                "digest_created",
                digest_id=str(digest.id),
                recipient_id=digest.recipient_id,
                frequency=frequency.value,
            )

        digest.notification_ids.append(record.id)
        record.status = NotificationStatus.SCHEDULED
        record.digest_id = digest.id
        record.scheduled_at = digest.scheduled_at
        record.updated_at = now
        return digest

    def due(self, now: datetime) -> list[Digest]:
        """Pending digests whose flush time elapsed and that are not already in flight."""
        return [
            d
            for d in self.pending()
            if d.composite_id is None and d.scheduled_at <= now
        ]

    @staticmethod
    def compose(digest: Digest, records: list[NotificationRecord]) -> tuple[str, str]:
        """Concatenate constituent titles and first body lines into one message."""
        label = "Daily" if digest.frequency == DigestFrequency.DAILY else "Weekly"
        count = len(records)
        title = f"{label} digest: {count} update{'s' if count != 1 else ''}"

        lines = []
        for record in records:
            lines.append(f"• {record.title}")
            first_line = next(
                (line.strip() for line in record.body.splitlines() if line.strip()),
                "",
            )
            if first_line and first_line != record.title:
                lines.append(f"  {first_line}")
        return title, "\n".join(lines)

    def reopen(self, digest: Digest) -> None:
        """Return a failed digest to ``pending`` while its composite is retried."""
        digest.status = DigestStatus.PENDING
        logger.info("digest_reopened", digest_id=str(digest.id))

    def settle(self, digest: Digest, delivered: bool, now: datetime) -> None:
        digest.status = DigestStatus.SENT if delivered else DigestStatus.FAILED
        if delivered:
            digest.sent_at = now
        logger.info(
            "digest_settled",
            digest_id=str(digest.id),
            status=digest.status.value,
            notifications=len(digest.notification_ids),
        )

    def hydrate(self, digests: list[Digest]) -> None:
        for digest in digests:
            self._digests[digest.id] = digest
