"""Deduplication guard with a sliding validity window."""

from datetime import datetime, timedelta

import structlog

logger = structlog.get_logger()

DEFAULT_DEDUP_WINDOW = timedelta(hours=24)

DedupPairs = list[tuple[str, datetime]]


class DedupGuard:
    """Tracks dedup keys that already fired or were deferred.

    A key in either map younger than the window blocks re-creation of the
    same logical notification. Every method is synchronous so a
    ``should_fire`` check and the matching ``mark_*`` call can never be
    separated by an ``await``.
    """

    def __init__(self, window: timedelta = DEFAULT_DEDUP_WINDOW) -> None:
        self._window = window
        self._sent: dict[str, datetime] = {}
        self._deferred: dict[str, datetime] = {}

    @property
    def sent_count(self) -> int:
        return len(self._sent)

    @property
    def deferred_count(self) -> int:
        return len(self._deferred)

    def should_fire(self, key: str, now: datetime) -> bool:
        """Purge stale entries, then report whether ``key`` may fire."""
        self.cleanup(now)
        return key not in self._sent and key not in self._deferred

    def is_deferred(self, key: str) -> bool:
        return key in self._deferred

    def mark_sent(self, key: str, now: datetime) -> None:
        self._deferred.pop(key, None)
        self._sent[key] = now

    def mark_deferred(self, key: str, now: datetime) -> None:
        self._deferred[key] = now

    def release(self, key: str, now: datetime) -> bool:
        """Move ``key`` to *sent*, even when its deferral was already pruned.

        Returns whether the key was still deferred.
        """
        was_deferred = self._deferred.pop(key, None) is not None
        self._sent[key] = now
        return was_deferred

    def cleanup(self, now: datetime) -> int:
        """Drop entries older than the window. Returns how many were removed."""
        cutoff = now - self._window
        removed = 0
        for entries in (self._sent, self._deferred):
            stale = [key for key, stamp in entries.items() if stamp <= cutoff]
            for key in stale:
                del entries[key]
            removed += len(stale)
        if removed:
            logger.debug("dedup_keys_pruned", removed=removed)
        return removed

    def hydrate(self, sent: DedupPairs, deferred: DedupPairs, now: datetime) -> None:
        """Restore both maps from a persisted snapshot and prune them."""
        self._sent = dict(sent)
        self._deferred = dict(deferred)
        self.cleanup(now)

    def export(self, limit: int) -> tuple[DedupPairs, DedupPairs]:
        """Return the most recent ``limit`` entries of each map, oldest first."""

        def newest(entries: dict[str, datetime]) -> DedupPairs:
            ordered = sorted(entries.items(), key=lambda item: item[1])
            return ordered[-limit:] if limit > 0 else []

        return newest(self._sent), newest(self._deferred)
