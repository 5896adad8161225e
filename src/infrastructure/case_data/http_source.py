"""Case data sources."""

from dataclasses import replace
from datetime import tzinfo

import httpx
import structlog
from pydantic import TypeAdapter

from domain.entities.case import CaseSnapshot
from domain.services.time_window import to_local_naive

logger = structlog.get_logger()

_snapshot_adapter = TypeAdapter(CaseSnapshot)


def localize_snapshot(snapshot: CaseSnapshot, tz: tzinfo | None) -> CaseSnapshot:
    """Convert aware datetimes to naive local wall-clock time."""
    return replace(
        snapshot,
        deadlines=[replace(d, due_at=to_local_naive(d.due_at, tz)) for d in snapshot.deadlines],
        court_dates=[
            replace(c, starts_at=to_local_naive(c.starts_at, tz)) for c in snapshot.court_dates
        ],
        follow_ups=[replace(f, due_at=to_local_naive(f.due_at, tz)) for f in snapshot.follow_ups],
        calendar_events=[
            replace(
                e,
                start_at=to_local_naive(e.start_at, tz),
                end_at=to_local_naive(e.end_at, tz),
            )
            for e in snapshot.calendar_events
        ],
    )


class HttpCaseDataSource:
    """Fetches ``GET {base_url}/snapshot`` from the case service."""

    def __init__(self, base_url: str, client: httpx.AsyncClient, tz: tzinfo | None = None) -> None:
        self._url = f"{base_url.rstrip('/')}/snapshot"
        self._client = client
        self._tz = tz

    async def fetch_snapshot(self) -> CaseSnapshot:
        response = await self._client.get(self._url)
        response.raise_for_status()
        snapshot = _snapshot_adapter.validate_python(response.json())
        logger.debug(
            "case_snapshot_fetched",
            deadlines=len(snapshot.deadlines),
            court_dates=len(snapshot.court_dates),
            recipients=len(snapshot.recipients),
        )
        return localize_snapshot(snapshot, self._tz)


class StaticCaseDataSource:
    """Serves a fixed snapshot; used when no case service is configured."""

    def __init__(self, snapshot: CaseSnapshot | None = None) -> None:
        self.snapshot = snapshot or CaseSnapshot()

    async def fetch_snapshot(self) -> CaseSnapshot:
        return self.snapshot
