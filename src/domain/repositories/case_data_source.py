"""Inbound case data protocol."""

from typing import Protocol

from domain.entities.case import CaseSnapshot


class ICaseDataSource(Protocol):
    """Read-only source of deadlines, court dates, follow-ups and recipients."""

    async def fetch_snapshot(self) -> CaseSnapshot:
        """Fetch the snapshot the current tick evaluates."""
        ...
