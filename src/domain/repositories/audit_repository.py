"""Audit trail protocols."""

from typing import Protocol

from domain.entities.audit import AuditEntry, AuditSeverity


class IAuditRepository(Protocol):
    """Repository interface for AuditEntry entities."""

    async def create(self, entry: AuditEntry) -> AuditEntry:
        """Create a new audit entry."""
        ...

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        severity: AuditSeverity | None = None,
        category: str | None = None,
    ) -> list[AuditEntry]:
        """Get audit entries ordered by newest first."""
        ...


class IAuditSink(Protocol):
    """Write side used by the engine for every fan-out, deferral and failure."""

    async def append(self, entry: AuditEntry) -> None:
        ...

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        severity: AuditSeverity | None = None,
        category: str | None = None,
    ) -> list[AuditEntry]:
        ...
