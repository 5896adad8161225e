"""Engine-facing state store and audit sink backed by the unit of work."""

from collections.abc import Callable
from typing import Any

import structlog

from domain.entities.audit import AuditEntry, AuditSeverity
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()


class SQLAlchemyStateStore:
    """IStateStore that opens one transaction per call."""

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self._uow_factory() as uow:
            return await uow.state.get(key)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        async with self._uow_factory() as uow:
            await uow.state.set(key, value)
            await uow.commit()
        logger.debug("state_entry_written", key=key)


class SQLAlchemyAuditSink:
    """IAuditSink persisting entries to the audit_entries table."""

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def append(self, entry: AuditEntry) -> None:
        async with self._uow_factory() as uow:
            await uow.audit.create(entry)
            await uow.commit()

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        severity: AuditSeverity | None = None,
        category: str | None = None,
    ) -> list[AuditEntry]:
        async with self._uow_factory() as uow:
            return await uow.audit.list_recent(
                limit=limit, offset=offset, severity=severity, category=category
            )
