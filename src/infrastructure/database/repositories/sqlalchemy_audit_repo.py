"""SQLAlchemy implementation of the audit repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.audit import AuditEntry, AuditSeverity
from infrastructure.database.models import AuditEntryModel


class SQLAlchemyAuditRepository:
    """SQLAlchemy implementation of IAuditRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, entry: AuditEntry) -> AuditEntry:
        """Create a new audit entry."""
        model = self._to_model(entry)
        self._session.add(model)
        await self._session.flush()
        await self._session.refresh(model)
        return self._to_entity(model)

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        severity: AuditSeverity | None = None,
        category: str | None = None,
    ) -> list[AuditEntry]:
        """Get audit entries ordered by newest first."""
        stmt = select(AuditEntryModel)
        if severity is not None:
            stmt = stmt.where(AuditEntryModel.severity == severity.value)
        if category is not None:
            stmt = stmt.where(AuditEntryModel.category == category)
        stmt = stmt.order_by(AuditEntryModel.created_at.desc()).offset(offset).limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    def _to_entity(self, model: AuditEntryModel) -> AuditEntry:
        """Convert ORM model to domain entity."""
        return AuditEntry(
            id=model.id,
            category=model.category,
            severity=AuditSeverity(model.severity),
            details=model.details,
            metadata=model.metadata_ or {},
            created_at=model.created_at,
        )

    def _to_model(self, entity: AuditEntry) -> AuditEntryModel:
        """Convert domain entity to ORM model."""
        return AuditEntryModel(
            id=entity.id,
            category=entity.category,
            severity=entity.severity.value,
            details=entity.details,
            metadata_=entity.metadata,
            created_at=entity.created_at,
        )
