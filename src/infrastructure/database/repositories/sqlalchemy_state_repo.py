"""SQLAlchemy implementation of the key-value state repository."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import StateEntryModel


class SQLAlchemyStateRepository:
    """SQLAlchemy implementation of IStateRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, key: str) -> dict[str, Any] | None:
        """Get the blob stored under ``key``."""
        stmt = select(StateEntryModel).where(StateEntryModel.key == key)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return model.value if model else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the blob stored under ``key``."""
        model = await self._session.get(StateEntryModel, key)
        if model is None:
            self._session.add(StateEntryModel(key=key, value=value))
        else:
            model.value = value
            model.updated_at = datetime.utcnow()
        await self._session.flush()
