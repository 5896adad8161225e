"""Key-value state store protocols."""

from typing import Any, Protocol


class IStateRepository(Protocol):
    """Repository interface for JSON blobs stored under a string key."""

    async def get(self, key: str) -> dict[str, Any] | None:
        """Get the blob stored under ``key``."""
        ...

    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the blob stored under ``key``."""
        ...


class IStateStore(Protocol):
    """Transaction-owning store the engine persists its snapshots through."""

    async def get(self, key: str) -> dict[str, Any] | None:
        ...

    async def set(self, key: str, value: dict[str, Any]) -> None:
        ...
