"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta
from typing import Any

# Disable rate limiting and the background scheduler in tests
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from domain.entities.audit import AuditEntry, AuditSeverity
from domain.entities.case import CaseSnapshot
from domain.entities.notification import Channel, NotificationRecord, SendResult
from domain.services.notification_engine import NotificationEngine
from infrastructure.database.models import Base
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork

# Test database URL (SQLite in memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Monday 2026-03-02, 09:00 local time
START = datetime(2026, 3, 2, 9, 0)


# --- Fakes ---


class FakeClock:
    """Settable wall clock; call it like ``datetime.now``."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


class FakeChannelAdapter:
    """Records every send; replies with the queued results, then ``ok``."""

    def __init__(self, channel: Channel) -> None:
        self.channel = channel
        self.sent: list[NotificationRecord] = []
        self.results: list[SendResult | Exception] = []

    async def send(self, record: NotificationRecord) -> SendResult:
        self.sent.append(record)
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return SendResult(ok=True)


class InMemoryStateStore:
    def __init__(self) -> None:
        self.data: dict[str, dict[str, Any]] = {}
        self.writes = 0

    async def get(self, key: str) -> dict[str, Any] | None:
        return self.data.get(key)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        self.writes += 1
        self.data[key] = value


class InMemoryAuditSink:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        severity: AuditSeverity | None = None,
        category: str | None = None,
    ) -> list[AuditEntry]:
        matching = [
            e
            for e in reversed(self.entries)
            if (severity is None or e.severity == severity)
            and (category is None or e.category == category)
        ]
        return matching[offset : offset + limit]

    def categories(self) -> list[str]:
        return [e.category for e in self.entries]


class FakeCaseSource:
    def __init__(self, snapshot: CaseSnapshot | None = None) -> None:
        self.snapshot = snapshot or CaseSnapshot()
        self.error: Exception | None = None
        self.calls = 0

    async def fetch_snapshot(self) -> CaseSnapshot:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


# --- Engine fixtures ---


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def adapters() -> dict[Channel, FakeChannelAdapter]:
    return {channel: FakeChannelAdapter(channel) for channel in Channel}


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def case_source() -> FakeCaseSource:
    return FakeCaseSource()


@pytest.fixture
def make_engine(
    clock: FakeClock,
    adapters: dict[Channel, FakeChannelAdapter],
    state_store: InMemoryStateStore,
    audit_sink: InMemoryAuditSink,
    case_source: FakeCaseSource,
) -> Callable[..., NotificationEngine]:
    """Build an engine over the shared fakes; keyword arguments pass through."""

    def factory(**kwargs: Any) -> NotificationEngine:
        return NotificationEngine(
            case_source=case_source,
            channels=adapters,
            audit_sink=audit_sink,
            state_store=state_store,
            clock=clock,
            **kwargs,
        )

    return factory


@pytest.fixture
async def notification_engine(
    make_engine: Callable[..., NotificationEngine],
) -> AsyncGenerator[NotificationEngine, None]:
    engine = make_engine()
    yield engine
    await engine.drain()


# --- Database fixtures ---


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def uow_factory(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[], SQLAlchemyUnitOfWork]:
    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory)

    return factory


# --- API clients ---


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client against the default app."""
    from main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def api_client(
    notification_engine: NotificationEngine,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client whose routes talk to the in-memory engine.

    The engine dependency is overridden; nothing touches the database or
    the network.
    """
    from api.v1.dependencies import get_notification_engine
    from main import create_app

    app = create_app()
    app.dependency_overrides[get_notification_engine] = lambda: notification_engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
