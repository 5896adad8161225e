"""Integration tests for the application lifespan."""

import pytest

import api.v1.dependencies as dependencies
from api.v1.dependencies import get_http_client, get_notification_engine


@pytest.fixture
def fresh_dependencies(monkeypatch, state_store):
    monkeypatch.setattr(dependencies, "SQLAlchemyStateStore", lambda uow_factory: state_store)
    get_notification_engine.cache_clear()
    get_http_client.cache_clear()
    yield
    get_notification_engine.cache_clear()
    get_http_client.cache_clear()


class TestLifespan:
    @pytest.mark.asyncio
    async def test_restart_builds_new_engine_on_open_client(self, fresh_dependencies) -> None:
        from main import app, lifespan

        async with lifespan(app):
            first_engine = get_notification_engine()
            first_client = get_http_client()

        async with lifespan(app):
            second_engine = get_notification_engine()
            second_client = get_http_client()

            assert second_engine is not first_engine
            assert second_engine.is_active() is True
            assert second_client is not first_client
            assert second_client.is_closed is False

        assert first_engine.is_active() is False
        assert first_client.is_closed is True
