"""Dependency injection factories for API v1."""

from datetime import timedelta
from functools import lru_cache
from typing import Callable
from zoneinfo import ZoneInfo

import httpx

from core.config import settings
from domain.repositories.case_data_source import ICaseDataSource
from domain.services.notification_engine import NotificationEngine
from domain.services.time_window import local_clock
from infrastructure.case_data.http_source import HttpCaseDataSource, StaticCaseDataSource
from infrastructure.channels import build_channel_adapters
from infrastructure.database.session import async_session_factory
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
from infrastructure.database.stores import SQLAlchemyAuditSink, SQLAlchemyStateStore


def get_uow_factory() -> Callable[[], SQLAlchemyUnitOfWork]:
    """Factory for creating Unit of Work instances."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(async_session_factory)

    return factory


@lru_cache
def get_http_client() -> httpx.AsyncClient:
    """Shared outbound HTTP client for webhooks and the case service."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            settings.webhook_timeout_seconds,
            connect=settings.case_service_timeout_seconds,
        )
    )


def get_case_data_source() -> ICaseDataSource:
    tz = ZoneInfo(settings.timezone)
    if settings.case_service_url:
        return HttpCaseDataSource(settings.case_service_url, get_http_client(), tz)
    return StaticCaseDataSource()


@lru_cache
def get_notification_engine() -> NotificationEngine:
    """The process-wide engine instance wired from settings."""
    uow_factory = get_uow_factory()
    return NotificationEngine(
        case_source=get_case_data_source(),
        channels=build_channel_adapters(settings, get_http_client()),
        audit_sink=SQLAlchemyAuditSink(uow_factory),
        state_store=SQLAlchemyStateStore(uow_factory),
        clock=local_clock(settings.timezone),
        tz=ZoneInfo(settings.timezone),
        dedup_window=timedelta(hours=settings.dedup_window_hours),
        base_backoff=timedelta(seconds=settings.retry_base_backoff_seconds),
        max_retries=settings.max_retries,
        snapshot_max_entries=settings.snapshot_max_entries,
    )
