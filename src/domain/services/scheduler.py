"""Polling loop and anchored daily/weekly timers."""

import asyncio
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

import structlog

from domain.entities.preference import ReminderSettings
from domain.services.time_window import Clock, next_daily_occurrence, next_weekly_occurrence

logger = structlog.get_logger()


class SchedulerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class SchedulerTarget(Protocol):
    async def tick(self) -> Any:
        ...

    async def generate_daily_briefing(self) -> Any:
        ...

    async def generate_weekly_summary(self) -> Any:
        ...


class CancellationToken:
    """Shared stop signal checked by the loop and both timers."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Wait ``seconds`` or until cancelled. Returns True when cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return self.cancelled
        return True


class Scheduler:
    """Explicit ``idle -> running -> stopped`` state machine.

    One task polls ``target.tick()`` every ``tick_interval`` seconds; two
    more sleep until the next daily briefing and weekly summary instants,
    fire, and reschedule themselves. Timer anchors are recomputed from the
    current reminder settings each cycle, so setting changes apply on the
    next firing.
    """

    def __init__(
        self,
        target: SchedulerTarget,
        clock: Clock,
        tick_interval: float,
        settings_provider: Callable[[], ReminderSettings],
    ) -> None:
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        self._target = target
        self._clock = clock
        self._tick_interval = tick_interval
        self._settings = settings_provider
        self._state = SchedulerState.IDLE
        self._token: CancellationToken | None = None
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def start(self) -> None:
        if self._state == SchedulerState.RUNNING:
            return
        token = CancellationToken()
        self._token = token
        self._tasks = [
            asyncio.create_task(self._poll(token), name="notify-poll"),
            asyncio.create_task(self._daily_briefing(token), name="notify-daily-briefing"),
            asyncio.create_task(self._weekly_summary(token), name="notify-weekly-summary"),
        ]
        self._state = SchedulerState.RUNNING
        logger.info("scheduler_started", tick_interval=self._tick_interval)

    async def stop(self) -> None:
        if self._state != SchedulerState.RUNNING:
            self._state = SchedulerState.STOPPED
            return
        if self._token is not None:
            self._token.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._state = SchedulerState.STOPPED
        logger.info("scheduler_stopped")

    def seconds_until_daily_briefing(self) -> float:
        now = self._clock()
        fire_at = next_daily_occurrence(now, self._settings().daily_briefing_time)
        return (fire_at - now).total_seconds()

    def seconds_until_weekly_summary(self) -> float:
        now = self._clock()
        settings = self._settings()
        fire_at = next_weekly_occurrence(
            now, settings.weekly_summary_day, settings.weekly_summary_hour
        )
        return (fire_at - now).total_seconds()

    async def _poll(self, token: CancellationToken) -> None:
        while not token.cancelled:
            try:
                await self._target.tick()
            except Exception:
                logger.exception("scheduler_tick_failed")
            if await token.sleep(self._tick_interval):
                break

    async def _daily_briefing(self, token: CancellationToken) -> None:
        while not token.cancelled:
            if await token.sleep(self.seconds_until_daily_briefing()):
                break
            try:
                await self._target.generate_daily_briefing()
            except Exception:
                logger.exception("daily_briefing_failed")

    async def _weekly_summary(self, token: CancellationToken) -> None:
        while not token.cancelled:
            if await token.sleep(self.seconds_until_weekly_summary()):
                break
            try:
                await self._target.generate_weekly_summary()
            except Exception:
                logger.exception("weekly_summary_failed")
