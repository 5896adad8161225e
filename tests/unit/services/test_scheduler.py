"""Unit tests for the scheduler state machine and timers."""

import asyncio
from datetime import datetime

import pytest

from domain.entities.preference import ReminderSettings
from domain.services.scheduler import CancellationToken, Scheduler, SchedulerState


class FakeTarget:
    def __init__(self, fail_ticks: bool = False) -> None:
        self.ticks = 0
        self.briefings = 0
        self.summaries = 0
        self.fail_ticks = fail_ticks

    async def tick(self) -> None:
        self.ticks += 1
        if self.fail_ticks:
            raise RuntimeError("case service down")

    async def generate_daily_briefing(self) -> None:
        self.briefings += 1

    async def generate_weekly_summary(self) -> None:
        self.summaries += 1


def _scheduler(target: FakeTarget, clock, settings: ReminderSettings | None = None) -> Scheduler:
    current = settings or ReminderSettings()
    return Scheduler(target, clock, 0.01, lambda: current)


class TestLifecycle:
    def test_rejects_non_positive_interval(self, clock) -> None:
        with pytest.raises(ValueError):
            Scheduler(FakeTarget(), clock, 0, ReminderSettings)

    @pytest.mark.asyncio
    async def test_idle_running_stopped(self, clock) -> None:
        target = FakeTarget()
        scheduler = _scheduler(target, clock)
        assert scheduler.state == SchedulerState.IDLE

        scheduler.start()
        assert scheduler.state == SchedulerState.RUNNING
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert scheduler.state == SchedulerState.STOPPED
        assert target.ticks >= 1

    @pytest.mark.asyncio
    async def test_no_ticks_after_stop(self, clock) -> None:
        target = FakeTarget()
        scheduler = _scheduler(target, clock)
        scheduler.start()
        await asyncio.sleep(0.03)
        await scheduler.stop()
        ticks = target.ticks

        await asyncio.sleep(0.03)

        assert target.ticks == ticks

    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_the_loop(self, clock) -> None:
        target = FakeTarget(fail_ticks=True)
        scheduler = _scheduler(target, clock)
        scheduler.start()
        await asyncio.sleep(0.06)
        await scheduler.stop()

        assert target.ticks >= 2

    @pytest.mark.asyncio
    async def test_start_twice_is_a_no_op(self, clock) -> None:
        scheduler = _scheduler(FakeTarget(), clock)
        scheduler.start()
        scheduler.start()
        await scheduler.stop()

        assert scheduler.state == SchedulerState.STOPPED


class TestTimers:
    def test_seconds_until_daily_briefing(self, clock) -> None:
        clock.set(datetime(2026, 3, 2, 7, 0))
        scheduler = _scheduler(FakeTarget(), clock, ReminderSettings(daily_briefing_time="07:30"))

        assert scheduler.seconds_until_daily_briefing() == 1800

    def test_seconds_until_weekly_summary(self, clock) -> None:
        # Monday 09:00; Monday 08:00 already passed
        clock.set(datetime(2026, 3, 2, 9, 0))
        scheduler = _scheduler(FakeTarget(), clock)

        assert scheduler.seconds_until_weekly_summary() == 7 * 24 * 3600 - 3600

    def test_settings_changes_apply_on_next_computation(self, clock) -> None:
        clock.set(datetime(2026, 3, 2, 7, 0))
        settings = ReminderSettings(daily_briefing_time="07:30")
        scheduler = Scheduler(FakeTarget(), clock, 60, lambda: settings)

        settings.daily_briefing_time = "08:00"

        assert scheduler.seconds_until_daily_briefing() == 3600

    @pytest.mark.asyncio
    async def test_daily_briefing_fires_at_anchor(self, clock) -> None:
        clock.set(datetime(2026, 3, 2, 7, 29, 59, 980000))
        target = FakeTarget()
        scheduler = _scheduler(target, clock, ReminderSettings(daily_briefing_time="07:30"))

        scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert target.briefings >= 1
        assert target.summaries == 0


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_sleep_returns_early_when_cancelled(self) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        assert await token.sleep(5) is True

    @pytest.mark.asyncio
    async def test_sleep_times_out_without_cancel(self) -> None:
        assert await CancellationToken().sleep(0.01) is False
