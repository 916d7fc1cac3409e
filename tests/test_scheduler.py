"""Tests for the job scheduler."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from config import Config
from models.preferences import CategoryToggles, UserPreferences
from observability.logging import clear_context, job_var, run_id_var, set_run_context
from scheduler import (
    CACHE_CLEANUP_JOB,
    Scheduler,
    install_default_schedules,
    next_daily_run,
    next_weekly_run,
)
from store import Section

# 2024-05-01 is a Wednesday
WEDNESDAY = datetime(2024, 5, 1)
SUNDAY = datetime(2024, 5, 5)


class TestNextDailyRun:
    def test_after_target_rolls_to_tomorrow(self):
        now = WEDNESDAY.replace(hour=9)
        assert next_daily_run(now, 8, 0) == datetime(2024, 5, 2, 8, 0)

    def test_before_target_is_today(self):
        now = WEDNESDAY.replace(hour=7)
        assert next_daily_run(now, 8, 0) == datetime(2024, 5, 1, 8, 0)

    def test_exactly_at_target_rolls_to_tomorrow(self):
        now = WEDNESDAY.replace(hour=8)
        assert next_daily_run(now, 8, 0) == datetime(2024, 5, 2, 8, 0)

    def test_invalid_time_rejected(self):
        with pytest.raises(ValueError):
            next_daily_run(WEDNESDAY, 24, 0)
        with pytest.raises(ValueError):
            next_daily_run(WEDNESDAY, 8, 60)


class TestNextWeeklyRun:
    def test_next_sunday_from_wednesday(self):
        assert next_weekly_run(WEDNESDAY.replace(hour=12), 0, 8, 0) == datetime(2024, 5, 5, 8, 0)

    def test_same_day_before_target(self):
        assert next_weekly_run(SUNDAY.replace(hour=7), 0, 8, 0) == datetime(2024, 5, 5, 8, 0)

    def test_same_day_after_target_rolls_a_week(self):
        assert next_weekly_run(SUNDAY.replace(hour=9), 0, 8, 0) == datetime(2024, 5, 12, 8, 0)

    def test_saturday_is_six(self):
        assert next_weekly_run(WEDNESDAY, 6, 8, 0) == datetime(2024, 5, 4, 8, 0)

    def test_invalid_weekday_rejected(self):
        with pytest.raises(ValueError):
            next_weekly_run(WEDNESDAY, 7, 8, 0)


@pytest_asyncio.fixture
async def scheduler():
    sched = Scheduler()
    yield sched
    sched.clear_all()
    await asyncio.sleep(0)


class TestRecurringJobs:
    @pytest.mark.asyncio
    async def test_fires_repeatedly(self, scheduler):
        callback = AsyncMock()
        scheduler.schedule_recurring("tick", callback, 0.02)
        await asyncio.sleep(0.11)
        assert callback.await_count >= 3
        assert scheduler.status()["tick"]["runs"] == callback.await_count

    @pytest.mark.asyncio
    async def test_failures_do_not_cancel_job(self, scheduler, caplog):
        callback = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler.schedule_recurring("flaky", callback, 0.02)
        await asyncio.sleep(0.09)

        status = scheduler.status()["flaky"]
        assert status["runs"] >= 2
        assert status["failures"] == status["runs"]
        assert status["scheduled"] is True
        assert "Job failed" in caplog.text

    @pytest.mark.asyncio
    async def test_same_name_replaces_job(self, scheduler):
        first, second = AsyncMock(), AsyncMock()
        scheduler.schedule_recurring("job", first, 0.02)
        scheduler.schedule_recurring("job", second, 0.02)
        await asyncio.sleep(0.07)

        assert scheduler.job_names() == ["job"]
        first.assert_not_awaited()
        assert second.await_count >= 1

    @pytest.mark.asyncio
    async def test_non_positive_interval_rejected(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.schedule_recurring("bad", AsyncMock(), 0)


class TestAlignedJobs:
    @pytest.mark.asyncio
    async def test_daily_job_fires_at_next_occurrence(self):
        scheduler = Scheduler(clock=lambda: datetime(2024, 5, 1, 7, 59, 59, 950000))
        callback = AsyncMock()
        scheduler.schedule_daily_at("daily", callback, hour=8, minute=0)
        await asyncio.sleep(0.2)

        callback.assert_awaited_once()
        scheduler.clear_all()

    @pytest.mark.asyncio
    async def test_weekly_job_waits(self):
        scheduler = Scheduler(clock=lambda: WEDNESDAY.replace(hour=12))
        callback = AsyncMock()
        scheduler.schedule_weekly_at("weekly", callback, weekday=0, hour=8)
        await asyncio.sleep(0.02)

        callback.assert_not_awaited()
        next_run = datetime.fromisoformat(scheduler.status()["weekly"]["next_run"])
        assert abs(next_run - datetime(2024, 5, 5, 8, 0)) < timedelta(seconds=1)
        scheduler.clear_all()


class TestManagement:
    @pytest.mark.asyncio
    async def test_trigger_runs_immediately(self, scheduler):
        callback = AsyncMock()
        scheduler.schedule_recurring("slow", callback, 3600)
        assert await scheduler.trigger("slow") is True
        callback.assert_awaited_once()
        assert scheduler.status()["slow"]["last_run"] is not None

    @pytest.mark.asyncio
    async def test_trigger_keeps_caller_context(self, scheduler):
        scheduler.schedule_recurring("slow", AsyncMock(), 3600)
        set_run_context("outer", job="manual")
        try:
            await scheduler.trigger("slow")
            assert (run_id_var.get(), job_var.get()) == ("outer", "manual")
        finally:
            clear_context()

    @pytest.mark.asyncio
    async def test_trigger_unknown_is_noop(self, scheduler, caplog):
        assert await scheduler.trigger("nope") is False
        assert "unknown job" in caplog.text

    @pytest.mark.asyncio
    async def test_trigger_isolates_failure(self, scheduler):
        scheduler.schedule_recurring("bad", AsyncMock(side_effect=ValueError("x")), 3600)
        assert await scheduler.trigger("bad") is True
        assert scheduler.status()["bad"]["failures"] == 1

    @pytest.mark.asyncio
    async def test_clear_stops_future_fires(self, scheduler):
        callback = AsyncMock()
        scheduler.schedule_recurring("job", callback, 0.02)
        scheduler.clear("job")
        scheduler.clear("job")
        await asyncio.sleep(0.06)

        callback.assert_not_awaited()
        assert scheduler.status() == {}

    @pytest.mark.asyncio
    async def test_clear_all_is_idempotent(self, scheduler):
        scheduler.schedule_recurring("a", AsyncMock(), 10)
        scheduler.schedule_recurring("b", AsyncMock(), 10)
        scheduler.clear_all()
        scheduler.clear_all()
        assert scheduler.job_names() == []

    @pytest.mark.asyncio
    async def test_in_flight_fire_completes_after_clear(self, scheduler):
        finished = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.05)
            finished.set()

        scheduler.schedule_recurring("slow", slow, 0.01)
        await asyncio.sleep(0.03)
        scheduler.clear_all()
        await scheduler.wait_idle()
        assert finished.is_set()


class TestDefaultSchedules:
    @staticmethod
    def fake_store():
        store = MagicMock()
        store.refresh_section = AsyncMock(return_value=True)
        store.cleanup_cache = AsyncMock(return_value=0)
        return store

    @pytest.mark.asyncio
    async def test_all_jobs_installed(self, scheduler):
        names = install_default_schedules(scheduler, self.fake_store(), UserPreferences(), Config())
        assert set(names) == {
            "ai-news",
            "startup-news",
            "crypto-news",
            "creative-content",
            "ai-tools",
            "crypto-data",
            CACHE_CLEANUP_JOB,
        }

    @pytest.mark.asyncio
    async def test_disabled_categories_skipped(self, scheduler):
        prefs = UserPreferences(categories=CategoryToggles(crypto=False, creative=False))
        names = install_default_schedules(scheduler, self.fake_store(), prefs, Config())
        assert "crypto-news" not in names
        assert "crypto-data" not in names
        assert "creative-content" not in names
        assert "ai-tools" in names

    @pytest.mark.asyncio
    async def test_trigger_routes_to_section_refresh(self, scheduler):
        store = self.fake_store()
        install_default_schedules(scheduler, store, UserPreferences(), Config())
        await scheduler.trigger("crypto-data")
        await scheduler.trigger(CACHE_CLEANUP_JOB)

        store.refresh_section.assert_awaited_once_with(Section.CRYPTO_DATA)
        store.cleanup_cache.assert_awaited_once()
