"""Named recurring jobs on the asyncio event loop.

Each job runs in its own task on a fixed cadence: the next fire time is
computed from the previous scheduled time, not from when the callback
finished. A fire that overruns one or more periods skips the missed slots.

Error Handling Strategy:
    - Callback exceptions are caught per fire, logged with traceback and
      counted; the job keeps its schedule
    - Unknown job names in trigger() log a warning and do nothing
    - clear()/clear_all() stop future fires; a fire already in progress
      runs to completion

Example:
    >>> scheduler = Scheduler()
    >>> scheduler.schedule_recurring("crypto-data", store.refresh_crypto_data, 3600)
    >>> scheduler.schedule_daily_at("ai-news", store.refresh_ai_news, hour=8, minute=0)
    >>> await scheduler.trigger("ai-news")
"""

import asyncio
import functools
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from config import Config
from models.preferences import UserPreferences
from observability.logging import clear_context, set_run_context
from store import CONTENT_SECTIONS, DashboardStore, Section, section_enabled

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[Any]]

HOUR = 60 * 60
DAY = 24 * HOUR
WEEK = 7 * DAY

CACHE_CLEANUP_JOB = "cache-cleanup"


def _check_time(hour: int, minute: int) -> None:
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be 0-23, got {hour}")
    if not 0 <= minute <= 59:
        raise ValueError(f"minute must be 0-59, got {minute}")


def next_daily_run(now: datetime, hour: int, minute: int) -> datetime:
    """Next occurrence of hour:minute strictly after now.

    Example:
        >>> next_daily_run(datetime(2024, 5, 1, 9, 0), 8, 0)
        datetime.datetime(2024, 5, 2, 8, 0)
    """
    _check_time(hour, minute)
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def next_weekly_run(now: datetime, weekday: int, hour: int, minute: int) -> datetime:
    """Next occurrence of weekday hour:minute strictly after now (0 = Sunday)."""
    _check_time(hour, minute)
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be 0-6 (0 = Sunday), got {weekday}")
    current = (now.weekday() + 1) % 7  # Python's Monday=0 to Sunday=0
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    candidate += timedelta(days=(weekday - current) % 7)
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


@dataclass
class _Job:
    name: str
    callback: Callback
    interval: float
    task: asyncio.Task | None = None
    next_run: datetime | None = None
    last_run: datetime | None = None
    runs: int = 0
    failures: int = 0


class Scheduler:
    """Owns a set of named jobs. Scheduling requires a running event loop."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        """Create an empty scheduler.

        Args:
            clock: Wall clock used for daily/weekly alignment and status
        """
        self._clock = clock
        self._jobs: dict[str, _Job] = {}
        self._inflight: set[asyncio.Task] = set()

    # === Scheduling ===

    def _start(self, name: str, callback: Callback, interval: float, first_delay: float) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.clear(name)
        job = _Job(name=name, callback=callback, interval=interval)
        job.task = asyncio.get_running_loop().create_task(self._run(job, first_delay), name=f"job:{name}")
        self._jobs[name] = job
        logger.info(
            "Job scheduled | job=%s interval=%ds first_in=%ds",
            name, interval, first_delay,
        )

    def schedule_recurring(self, name: str, callback: Callback, interval: float) -> None:
        """Fire every `interval` seconds, first fire after one interval.

        Replaces any existing job with the same name.
        """
        self._start(name, callback, interval, first_delay=interval)

    def schedule_daily_at(self, name: str, callback: Callback, hour: int, minute: int = 0) -> None:
        """Fire at hour:minute every day, starting with the next occurrence."""
        now = self._clock()
        delay = (next_daily_run(now, hour, minute) - now).total_seconds()
        self._start(name, callback, DAY, first_delay=delay)

    def schedule_weekly_at(
        self,
        name: str,
        callback: Callback,
        weekday: int,
        hour: int,
        minute: int = 0,
    ) -> None:
        """Fire on weekday (0 = Sunday) at hour:minute every week."""
        now = self._clock()
        delay = (next_weekly_run(now, weekday, hour, minute) - now).total_seconds()
        self._start(name, callback, WEEK, first_delay=delay)

    # === Execution ===

    async def _run(self, job: _Job, first_delay: float) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + first_delay
        try:
            while True:
                wait = max(0.0, next_fire - loop.time())
                job.next_run = self._clock() + timedelta(seconds=wait)
                await asyncio.sleep(wait)

                fire = loop.create_task(self._fire(job))
                self._inflight.add(fire)
                fire.add_done_callback(self._inflight.discard)
                await asyncio.shield(fire)

                next_fire += job.interval
                behind = loop.time() - next_fire
                if behind > 0:
                    skipped = math.ceil(behind / job.interval)
                    next_fire += skipped * job.interval
                    logger.warning("Job overran | job=%s skipped=%d", job.name, skipped)
        except asyncio.CancelledError:
            logger.debug("Job stopped | job=%s runs=%d", job.name, job.runs)
            raise

    async def _fire(self, job: _Job) -> None:
        set_run_context(uuid.uuid4().hex[:8], job=job.name)
        job.last_run = self._clock()
        job.runs += 1
        try:
            await job.callback()
        except Exception as e:
            job.failures += 1
            logger.error("Job failed | job=%s run=%d error=%s", job.name, job.runs, e, exc_info=True)
        finally:
            clear_context()

    async def trigger(self, name: str) -> bool:
        """Run a job's callback now, outside its cadence.

        Returns:
            False when no job has that name
        """
        job = self._jobs.get(name)
        if job is None:
            logger.warning("Trigger ignored, unknown job | job=%s", name)
            return False
        # Own task so the fire's run context never leaks into the caller's
        await asyncio.get_running_loop().create_task(self._fire(job), name=f"trigger:{name}")
        return True

    # === Management ===

    def clear(self, name: str) -> None:
        job = self._jobs.pop(name, None)
        if job is not None and job.task is not None:
            job.task.cancel()
            logger.info("Job cleared | job=%s", name)

    def clear_all(self) -> None:
        for name in list(self._jobs):
            self.clear(name)

    def job_names(self) -> list[str]:
        return list(self._jobs)

    def status(self) -> dict[str, dict[str, Any]]:
        """Per-job snapshot: scheduled flag, next/last run, run and failure counts."""
        return {
            name: {
                "scheduled": job.task is not None and not job.task.done(),
                "next_run": job.next_run.isoformat() if job.next_run else None,
                "last_run": job.last_run.isoformat() if job.last_run else None,
                "runs": job.runs,
                "failures": job.failures,
            }
            for name, job in self._jobs.items()
        }

    async def wait_idle(self) -> None:
        """Wait for fires already in progress (used on shutdown)."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)


def install_default_schedules(
    scheduler: Scheduler,
    store: DashboardStore,
    preferences: UserPreferences,
    config: Config,
) -> list[str]:
    """Register the standard refresh jobs for the dashboard.

    News and creative sections follow the user's refresh frequency
    (daily by default at the configured time). AI tools refresh weekly,
    crypto prices and the cache sweep on their configured intervals.
    Sections disabled in the preferences are not scheduled.

    Returns:
        Names of the jobs installed
    """
    hour, minute = config.daily_refresh_hour, config.daily_refresh_minute
    weekday = config.weekly_refresh_weekday

    for section in CONTENT_SECTIONS:
        if not section_enabled(preferences, section):
            continue
        callback = functools.partial(store.refresh_section, section)
        if preferences.refresh_frequency == "hourly":
            scheduler.schedule_recurring(section.value, callback, HOUR)
        elif preferences.refresh_frequency == "weekly":
            scheduler.schedule_weekly_at(section.value, callback, weekday, hour, minute)
        else:
            scheduler.schedule_daily_at(section.value, callback, hour, minute)

    scheduler.schedule_weekly_at(
        Section.AI_TOOLS.value, functools.partial(store.refresh_section, Section.AI_TOOLS),
        weekday, hour, minute,
    )
    if section_enabled(preferences, Section.CRYPTO_DATA):
        scheduler.schedule_recurring(
            Section.CRYPTO_DATA.value, functools.partial(store.refresh_section, Section.CRYPTO_DATA),
            config.crypto_refresh_minutes * 60,
        )
    scheduler.schedule_recurring(CACHE_CLEANUP_JOB, store.cleanup_cache, config.cache_cleanup_minutes * 60)

    names = scheduler.job_names()
    logger.info("Default schedules installed | jobs=%s", ",".join(names))
    return names
