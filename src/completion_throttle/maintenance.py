# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Periodic maintenance jobs for the RequestManager.

Four independent jobs, each running in its own asyncio task:

- status report: log ``get_status()``
- quota refresh: re-read quota regardless of cache age
- daily reset: log the day's stats, then zero them at local midnight
- concurrency watchdog: warn when in-flight load nears the cap

There is no ordering between jobs and nothing is persisted. ``stop()``
cancels and awaits every job task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from .config import MaintenanceConfig
from .observability import HIGH_CONCURRENCY_WARNINGS_TOTAL

if TYPE_CHECKING:
    from .manager import RequestManager

logger = logging.getLogger(__name__)


def seconds_until_next_midnight(now: datetime) -> float:
    """Seconds from ``now`` to the next midnight in ``now``'s timezone."""
    tomorrow = (now + timedelta(days=1)).date()
    midnight = datetime.combine(tomorrow, datetime.min.time(), tzinfo=now.tzinfo)
    return max(0.0, (midnight - now).total_seconds())


@dataclass
class PeriodicJob:
    """A named coroutine run after every ``next_delay()`` seconds."""

    name: str
    next_delay: Callable[[], float]
    run: Callable[[], Awaitable[Any]]


class MaintenanceScheduler:
    """
    Runs the manager's periodic jobs until stopped.

    Example:
        >>> maintenance = MaintenanceScheduler(manager, MaintenanceConfig())
        >>> await maintenance.start()
        >>> ...
        >>> await maintenance.stop()
    """

    def __init__(
        self,
        manager: RequestManager,
        config: MaintenanceConfig | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            manager: The manager whose status, quota and stats are maintained
            config: Job intervals and watchdog threshold
            now: Returns the current local, timezone-aware time
        """
        self._manager = manager
        self.config = config or MaintenanceConfig()
        self._now = now or (lambda: datetime.now().astimezone())
        self._tasks: set[asyncio.Task[None]] = set()
        self._running = False

        self.jobs: list[PeriodicJob] = [
            PeriodicJob(
                "status_report",
                lambda: self.config.status_report_interval,
                self.report_status,
            ),
            PeriodicJob(
                "quota_refresh",
                lambda: self.config.quota_refresh_interval,
                self.refresh_quota,
            ),
            PeriodicJob(
                "daily_stats_reset",
                lambda: seconds_until_next_midnight(self._now()),
                self.reset_daily_stats,
            ),
            PeriodicJob(
                "concurrency_watchdog",
                lambda: self.config.watchdog_interval,
                self.check_concurrency,
            ),
        ]

    def is_running(self) -> bool:
        return self._running

    # === Jobs ===

    async def report_status(self) -> None:
        """Log the manager's status snapshot. Does not mutate state."""
        status = self._manager.get_status()
        logger.info(f"Request manager status: {status.to_log_dict()}")

    async def refresh_quota(self) -> None:
        """Force a quota refresh regardless of cache age."""
        await self._manager.refresh_quota(force=True)

    async def reset_daily_stats(self) -> None:
        """Log the day's stats and reset every counter."""
        snapshot = self._manager.reset_stats()
        logger.info(f"Daily stats reset, previous stats: {snapshot.model_dump(mode='json')}")

    async def check_concurrency(self) -> bool:
        """
        Warn when in-flight requests are at or near the concurrency cap.

        Observability only; no throttling action is taken.

        Returns:
            True if a warning was emitted
        """
        limiter = self._manager.limiter
        running = limiter.running()
        cap = limiter.config.max_concurrent
        self._manager.update_limiter_gauges()
        if running >= cap * self.config.high_concurrency_ratio:
            logger.warning(
                f"High concurrency: {running}/{cap} requests in flight, "
                f"{limiter.queued()} queued"
            )
            if self._manager.metrics_collector:
                self._manager.metrics_collector.inc_counter(
                    HIGH_CONCURRENCY_WARNINGS_TOTAL
                )
            return True
        return False

    # === Lifecycle ===

    async def _run_job(self, job: PeriodicJob) -> None:
        while self._running:
            await asyncio.sleep(job.next_delay())
            try:
                await job.run()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Maintenance job {job.name} failed: {e}")

    async def start(self) -> None:
        """Start one task per job."""
        if self._running:
            return
        self._running = True
        for job in self.jobs:
            task = asyncio.create_task(self._run_job(job), name=f"maintenance:{job.name}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        logger.info(f"Maintenance scheduler started with {len(self.jobs)} jobs")

    async def stop(self) -> None:
        """Cancel all job tasks and wait for them to finish."""
        if not self._running:
            return
        self._running = False

        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Maintenance scheduler stopped")


__all__ = ["MaintenanceScheduler", "PeriodicJob", "seconds_until_next_midnight"]
