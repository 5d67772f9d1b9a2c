"""Periodic background refreshes that pause while the view is hidden.

Each watched resource is one APScheduler interval job. Ticks that fire while
the owner reports itself hidden are skipped entirely, and ``stop`` removes
every job so no timer outlives the view that registered it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from carepoint_client.api import CarePointAPIError

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[Any]]


class Visibility:
    """Mutable visible/hidden flag, callable so it can be passed as a predicate."""

    def __init__(self, visible: bool = True) -> None:
        self.visible = visible

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False

    def __call__(self) -> bool:
        return self.visible


class RefreshScheduler:
    def __init__(
        self,
        *,
        visibility: Callable[[], bool] | None = None,
        timezone: Any = None,
    ) -> None:
        self._scheduler = (
            AsyncIOScheduler(timezone=timezone) if timezone else AsyncIOScheduler()
        )
        self._visibility = visibility or Visibility()
        self._skipped = 0

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    @property
    def job_ids(self) -> list[str]:
        return sorted(job.id for job in self._scheduler.get_jobs())

    @property
    def skipped_ticks(self) -> int:
        return self._skipped

    def start(self) -> None:
        if self._scheduler.running:
            return
        logger.info("Starting refresh scheduler")
        self._scheduler.start()

    def watch(self, job_id: str, refresh: RefreshCallback, seconds: float) -> None:
        """Refresh every ``seconds``, replacing any job already using ``job_id``."""
        self._scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=seconds),
            args=[job_id, refresh],
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.debug("Watching %s every %ss", job_id, seconds)

    def unwatch(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            return
        logger.debug("Stopped watching %s", job_id)

    async def tick(self, job_id: str, refresh: RefreshCallback) -> bool:
        """Run one refresh; returns False when the tick was skipped."""
        if not self._visibility():
            self._skipped += 1
            logger.debug("Skipping %s refresh while hidden", job_id)
            return False
        try:
            await refresh()
        except CarePointAPIError as exc:
            logger.warning("Background refresh %s failed: %s", job_id, exc)
        return True

    async def stop(self) -> None:
        self._scheduler.remove_all_jobs()
        if self._scheduler.running:
            logger.info("Stopping refresh scheduler")
            self._scheduler.shutdown(wait=False)
            # AsyncIOScheduler.shutdown is deferred to the next loop iteration.
            await asyncio.sleep(0)

    async def __aenter__(self) -> RefreshScheduler:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


__all__ = ["RefreshCallback", "RefreshScheduler", "Visibility"]
