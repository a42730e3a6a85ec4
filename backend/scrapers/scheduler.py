"""
Fixed-interval scheduler for the scrape pipeline.

Every tick launches the job as its own task. Runs may overlap when a cycle
outlasts the interval; with prevent_overlap a tick that finds the previous run
still going is skipped instead.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from .errors import ConfigurationError

logger = logging.getLogger('scraper.scheduler')


class RentalScheduler:
    """
    Periodically runs an async job.

    Usage:
        scheduler = RentalScheduler(300, lambda: run_scrape_cycle(store))
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        interval_seconds: float,
        job: Callable[[], Awaitable],
        prevent_overlap: bool = False,
        run_immediately: bool = True,
    ):
        if interval_seconds <= 0:
            raise ConfigurationError(f"interval_seconds must be positive, got {interval_seconds!r}")
        self.interval_seconds = interval_seconds
        self.job = job
        self.prevent_overlap = prevent_overlap
        self.run_immediately = run_immediately
        self.runs_started = 0
        self.runs_skipped = 0
        self._loop_task: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def _run_job(self):
        try:
            await self.job()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Scheduled scrape failed: {e}")

    def tick(self) -> Optional[asyncio.Task]:
        """Launch one run now; returns its task, or None if skipped."""
        if self.prevent_overlap and self._running:
            self.runs_skipped += 1
            logger.warning("Previous scrape still running, skipping this tick")
            return None

        self.runs_started += 1
        task = asyncio.create_task(self._run_job(), name=f"scrape-run-{self.runs_started}")
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return task

    async def _loop(self):
        if not self.run_immediately:
            await asyncio.sleep(self.interval_seconds)
        while True:
            self.tick()
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        """Start ticking on the running event loop."""
        if self.is_running:
            return
        logger.info(f"Scheduler started: every {self.interval_seconds}s")
        self._loop_task = asyncio.create_task(self._loop(), name="scrape-scheduler")

    async def stop(self, cancel_running: bool = True):
        """Stop ticking; optionally cancel runs still in flight."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

        pending = list(self._running)
        if cancel_running:
            for task in pending:
                task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Scheduler stopped")
