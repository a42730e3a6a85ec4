"""
Tests for the scrape scheduler.
"""

import asyncio

import pytest

from scrapers.errors import ConfigurationError
from scrapers.scheduler import RentalScheduler


class TestRentalScheduler:

    def test_interval_must_be_positive(self):
        async def job():
            pass

        with pytest.raises(ConfigurationError):
            RentalScheduler(0, job)

    def test_runs_job_on_every_tick(self):
        runs = []

        async def job():
            runs.append(1)

        async def go():
            scheduler = RentalScheduler(0.01, job)
            scheduler.start()
            await asyncio.sleep(0.055)
            await scheduler.stop()
            return scheduler

        scheduler = asyncio.run(go())

        assert len(runs) >= 3
        assert scheduler.runs_started >= len(runs)
        assert not scheduler.is_running

    def test_job_failures_do_not_stop_the_schedule(self):
        runs = []

        async def job():
            runs.append(1)
            raise RuntimeError("scrape blew up")

        async def go():
            scheduler = RentalScheduler(0.01, job)
            scheduler.start()
            await asyncio.sleep(0.045)
            await scheduler.stop()

        asyncio.run(go())

        assert len(runs) >= 2

    def test_overlapping_runs_are_allowed_by_default(self):
        async def go():
            gate = asyncio.Event()

            async def job():
                await gate.wait()

            scheduler = RentalScheduler(60, job)
            first = scheduler.tick()
            second = scheduler.tick()
            await asyncio.sleep(0)
            gate.set()
            await asyncio.gather(first, second)
            return first, second

        first, second = asyncio.run(go())

        assert first is not None and second is not None

    def test_prevent_overlap_skips_busy_ticks(self):
        async def go():
            gate = asyncio.Event()

            async def job():
                await gate.wait()

            scheduler = RentalScheduler(60, job, prevent_overlap=True)
            first = scheduler.tick()
            second = scheduler.tick()
            gate.set()
            await first
            await asyncio.sleep(0)
            third = scheduler.tick()
            await third
            return scheduler, second, third

        scheduler, second, third = asyncio.run(go())

        assert second is None
        assert third is not None
        assert scheduler.runs_skipped == 1

    def test_stop_cancels_running_jobs(self):
        cancelled = []

        async def job():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(1)
                raise

        async def go():
            scheduler = RentalScheduler(60, job)
            scheduler.start()
            await asyncio.sleep(0.01)
            await scheduler.stop()

        asyncio.run(go())

        assert cancelled == [1]
