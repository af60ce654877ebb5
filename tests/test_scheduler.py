"""Tests for the tick driver."""

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

from hometimer.scheduler import TICK_JOB_ID, TickDriver
from hometimer.services.executor import TickSummary


class FakeExecutor:
    def __init__(self, fail=False):
        self.fail = fail
        self.ticks = []
        self.triggers = []

    async def run_tick(self, now):
        self.ticks.append(now)
        if self.fail:
            raise RuntimeError("boom")
        return TickSummary(started_at=now)

    async def trigger_one(self, schedule_id, slot_id):
        self.triggers.append((schedule_id, slot_id))
        return "result"


class TestTick:
    def test_tick_passes_current_time(self):
        executor = FakeExecutor()
        driver = TickDriver(executor)

        before = datetime.now()
        summary = asyncio.run(driver.tick())

        assert len(executor.ticks) == 1
        assert executor.ticks[0] >= before
        assert summary.started_at == executor.ticks[0]

    def test_tick_uses_configured_timezone(self):
        executor = FakeExecutor()
        tz = ZoneInfo("Australia/Sydney")
        driver = TickDriver(executor, timezone=tz)

        asyncio.run(driver.tick())

        assert executor.ticks[0].tzinfo is tz

    def test_tick_never_raises(self):
        executor = FakeExecutor(fail=True)
        driver = TickDriver(executor)

        assert asyncio.run(driver.tick()) is None
        assert asyncio.run(driver.tick()) is None
        assert len(executor.ticks) == 2

    def test_trigger_forwards_to_executor(self):
        executor = FakeExecutor()
        driver = TickDriver(executor)

        assert asyncio.run(driver.trigger("s", "t")) == "result"
        assert executor.triggers == [("s", "t")]


class TestStartStop:
    def test_job_is_non_reentrant_and_immediate(self):
        driver = TickDriver(FakeExecutor(), interval_seconds=60)

        async def run():
            driver.start()
            job = driver.scheduler.get_job(TICK_JOB_ID)
            info = (job.max_instances, job.coalesce, job.trigger.interval.total_seconds())
            next_run = driver.get_next_run_time()
            running = driver.running
            driver.stop()
            return info, next_run, running

        info, next_run, running = asyncio.run(run())

        assert info == (1, True, 60)
        assert next_run is not None
        assert running
        assert not driver.running

    def test_next_run_time_before_start(self):
        driver = TickDriver(FakeExecutor())
        assert driver.get_next_run_time() is None
