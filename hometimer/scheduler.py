from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, tzinfo
from typing import Optional
import logging

from hometimer.services.executor import ScheduleExecutor, SlotResult, TickSummary

logger = logging.getLogger(__name__)

TICK_JOB_ID = "hometimer_tick"


class TickDriver:
    """
    Drives the executor on a fixed interval.

    The tick job runs once at start and then every ``interval_seconds``.
    It is registered with ``max_instances=1`` so a slow tick is never
    overlapped by the next one, and with ``coalesce=True`` so missed ticks
    are not caught up.
    """

    def __init__(
        self,
        executor: ScheduleExecutor,
        interval_seconds: int = 60,
        timezone: Optional[tzinfo] = None
    ):
        self.executor = executor
        self.interval_seconds = interval_seconds
        self.timezone = timezone
        if timezone is not None:
            self.scheduler = AsyncIOScheduler(timezone=timezone)
        else:
            self.scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def now(self) -> datetime:
        """Current wall-clock time in the slot timezone."""
        return datetime.now(self.timezone)

    async def tick(self) -> Optional[TickSummary]:
        """Run one tick. Never raises."""
        try:
            summary = await self.executor.run_tick(self.now())
        except Exception:
            logger.exception("Scheduler tick failed")
            return None
        if summary.slots_fired:
            logger.info(f"Tick fired {summary.slots_fired} slot(s), {summary.actions_sent} action(s) sent")
        return summary

    async def trigger(self, schedule_id: str, slot_id: str) -> SlotResult:
        """Run one slot now, serialized with the periodic tick."""
        return await self.executor.trigger_one(schedule_id, slot_id)

    def get_next_run_time(self) -> Optional[datetime]:
        """Get the next scheduled tick."""
        job = self.scheduler.get_job(TICK_JOB_ID)
        if job:
            return job.next_run_time
        return None

    def start(self):
        """Start ticking; the first tick runs immediately."""
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.interval_seconds),
            id=TICK_JOB_ID,
            next_run_time=self.now(),
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Scheduler started - checking every {self.interval_seconds}s")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
