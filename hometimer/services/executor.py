"""
Schedule execution.

``ScheduleExecutor`` is the piece that actually fires automations: on each
tick it takes a snapshot of the enabled schedules, picks out the slots due
at that minute, and runs their actions one by one. Each action is isolated,
so a false guard, an untranslatable command or a failed send only affects
that action.

Ticks and manual triggers share one lock, so two executions never overlap
and the dedup map is only touched by one of them at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from hometimer.schemas import DeviceAction, Schedule, TimeSlot
from hometimer.services.conditions import ConditionEvaluator
from hometimer.services.matcher import DedupTracker, is_due, weekday_name
from hometimer.services.translator import translate

if TYPE_CHECKING:
    from hometimer.services.store import ScheduleStore
    from hometimer.services.tuya import TuyaClient

logger = logging.getLogger(__name__)


class TriggerError(Exception):
    """A manual trigger could not find what it was asked to run."""


class ScheduleNotFound(TriggerError):
    pass


class SlotNotFound(TriggerError):
    pass


@dataclass
class SlotResult:
    """Outcome of running one slot's actions."""
    schedule_id: str
    slot_id: str
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "slot_id": self.slot_id,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
        }


@dataclass
class TickSummary:
    """Outcome of one tick."""
    started_at: datetime
    schedules_checked: int = 0
    slots: list[SlotResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def slots_fired(self) -> int:
        return len(self.slots)

    @property
    def actions_sent(self) -> int:
        return sum(s.sent for s in self.slots)


class ScheduleExecutor:
    """
    Runs due time slots against the device command sender.

    Args:
        store: Source of enabled schedule snapshots
        devices: Device status reader and command sender
        evaluator: Guard evaluator, built from ``devices`` when omitted
        dedup: Duplicate-firing tracker, a fresh 2 minute one when omitted
    """

    def __init__(
        self,
        store: "ScheduleStore",
        devices: "TuyaClient",
        evaluator: Optional[ConditionEvaluator] = None,
        dedup: Optional[DedupTracker] = None,
    ) -> None:
        self._store = store
        self._devices = devices
        self._evaluator = evaluator or ConditionEvaluator(devices)
        # DedupTracker defines __len__, so an empty one is falsy
        self.dedup = dedup if dedup is not None else DedupTracker()
        self._lock = asyncio.Lock()

    async def run_tick(self, now: datetime) -> TickSummary:
        """Fire every slot due at ``now`` that has not fired recently."""
        async with self._lock:
            return await self._run_tick(now)

    async def trigger_one(self, schedule_id: str, slot_id: str) -> SlotResult:
        """
        Run one slot immediately, ignoring its time and the dedup window.

        Guards are still evaluated. Raises ScheduleNotFound or SlotNotFound.
        """
        async with self._lock:
            schedules = await self._store.list_enabled_schedules()
            schedule = next(
                (s for s in schedules if s.enabled and s.id == schedule_id), None
            )
            if schedule is None:
                raise ScheduleNotFound(f"Schedule not found: {schedule_id}")

            slot = schedule.get_slot(slot_id)
            if slot is None:
                raise SlotNotFound(f"Time slot not found: {slot_id}")

            logger.info(f"Manual trigger of slot {slot_id} on \"{schedule.name}\"")
            return await self._execute_slot(schedule, slot)

    async def _run_tick(self, now: datetime) -> TickSummary:
        summary = TickSummary(started_at=now)

        try:
            snapshot = await self._store.list_enabled_schedules()
        except Exception as e:
            logger.error(f"Error loading schedules, skipping tick: {e}")
            summary.error = str(e)
            return summary

        schedules = [s for s in snapshot if s.enabled]
        summary.schedules_checked = len(schedules)
        if not schedules:
            return summary

        current = now.strftime("%H:%M")
        # Info-level heartbeat every five minutes
        if now.minute % 5 == 0:
            logger.info(f"Checking {len(schedules)} schedules at {current} ({weekday_name(now)})")
        else:
            logger.debug(f"Checking {len(schedules)} schedules at {current}")

        for schedule in schedules:
            for slot in schedule.time_slots:
                if not is_due(slot, schedule, now):
                    continue
                if self.dedup.should_suppress(schedule.id, slot.id, now):
                    logger.debug(f"Slot {slot.id} of \"{schedule.name}\" fired recently, skipping")
                    continue
                # Recorded before any action runs so a slow slot cannot re-fire
                self.dedup.record_fired(schedule.id, slot.id, now)
                summary.slots.append(await self._execute_slot(schedule, slot))

        return summary

    async def _execute_slot(self, schedule: Schedule, slot: TimeSlot) -> SlotResult:
        logger.info(f"Executing time slot {slot.id} ({slot.start_time}) for schedule \"{schedule.name}\"")
        result = SlotResult(schedule_id=schedule.id, slot_id=slot.id)

        for action in slot.actions:
            try:
                sent = await self._execute_action(action)
            except Exception as e:
                logger.error(f"  Error executing action on {action.device_name or action.device_id}: {e}")
                result.failed += 1
                result.errors.append(f"{action.device_id}: {e}")
                continue

            if sent:
                result.sent += 1
            else:
                result.skipped += 1

        logger.info(
            f"Slot {slot.id} done: {result.sent} sent, {result.skipped} skipped, {result.failed} failed"
        )
        return result

    async def _execute_action(self, action: DeviceAction) -> bool:
        """Run one action. Returns False when it was skipped."""
        name = action.device_name or action.device_id

        if action.condition:
            if not await self._evaluator.evaluate(action.condition):
                cond = action.condition
                logger.info(f"  Skipping {name}: condition not met ({cond.metric} {cond.operator} {cond.value})")
                return False
            logger.info(f"  Condition met for {name}")

        instructions = translate(action.command, action.device_category)
        if not instructions:
            logger.info(f"  No Tuya instructions for {action.command.type} on {name}, skipping")
            return False

        logger.info(f"  Sending to {name}: {[(i.code, i.value) for i in instructions]}")
        await self._devices.send_command(action.device_id, instructions)
        logger.info(f"  Sent to {name}")
        return True
