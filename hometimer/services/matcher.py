"""
Deciding whether a time slot is due, and suppressing duplicate firings.
"""

from datetime import datetime, timedelta
from typing import Optional

from hometimer.schemas import WEEKDAYS, Schedule, TimeSlot

DEFAULT_DEDUP_WINDOW = timedelta(minutes=2)


def weekday_name(now: datetime) -> str:
    return WEEKDAYS[now.weekday()]


def is_due(slot: TimeSlot, schedule: Schedule, now: datetime) -> bool:
    """
    Check whether a slot fires at ``now``.

    Matches at minute resolution with no tolerance window; a tick that
    skips a minute misses that minute's slots.
    """
    if weekday_name(now) not in schedule.days_of_week:
        return False
    return slot.start_time == now.strftime("%H:%M")


class DedupTracker:
    """
    Remembers when each (schedule, slot) pair last fired.

    Entries live for the lifetime of the process.
    """

    def __init__(self, window: timedelta = DEFAULT_DEDUP_WINDOW) -> None:
        self.window = window
        self._last_fired: dict[tuple[str, str], datetime] = {}

    def last_fired(self, schedule_id: str, slot_id: str) -> Optional[datetime]:
        return self._last_fired.get((schedule_id, slot_id))

    def should_suppress(self, schedule_id: str, slot_id: str, now: datetime) -> bool:
        last = self._last_fired.get((schedule_id, slot_id))
        if last is None:
            return False
        return now - last < self.window

    def record_fired(self, schedule_id: str, slot_id: str, now: datetime) -> None:
        self._last_fired[(schedule_id, slot_id)] = now

    def __len__(self) -> int:
        return len(self._last_fired)
