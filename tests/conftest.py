"""Shared fixtures: in-memory stand-ins for the store and the Tuya client."""

from datetime import datetime

import pytest

from hometimer.schemas import Schedule

# 2025-01-06 is a Monday
MONDAY_0700 = datetime(2025, 1, 6, 7, 0, 0)


class FakeDevices:
    """Records sends; status reads and sends can be made to fail per device."""

    def __init__(self):
        self.sent: list[tuple[str, list]] = []
        self.statuses: dict[str, dict] = {}
        self.failing_sends: set[str] = set()
        self.failing_reads: set[str] = set()

    async def get_device_status(self, device_id):
        if device_id in self.failing_reads:
            raise ConnectionError(f"{device_id} unreachable")
        return self.statuses.get(device_id, {})

    async def send_command(self, device_id, instructions):
        if device_id in self.failing_sends:
            raise RuntimeError(f"{device_id} rejected command")
        self.sent.append((device_id, list(instructions)))

    def sent_to(self, device_id):
        return [instructions for d, instructions in self.sent if d == device_id]


class FakeStore:
    """Returns whatever schedules it holds; can be told to fail."""

    def __init__(self, schedules=None):
        self.schedules = list(schedules or [])
        self.fail = False
        self.calls = 0

    async def list_enabled_schedules(self):
        self.calls += 1
        if self.fail:
            raise ConnectionError("store unavailable")
        return list(self.schedules)


@pytest.fixture
def devices():
    return FakeDevices()


@pytest.fixture
def make_schedule():
    """Factory for schedule documents with sensible defaults."""

    def _make(
        schedule_id="sched-1",
        days=("monday",),
        slots=None,
        enabled=True,
        name="Morning",
    ):
        if slots is None:
            slots = [
                {
                    "id": "slot-1",
                    "startTime": "07:00",
                    "actions": [
                        {
                            "deviceId": "light-1",
                            "deviceName": "Hall light",
                            "deviceCategory": "dj",
                            "command": {"type": "OnOff", "on": True},
                        }
                    ],
                }
            ]
        return Schedule.model_validate({
            "id": schedule_id,
            "name": name,
            "enabled": enabled,
            "userId": "user-1",
            "daysOfWeek": list(days),
            "timeSlots": slots,
        })

    return _make
