from hometimer.models.schedule import ScheduleRecord
from hometimer.models.group import DeviceGroupRecord

__all__ = [
    "ScheduleRecord",
    "DeviceGroupRecord"
]
