from hometimer.services.translator import translate, rgb_to_hsv
from hometimer.services.matcher import DedupTracker, is_due
from hometimer.services.conditions import ConditionEvaluator
from hometimer.services.executor import ScheduleExecutor, TriggerError, ScheduleNotFound, SlotNotFound
from hometimer.services.store import GroupStore, ScheduleStore
from hometimer.services.tuya import TuyaClient, TuyaError

__all__ = [
    "translate",
    "rgb_to_hsv",
    "DedupTracker",
    "is_due",
    "ConditionEvaluator",
    "ScheduleExecutor",
    "TriggerError",
    "ScheduleNotFound",
    "SlotNotFound",
    "ScheduleStore",
    "GroupStore",
    "TuyaClient",
    "TuyaError"
]
