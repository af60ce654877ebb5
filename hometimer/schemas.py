"""
Schedule document models.

Schedules are stored and exchanged as JSON documents with camelCase keys
(``daysOfWeek``, ``timeSlots``, ``startTime`` ...). Every model here accepts
either the camelCase alias or the Python field name, and dumps camelCase
with ``model_dump(by_alias=True)``.

A device command is a tagged union keyed on ``type``. Documents carrying a
``type`` this version does not know about still load, as ``UnknownCommand``,
so one stale action cannot make a whole schedule unreadable.
"""

import re
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
)
from pydantic.alias_generators import to_camel


Weekday = Literal[
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
]

# Indexed by datetime.weekday()
WEEKDAYS: tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
)

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Instruction(CamelModel):
    """A single (code, value) pair in the Tuya command format."""

    model_config = ConfigDict(frozen=True)

    code: str
    value: Any


# ============================================================================
# Device commands
# ============================================================================

class HSV(CamelModel):
    h: int = Field(ge=0, le=360)
    s: int = Field(ge=0, le=1000)
    v: int = Field(ge=0, le=1000)


class OnOffCommand(CamelModel):
    type: Literal["OnOff"] = "OnOff"
    on: bool


class BrightnessCommand(CamelModel):
    type: Literal["Brightness"] = "Brightness"
    brightness: float = Field(ge=0, le=100, description="Percent")


class ColorTemperatureCommand(CamelModel):
    type: Literal["ColorTemperature"] = "ColorTemperature"
    temperature_k: int = Field(description="Kelvin, 2700-6500 expected")


class ColorRGBCommand(CamelModel):
    type: Literal["ColorRGB"] = "ColorRGB"
    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)


class ThermostatCommand(CamelModel):
    type: Literal["Thermostat"] = "Thermostat"
    mode: str = ""
    temperature: Optional[float] = None


class FanSpeedCommand(CamelModel):
    type: Literal["FanSpeed"] = "FanSpeed"
    speed_percent: float = Field(ge=0, le=100)


class TuyaACCommand(CamelModel):
    type: Literal["TuyaAC"] = "TuyaAC"
    mode: Literal["cold", "heat", "auto", "wind_dry", "dehumidification"]
    temperature: int
    fan: Literal["auto", "low", "mid", "high"]


class TuyaLightCommand(CamelModel):
    type: Literal["TuyaLight"] = "TuyaLight"
    brightness: Optional[float] = Field(default=None, ge=0, le=100)
    color_temp: Optional[int] = None
    color_hsv: Optional[HSV] = Field(default=None, alias="colorHSV")
    work_mode: Optional[Literal["white", "colour"]] = None


class UnknownCommand(CamelModel):
    """Placeholder for a command type this version cannot translate."""

    model_config = ConfigDict(extra="allow")

    type: str = "unknown"


COMMAND_TYPES = frozenset({
    "OnOff",
    "Brightness",
    "ColorTemperature",
    "ColorRGB",
    "Thermostat",
    "FanSpeed",
    "TuyaAC",
    "TuyaLight",
})


def _command_tag(value: Any) -> str:
    if isinstance(value, dict):
        tag = value.get("type")
    else:
        tag = getattr(value, "type", None)
    return tag if tag in COMMAND_TYPES else "unknown"


DeviceCommand = Annotated[
    Union[
        Annotated[OnOffCommand, Tag("OnOff")],
        Annotated[BrightnessCommand, Tag("Brightness")],
        Annotated[ColorTemperatureCommand, Tag("ColorTemperature")],
        Annotated[ColorRGBCommand, Tag("ColorRGB")],
        Annotated[ThermostatCommand, Tag("Thermostat")],
        Annotated[FanSpeedCommand, Tag("FanSpeed")],
        Annotated[TuyaACCommand, Tag("TuyaAC")],
        Annotated[TuyaLightCommand, Tag("TuyaLight")],
        Annotated[UnknownCommand, Tag("unknown")],
    ],
    Discriminator(_command_tag),
]


# ============================================================================
# Schedules
# ============================================================================

class ActionCondition(CamelModel):
    """Sensor threshold guarding a single action."""

    sensor_device_id: str
    sensor_device_name: str = ""
    metric: Literal["temperature", "humidity"]
    operator: Literal[">", "<", ">=", "<="]
    value: float


class DeviceAction(CamelModel):
    device_id: str
    device_name: str = ""
    device_category: Optional[str] = None
    command: DeviceCommand
    condition: Optional[ActionCondition] = None


class TimeSlot(CamelModel):
    id: str
    start_time: str = Field(description="HH:MM, local to the scheduler")
    actions: list[DeviceAction] = []

    @field_validator("start_time")
    @classmethod
    def _normalize_start_time(cls, v: str) -> str:
        match = _TIME_RE.match(v.strip())
        if not match:
            raise ValueError(f"start time must be HH:MM, got {v!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"start time out of range: {v!r}")
        return f"{hour:02d}:{minute:02d}"


def _unique_days(days: list[str]) -> list[str]:
    return list(dict.fromkeys(days))


def _unique_slot_ids(slots: list[TimeSlot]) -> list[TimeSlot]:
    seen = set()
    for slot in slots:
        if slot.id in seen:
            raise ValueError(f"duplicate time slot id: {slot.id!r}")
        seen.add(slot.id)
    return slots


class Schedule(CamelModel):
    id: str
    name: str
    enabled: bool = True
    user_id: str = ""
    days_of_week: list[Weekday] = []
    time_slots: list[TimeSlot] = []
    # Device-triggered automations; stored as given and never executed
    triggers: list[dict[str, Any]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("days_of_week")
    @classmethod
    def _dedupe_days(cls, v: list[str]) -> list[str]:
        return _unique_days(v)

    @field_validator("time_slots")
    @classmethod
    def _check_slot_ids(cls, v: list[TimeSlot]) -> list[TimeSlot]:
        return _unique_slot_ids(v)

    def get_slot(self, slot_id: str) -> Optional[TimeSlot]:
        for slot in self.time_slots:
            if slot.id == slot_id:
                return slot
        return None


# ============================================================================
# API request bodies
# ============================================================================

class ScheduleCreate(CamelModel):
    name: str = Field(min_length=1)
    enabled: bool = True
    days_of_week: list[Weekday]
    time_slots: list[TimeSlot]
    triggers: list[dict[str, Any]] = []

    @field_validator("days_of_week")
    @classmethod
    def _dedupe_days(cls, v: list[str]) -> list[str]:
        return _unique_days(v)

    @field_validator("time_slots")
    @classmethod
    def _check_slot_ids(cls, v: list[TimeSlot]) -> list[TimeSlot]:
        return _unique_slot_ids(v)


class ScheduleUpdate(CamelModel):
    name: Optional[str] = None
    enabled: Optional[bool] = None
    days_of_week: Optional[list[Weekday]] = None
    time_slots: Optional[list[TimeSlot]] = None
    triggers: Optional[list[dict[str, Any]]] = None

    @field_validator("time_slots")
    @classmethod
    def _check_slot_ids(cls, v: Optional[list[TimeSlot]]) -> Optional[list[TimeSlot]]:
        return v if v is None else _unique_slot_ids(v)


# ============================================================================
# Device groups
# ============================================================================

class DeviceGroup(CamelModel):
    id: str
    name: str
    device_ids: list[str]
    user_id: str = ""


class GroupCreate(CamelModel):
    name: str = Field(min_length=1)
    device_ids: list[str] = Field(min_length=1)


class GroupUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    device_ids: Optional[list[str]] = Field(default=None, min_length=1)


class TriggerRequest(CamelModel):
    slot_id: Optional[str] = None


class ExecuteRequest(CamelModel):
    commands: list[Instruction] = Field(min_length=1)


class CommandRequest(CamelModel):
    command: DeviceCommand
    device_category: Optional[str] = None
