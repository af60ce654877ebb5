"""
Translation of abstract device commands into Tuya instructions.

Everything here is pure: no I/O, no state, and ``translate`` never raises.
"""

import json
import math
import logging
from typing import Optional

from hometimer.schemas import (
    BrightnessCommand,
    ColorRGBCommand,
    ColorTemperatureCommand,
    FanSpeedCommand,
    Instruction,
    OnOffCommand,
    ThermostatCommand,
    TuyaACCommand,
    TuyaLightCommand,
)

logger = logging.getLogger(__name__)

# Categories that only understand the canonical "switch" code
SWITCH_CATEGORIES = frozenset({"infrared_ac", "kt"})
# Light categories that only understand "switch_led"
SWITCH_LED_CATEGORIES = frozenset({"dj", "dd", "xdd"})
# Written together when the category is unknown; firmware honours one of them
FALLBACK_SWITCH_CODES = ("switch_led", "switch_1", "switch")

KELVIN_MIN = 2700
KELVIN_MAX = 6500


def _round_half_up(x: float) -> int:
    # Rounds .5 away from zero for non-negative x
    return math.floor(x + 0.5)


def _hsv_json(hsv: dict) -> str:
    return json.dumps({"h": hsv["h"], "s": hsv["s"], "v": hsv["v"]}, separators=(",", ":"))


def rgb_to_hsv(r: float, g: float, b: float) -> dict:
    """
    Convert an RGB colour to the Tuya HSV representation.

    Args:
        r, g, b: Channels in 0-255

    Returns:
        Dict with hue in degrees (0-359) and saturation/value in 0-1000
    """
    r, g, b = r / 255, g / 255, b / 255

    c_max = max(r, g, b)
    c_min = min(r, g, b)
    diff = c_max - c_min

    h = 0.0
    s = 0.0 if c_max == 0 else diff / c_max
    v = c_max

    if diff != 0:
        if c_max == r:
            # May be negative; shifted into range below
            h = math.fmod((g - b) / diff, 6)
        elif c_max == g:
            h = (b - r) / diff + 2
        else:
            h = (r - g) / diff + 4
        h = _round_half_up(h * 60)
        if h < 0:
            h += 360

    return {
        "h": _round_half_up(h),
        "s": _round_half_up(s * 1000),
        "v": _round_half_up(v * 1000),
    }


def _on_off(command: OnOffCommand, category: Optional[str]) -> list[Instruction]:
    if category in SWITCH_CATEGORIES:
        return [Instruction(code="switch", value=command.on)]
    if category in SWITCH_LED_CATEGORIES:
        return [Instruction(code="switch_led", value=command.on)]
    return [Instruction(code=code, value=command.on) for code in FALLBACK_SWITCH_CODES]


def _tuya_light(command: TuyaLightCommand) -> list[Instruction]:
    instructions = []
    if command.work_mode:
        instructions.append(Instruction(code="work_mode", value=command.work_mode))
    if command.brightness is not None:
        value = max(10, _round_half_up(command.brightness * 10))
        instructions.append(Instruction(code="bright_value_v2", value=value))
    if command.color_temp is not None:
        instructions.append(Instruction(code="temp_value_v2", value=command.color_temp))
    if command.color_hsv is not None:
        instructions.append(Instruction(code="work_mode", value="colour"))
        instructions.append(
            Instruction(code="colour_data_v2", value=_hsv_json(command.color_hsv.model_dump()))
        )
    return instructions


def _thermostat(command: ThermostatCommand) -> list[Instruction]:
    instructions = []
    # Power is governed by OnOff, so "off" is never forwarded as a mode
    if command.mode and command.mode != "off":
        instructions.append(Instruction(code="mode", value=command.mode))
    if command.temperature is not None:
        instructions.append(Instruction(code="temp", value=command.temperature))
    return instructions


def fan_level(speed_percent: float) -> str:
    """Bucket a continuous fan speed into Tuya's three named levels."""
    if speed_percent > 66:
        return "high"
    if speed_percent > 33:
        return "mid"
    return "low"


def translate(command, device_category: Optional[str] = None) -> list[Instruction]:
    """
    Translate a device command into Tuya instructions.

    Args:
        command: Any DeviceCommand variant
        device_category: Tuya category code of the target device, if known

    Returns:
        Instructions to send, possibly empty for unsupported commands
    """
    if isinstance(command, OnOffCommand):
        return _on_off(command, device_category)
    elif isinstance(command, BrightnessCommand):
        value = _round_half_up(command.brightness / 100 * 1000)
        return [Instruction(code="bright_value_v2", value=value)]
    elif isinstance(command, ColorTemperatureCommand):
        span = KELVIN_MAX - KELVIN_MIN
        value = _round_half_up((command.temperature_k - KELVIN_MIN) / span * 1000)
        return [Instruction(code="temp_value_v2", value=value)]
    elif isinstance(command, ColorRGBCommand):
        hsv = rgb_to_hsv(command.r, command.g, command.b)
        return [
            Instruction(code="work_mode", value="colour"),
            Instruction(code="colour_data_v2", value=_hsv_json(hsv)),
        ]
    elif isinstance(command, ThermostatCommand):
        return _thermostat(command)
    elif isinstance(command, FanSpeedCommand):
        return [Instruction(code="fan", value=fan_level(command.speed_percent))]
    elif isinstance(command, TuyaACCommand):
        return [
            Instruction(code="mode", value=command.mode),
            Instruction(code="temp", value=command.temperature),
            Instruction(code="fan", value=command.fan),
        ]
    elif isinstance(command, TuyaLightCommand):
        return _tuya_light(command)
    else:
        logger.warning(f"Unknown command type: {getattr(command, 'type', type(command).__name__)}")
        return []
