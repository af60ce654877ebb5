"""
Sensor guards for scheduled actions.

Guards are advisory: if the sensor cannot be read the action runs anyway.
"""

import logging
import operator
from typing import TYPE_CHECKING

from hometimer.schemas import ActionCondition
from hometimer.services.tuya import normalize_reading

if TYPE_CHECKING:
    from hometimer.services.tuya import TuyaClient

logger = logging.getLogger(__name__)

OPERATORS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


class ConditionEvaluator:
    """
    Evaluates action conditions against live sensor readings.

    Uses the device status reader (normally the Tuya client) to fetch the
    sensor's current status.
    """

    def __init__(self, status_reader: "TuyaClient") -> None:
        self._reader = status_reader

    async def evaluate(self, condition: ActionCondition) -> bool:
        """
        Evaluate a condition.

        Args:
            condition: The condition to evaluate

        Returns:
            True if the condition is met or the sensor could not be read
        """
        try:
            status = await self._reader.get_device_status(condition.sensor_device_id)
        except Exception as e:
            logger.warning(f"Could not read sensor {condition.sensor_device_id}, executing anyway: {e}")
            return True

        value = normalize_reading(status or {}, condition.metric)
        if value is None:
            logger.info(f"Sensor {condition.metric} not available on {condition.sensor_device_id}, executing anyway")
            return True

        compare = OPERATORS.get(condition.operator)
        if compare is None:
            return True

        logger.info(f"Sensor {condition.metric}: {value} {condition.operator} {condition.value}")
        return compare(value, condition.value)
