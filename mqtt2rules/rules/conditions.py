"""Condition evaluation for automation rules.

A condition compares a value pulled from device telemetry (or the clock)
against an expected value. Conditions are chained left to right; the
logical operator stored on a condition decides how the *next* condition
is folded into the running result.

Evaluation never raises. Unknown condition types, unknown operators and
malformed condition data all count as "not satisfied".
"""
import json
import logging
import math
import time
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from mqtt2rules.rules.extractor import UNDEFINED, get_property_value
from mqtt2rules.rules.models import (
    Condition,
    ConditionType,
    DeviceData,
    LogicalOperator,
    Operator,
)

DeviceLookup = Callable[[str], Optional[DeviceData]]


def _to_number(value: Any) -> float:
    """Coerce a value to a float; anything non-numeric becomes NaN."""
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, (bool, int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _to_string(value: Any) -> str:
    """Coerce a value to the string form used by ``contains``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_to_string(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


def _strict_equals(actual: Any, expected: Any) -> bool:
    """Equality without coercion: 1 != "1" and True != 1."""
    if actual is UNDEFINED or expected is UNDEFINED:
        return actual is expected
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    if type(actual) is not type(expected):
        return False
    return actual == expected


def compare_values(
    actual: Any,
    operator: Optional[str],
    expected: Any,
    second_expected: Any = None
) -> bool:
    """Apply a comparison operator.

    Args:
        actual: Value extracted from telemetry (may be UNDEFINED)
        operator: One of the Operator constants
        expected: Value from the condition
        second_expected: Upper bound for ``between``

    Returns:
        True if the comparison holds. UNDEFINED only ever satisfies ``!=``.
    """
    if operator == Operator.EQ:
        return _strict_equals(actual, expected)
    if operator == Operator.NE:
        return not _strict_equals(actual, expected)
    if actual is UNDEFINED:
        return False

    if operator == Operator.GT:
        return _to_number(actual) > _to_number(expected)
    if operator == Operator.LT:
        return _to_number(actual) < _to_number(expected)
    if operator == Operator.GE:
        return _to_number(actual) >= _to_number(expected)
    if operator == Operator.LE:
        return _to_number(actual) <= _to_number(expected)
    if operator == Operator.CONTAINS:
        return _to_string(expected) in _to_string(actual)
    if operator == Operator.BETWEEN:
        number = _to_number(actual)
        lower = _to_number(UNDEFINED if expected is None else expected)
        upper = _to_number(UNDEFINED if second_expected is None else second_expected)
        return lower <= number <= upper
    if operator == Operator.IN:
        if not isinstance(expected, (list, tuple)):
            return False
        return any(_strict_equals(actual, item) for item in expected)
    return False


def parse_clock_time(value: Any) -> Optional[int]:
    """Turn "HH:MM" into minutes since midnight, or None if malformed."""
    if not isinstance(value, str) or ":" not in value:
        return None
    hour_text, _, minute_text = value.partition(":")
    try:
        hour, minute = int(hour_text), int(minute_text)
    except ValueError:
        return None
    return hour * 60 + minute


class ConditionEvaluator:
    """Evaluates conditions and condition chains against the device table."""

    def __init__(self, lookup_device: DeviceLookup, clock: Callable[[], float] = time.time):
        """Initialize the evaluator.

        Args:
            lookup_device: Returns the stored DeviceData for an id, or None
            clock: Source of the current epoch time in seconds
        """
        self._lookup_device = lookup_device
        self._clock = clock
        self._handlers = {
            ConditionType.DEVICE_STATE: self.evaluate_device_state,
            ConditionType.SENSOR_VALUE: self.evaluate_sensor_value,
            ConditionType.TIME: self.evaluate_time,
            ConditionType.DEVICE_OFFLINE: self.evaluate_device_offline,
            ConditionType.COMPOSITE: self.evaluate_composite,
        }

    def evaluate_chain(self, conditions: Sequence[Condition], trigger_device: DeviceData) -> bool:
        """Left-fold a condition chain.

        The logical operator of condition i-1 combines the running result
        with condition i; AND is the default. An empty chain never matches.
        """
        if not conditions:
            return False

        result = self.evaluate(conditions[0], trigger_device)
        for previous, condition in zip(conditions, conditions[1:]):
            current = self.evaluate(condition, trigger_device)
            if getattr(previous, "logical_operator", None) == LogicalOperator.OR:
                result = result or current
            else:
                result = result and current
        return result

    def evaluate(self, condition: Condition, trigger_device: DeviceData) -> bool:
        """Evaluate one condition; malformed data counts as not satisfied."""
        handler = self._handlers.get(getattr(condition, "type", None))
        if handler is None:
            logging.debug("Unknown condition type: %r", getattr(condition, "type", None))
            return False
        try:
            return bool(handler(condition, trigger_device))
        except Exception as e:  # pylint: disable=broad-exception-caught
            logging.debug("Condition %r could not be evaluated: %s", condition, e)
            return False

    def evaluate_device_state(self, condition: Condition, trigger_device: DeviceData) -> bool:
        """Compare a property of a stored device (default: the trigger device)."""
        device = self._lookup_device(condition.device_id or trigger_device.device_id)
        if device is None:
            return False
        return self._compare(condition, device)

    def evaluate_sensor_value(self, condition: Condition, trigger_device: DeviceData) -> bool:
        """Compare a property of the trigger device or of another known device."""
        if condition.device_id and condition.device_id != trigger_device.device_id:
            device = self._lookup_device(condition.device_id)
            if device is None:
                return False
            return self._compare(condition, device)
        return self._compare(condition, trigger_device)

    def evaluate_time(self, condition: Condition, trigger_device: Optional[DeviceData] = None) -> bool:  # pylint: disable=unused-argument
        """Compare the local clock by ``hour``, ``time`` ("HH:MM") or ``dayOfWeek``."""
        now = datetime.fromtimestamp(self._clock())

        if condition.property == "hour":
            return compare_values(
                now.hour, condition.operator, condition.value, condition.second_value
            )
        if condition.property == "time":
            target = parse_clock_time(condition.value)
            if target is None:
                return False
            upper = condition.second_value
            if isinstance(upper, str):
                upper = parse_clock_time(upper)
            return compare_values(
                now.hour * 60 + now.minute, condition.operator, target, upper
            )
        if condition.property == "dayOfWeek":
            # 0 = Sunday
            return compare_values(
                (now.weekday() + 1) % 7, condition.operator,
                condition.value, condition.second_value
            )
        return False

    def evaluate_device_offline(self, condition: Condition, trigger_device: Optional[DeviceData] = None) -> bool:
        """True when the device is unknown or reported offline."""
        device_id = condition.device_id
        if device_id is None and trigger_device is not None:
            device_id = trigger_device.device_id
        device = self._lookup_device(device_id) if device_id is not None else None
        if device is None:
            return True
        return not device.online

    def evaluate_composite(self, condition: Condition, trigger_device: DeviceData) -> bool:  # pylint: disable=unused-argument
        """Multi-device combinations are not supported yet; never matches."""
        return False

    @staticmethod
    def _compare(condition: Condition, device: DeviceData) -> bool:
        if condition.property:
            actual = get_property_value(device.as_mapping(), condition.property)
        else:
            actual = device.value
        return compare_values(actual, condition.operator, condition.value, condition.second_value)
