"""Data model for the automation rule engine.

Rules, conditions and actions are plain dataclasses. Their JSON form (used
by rule files and MQTT management commands) keeps camelCase keys such as
``deviceId`` and ``cooldownMs``; ``from_dict``/``to_dict`` convert between
the two.
"""
import copy
from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Dict, List, Mapping, Optional


class ConditionType:
    """Condition type tags."""
    DEVICE_STATE = "device_state"
    SENSOR_VALUE = "sensor_value"
    TIME = "time"
    DEVICE_OFFLINE = "device_offline"
    COMPOSITE = "composite"


class Operator:
    """Comparison operators understood by the condition evaluator."""
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    CONTAINS = "contains"
    BETWEEN = "between"
    IN = "in"


class LogicalOperator:
    """How a condition combines with the next one in a chain."""
    AND = "AND"
    OR = "OR"


class ActionType:
    """Action type tags."""
    DEVICE_COMMAND = "device_command"
    NOTIFICATION = "notification"
    LOG = "log"
    DELAY = "delay"
    WEBHOOK = "webhook"


class InvalidRuleError(ValueError):
    """Raised when a rule dict cannot be turned into a Rule."""


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Condition:  # pylint: disable=too-many-instance-attributes
    """A single test against device telemetry, time or device presence.

    ``type`` and ``operator`` stay plain strings so that rules carrying
    unknown tags can still be loaded; the evaluator treats them as
    non-matching.
    """
    type: str
    operator: Optional[str] = None
    value: Any = None
    device_id: Optional[str] = None
    property: Optional[str] = None
    second_value: Any = None
    logical_operator: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Condition':
        """Build a condition from its JSON form."""
        return cls(
            type=data.get("type"),
            operator=data.get("operator"),
            value=data.get("value"),
            device_id=data.get("deviceId"),
            property=data.get("property"),
            second_value=data.get("secondValue"),
            logical_operator=data.get("logicalOperator"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON form of this condition."""
        return _drop_none({
            "type": self.type,
            "deviceId": self.device_id,
            "property": self.property,
            "operator": self.operator,
            "value": self.value,
            "secondValue": self.second_value,
            "logicalOperator": self.logical_operator,
        })


@dataclass
class Action:
    """Base class for the action variants handed to execution callbacks."""
    type: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON form of this action."""
        return {"type": self.type}


@dataclass
class DeviceCommandAction(Action):
    """Send a command to a device (or to a related device when unset)."""
    type: ClassVar[str] = ActionType.DEVICE_COMMAND
    command: Any = None
    device_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "type": self.type,
            "deviceId": self.device_id,
            "command": self.command,
        })


@dataclass
class NotificationAction(Action):
    """Raise a user-facing notification."""
    type: ClassVar[str] = ActionType.NOTIFICATION
    message: Optional[str] = None
    severity: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "type": self.type,
            "message": self.message,
            "severity": self.severity,
        })


@dataclass
class LogAction(Action):
    """Write a message to the automation log."""
    type: ClassVar[str] = ActionType.LOG
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"type": self.type, "message": self.message})


@dataclass
class DelayAction(Action):
    """Wait before running the remaining actions."""
    type: ClassVar[str] = ActionType.DELAY
    delay_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"type": self.type, "delayMs": self.delay_ms})


@dataclass
class WebhookAction(Action):
    """POST the firing details to an HTTP endpoint."""
    type: ClassVar[str] = ActionType.WEBHOOK
    webhook_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"type": self.type, "webhookUrl": self.webhook_url})


@dataclass
class UnknownAction(Action):
    """An action with a tag no executor understands; kept for round-trips."""
    tag: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


def action_from_dict(data: Mapping[str, Any]) -> Action:
    """Build the matching Action variant from its JSON form."""
    kind = data.get("type")
    if kind == ActionType.DEVICE_COMMAND:
        return DeviceCommandAction(command=data.get("command"), device_id=data.get("deviceId"))
    if kind == ActionType.NOTIFICATION:
        return NotificationAction(message=data.get("message"), severity=data.get("severity"))
    if kind == ActionType.LOG:
        return LogAction(message=data.get("message"))
    if kind == ActionType.DELAY:
        return DelayAction(delay_ms=data.get("delayMs"))
    if kind == ActionType.WEBHOOK:
        return WebhookAction(webhook_url=data.get("webhookUrl"))
    return UnknownAction(tag=kind, data=dict(data))


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidRuleError(f"{name} must be a number, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidRuleError(f"{name} must be a number, got {value!r}") from e


def _to_conditions(value: Any) -> List[Condition]:
    if not isinstance(value, list):
        raise InvalidRuleError(f"conditions must be a list, got {value!r}")
    conditions = []
    for item in value:
        if isinstance(item, Condition):
            conditions.append(item)
        elif isinstance(item, Mapping):
            conditions.append(Condition.from_dict(item))
        else:
            raise InvalidRuleError(f"Invalid condition: {item!r}")
    return conditions


def _to_actions(value: Any) -> List[Action]:
    if not isinstance(value, list):
        raise InvalidRuleError(f"actions must be a list, got {value!r}")
    actions = []
    for item in value:
        if isinstance(item, Action):
            actions.append(item)
        elif isinstance(item, Mapping):
            actions.append(action_from_dict(item))
        else:
            raise InvalidRuleError(f"Invalid action: {item!r}")
    return actions


@dataclass
class Rule:  # pylint: disable=too-many-instance-attributes
    """A prioritized automation pairing a condition chain with actions."""
    id: str
    name: str = ""
    description: str = ""
    enabled: bool = True
    priority: int = 0
    conditions: List[Condition] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)
    cooldown_ms: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Rule':
        """Build a rule from its JSON form.

        Raises:
            InvalidRuleError: if the dict has no ``id`` or a field has the
                wrong type
        """
        if not isinstance(data, Mapping) or not data.get("id"):
            raise InvalidRuleError(f"Rule without id: {data!r}")
        cooldown_ms = data.get("cooldownMs")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            description=data.get("description", ""),
            enabled=bool(data.get("enabled", True)),
            priority=_to_int(data.get("priority", 0), "priority"),
            conditions=_to_conditions(data.get("conditions", [])),
            actions=_to_actions(data.get("actions", [])),
            cooldown_ms=None if cooldown_ms is None else _to_int(cooldown_ms, "cooldownMs"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON form of this rule."""
        return _drop_none({
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "priority": self.priority,
            "cooldownMs": self.cooldown_ms,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
        })


RULE_FIELDS = frozenset(f.name for f in fields(Rule))


def convert_rule_field(name: str, value: Any) -> Any:
    """Convert a value for Rule field ``name`` to the type the field holds.

    Conditions and actions may be given in their JSON form.

    Raises:
        InvalidRuleError: if the value cannot be converted
    """
    if name == "priority":
        return _to_int(value, "priority")
    if name == "cooldown_ms":
        return None if value is None else _to_int(value, "cooldownMs")
    if name == "enabled":
        if not isinstance(value, bool):
            raise InvalidRuleError(f"enabled must be true or false, got {value!r}")
        return value
    if name == "conditions":
        return _to_conditions(value)
    if name == "actions":
        return _to_actions(value)
    if name in ("name", "description"):
        return "" if value is None else str(value)
    return value


def normalize_rule(rule: Rule) -> Rule:
    """Return a copy of ``rule`` with every field converted to its declared type."""
    changes = {f: convert_rule_field(f, getattr(rule, f)) for f in RULE_FIELDS if f != "id"}
    return replace(rule, **changes)


@dataclass
class DeviceData:  # pylint: disable=too-many-instance-attributes
    """Latest known telemetry of one device."""
    device_id: str
    device_type: str = "unknown"
    room: str = ""
    name: str = ""
    topic: str = ""
    value: Any = None
    timestamp: float = 0.0
    online: bool = True

    def as_mapping(self) -> Dict[str, Any]:
        """Return the record keyed the way condition property paths see it."""
        return {
            "deviceId": self.device_id,
            "deviceType": self.device_type,
            "room": self.room,
            "name": self.name,
            "topic": self.topic,
            "value": self.value,
            "timestamp": self.timestamp,
            "online": self.online,
        }

    def copy(self) -> 'DeviceData':
        """Return a deep copy so the payload cannot be shared."""
        return copy.deepcopy(self)


@dataclass
class RuleExecutionContext:
    """Everything a callback gets to know about one rule firing."""
    rule: Rule
    trigger_device: DeviceData
    all_devices: Mapping[str, DeviceData]
    timestamp: float
