"""Tests for the rule data model."""
import pytest

from mqtt2rules.rules.models import (
    Condition,
    DelayAction,
    DeviceCommandAction,
    DeviceData,
    InvalidRuleError,
    LogAction,
    NotificationAction,
    Rule,
    UnknownAction,
    WebhookAction,
    action_from_dict,
)


class TestRuleFromDict:
    """Tests for building rules from their JSON form."""

    def test_full_rule(self):
        """Test every field of a rule dict is picked up."""
        rule = Rule.from_dict({
            "id": "temp-alert",
            "name": "Temperature alert",
            "description": "Too hot",
            "enabled": False,
            "priority": 200,
            "cooldownMs": 300000,
            "conditions": [{
                "type": "sensor_value",
                "deviceId": "thermo",
                "property": "value.temperature",
                "operator": ">",
                "value": 30,
                "logicalOperator": "AND",
            }],
            "actions": [{"type": "notification", "message": "Hot", "severity": "high"}],
        })

        assert rule.id == "temp-alert"
        assert rule.enabled is False
        assert rule.priority == 200
        assert rule.cooldown_ms == 300000
        assert rule.conditions == [Condition(
            type="sensor_value", device_id="thermo", property="value.temperature",
            operator=">", value=30, logical_operator="AND",
        )]
        assert rule.actions == [NotificationAction(message="Hot", severity="high")]

    def test_defaults(self):
        """Test omitted fields take their defaults."""
        rule = Rule.from_dict({"id": "bare"})

        assert rule.enabled is True
        assert rule.priority == 0
        assert rule.conditions == []
        assert rule.actions == []
        assert rule.cooldown_ms is None

    @pytest.mark.parametrize("data", [{}, {"name": "no id"}, {"id": ""}, None, ["id"]])
    def test_missing_id_is_rejected(self, data):
        """Test rules without an id raise InvalidRuleError."""
        with pytest.raises(InvalidRuleError):
            Rule.from_dict(data)

    def test_numeric_strings_are_converted(self):
        """Test priority and cooldownMs given as strings are stored as ints."""
        rule = Rule.from_dict({"id": "r", "priority": "7", "cooldownMs": "5000"})

        assert rule.priority == 7
        assert rule.cooldown_ms == 5000

    @pytest.mark.parametrize("data", [
        {"id": "r", "cooldownMs": "soon"},
        {"id": "r", "priority": "high"},
        {"id": "r", "priority": True},
        {"id": "r", "conditions": "value.t > 30"},
        {"id": "r", "actions": [42]},
    ])
    def test_wrong_field_types_are_rejected(self, data):
        """Test fields that cannot be converted raise InvalidRuleError."""
        with pytest.raises(InvalidRuleError):
            Rule.from_dict(data)

    def test_to_dict_uses_json_keys(self):
        """Test to_dict writes camelCase keys and drops unset fields."""
        rule = Rule(
            id="r",
            name="R",
            cooldown_ms=1000,
            conditions=[Condition(type="time", property="hour", operator=">=", value=22)],
            actions=[DelayAction(delay_ms=500), DeviceCommandAction(command="turnOff")],
        )

        data = rule.to_dict()

        assert data["cooldownMs"] == 1000
        assert data["conditions"] == [
            {"type": "time", "property": "hour", "operator": ">=", "value": 22}
        ]
        assert data["actions"] == [
            {"type": "delay", "delayMs": 500},
            {"type": "device_command", "command": "turnOff"},
        ]
        assert Rule.from_dict(data) == rule


class TestActionFromDict:
    """Tests for action_from_dict."""

    @pytest.mark.parametrize("data,expected", [
        ({"type": "device_command", "deviceId": "lamp", "command": {"command": "turnOn"}},
         DeviceCommandAction(device_id="lamp", command={"command": "turnOn"})),
        ({"type": "notification", "message": "m", "severity": "low"},
         NotificationAction(message="m", severity="low")),
        ({"type": "log", "message": "hello"}, LogAction(message="hello")),
        ({"type": "delay", "delayMs": 100}, DelayAction(delay_ms=100)),
        ({"type": "webhook", "webhookUrl": "http://x"}, WebhookAction(webhook_url="http://x")),
    ])
    def test_known_types(self, data, expected):
        """Test each action type maps to its variant."""
        assert action_from_dict(data) == expected

    def test_unknown_type_is_kept(self):
        """Test unknown action types survive as UnknownAction."""
        action = action_from_dict({"type": "sms", "to": "123"})

        assert isinstance(action, UnknownAction)
        assert action.tag == "sms"
        assert action.to_dict() == {"type": "sms", "to": "123"}


class TestDeviceData:
    """Tests for DeviceData."""

    def test_as_mapping(self):
        """Test the record mapping exposes camelCase keys."""
        device = DeviceData(device_id="d", device_type="light", room="hall", value={"on": True})
        mapping = device.as_mapping()

        assert mapping["deviceId"] == "d"
        assert mapping["deviceType"] == "light"
        assert mapping["value"] == {"on": True}
        assert mapping["online"] is True

    def test_copy_is_deep(self):
        """Test copy() does not share the payload."""
        device = DeviceData(device_id="d", value={"nested": [1]})
        clone = device.copy()
        clone.value["nested"].append(2)

        assert device.value == {"nested": [1]}
