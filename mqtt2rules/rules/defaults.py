"""Starter automation rules seeded into a new engine."""
from typing import List

from mqtt2rules.rules.models import (
    Condition,
    DelayAction,
    DeviceCommandAction,
    LogAction,
    NotificationAction,
    Rule,
)


def default_rules() -> List[Rule]:
    """Build a fresh copy of the starter rule library."""
    return [
        Rule(
            id="motion-lights-on",
            name="Turn on lights when motion detected",
            description="Automatically turn on lights in a room when motion is detected",
            priority=100,
            cooldown_ms=5000,
            conditions=[
                Condition(type="sensor_value", property="value.detected", operator="=", value=True),
            ],
            actions=[DeviceCommandAction(command={"command": "turnOn"})],
        ),
        Rule(
            id="motion-lights-off",
            name="Turn off lights when no motion",
            description="Turn off lights after motion clears and some time has passed",
            priority=90,
            cooldown_ms=30000,
            conditions=[
                Condition(type="sensor_value", property="value.detected", operator="=", value=False),
            ],
            actions=[
                DelayAction(delay_ms=60000),
                DeviceCommandAction(command={"command": "turnOff"}),
            ],
        ),
        Rule(
            id="temperature-alert-high",
            name="High temperature alert",
            description="Alert when temperature exceeds threshold",
            priority=200,
            cooldown_ms=300000,
            conditions=[
                Condition(type="sensor_value", property="value.value", operator=">", value=30),
            ],
            actions=[NotificationAction(message="High temperature detected", severity="high")],
        ),
        Rule(
            id="door-open-night-alert",
            name="Door opened at night alert",
            description="Alert when doors are opened during night hours",
            priority=300,
            cooldown_ms=60000,
            # (hour >= 22 OR hour < 6) AND state == open
            conditions=[
                Condition(type="time", property="hour", operator=">=", value=22,
                          logical_operator="OR"),
                Condition(type="time", property="hour", operator="<", value=6,
                          logical_operator="AND"),
                Condition(type="sensor_value", property="value.state", operator="=",
                          value="open"),
            ],
            actions=[
                NotificationAction(message="Door opened during night hours", severity="high"),
                LogAction(message="Security alert: Night door opening"),
            ],
        ),
        Rule(
            id="energy-saving-lights",
            name="Energy saving mode",
            description="Dim lights when energy consumption is high",
            priority=50,
            cooldown_ms=120000,
            conditions=[
                Condition(type="sensor_value", property="value.instantPower", operator=">",
                          value=3000),
            ],
            actions=[
                DeviceCommandAction(command={"command": "setBrightness", "brightness": 50}),
                NotificationAction(message="Energy saving mode activated - lights dimmed",
                                   severity="low"),
            ],
        ),
        Rule(
            id="welcome-home",
            name="Welcome home automation",
            description="Turn on lights when front door opens during evening",
            priority=150,
            cooldown_ms=300000,
            conditions=[
                Condition(type="device_state", property="value.state", operator="=",
                          value="open", logical_operator="AND"),
                Condition(type="time", property="hour", operator="between", value=17,
                          second_value=22),
            ],
            actions=[
                DeviceCommandAction(command={"command": "turnOn"}),
                DeviceCommandAction(command={"command": "preset", "preset": "bright"}),
                NotificationAction(message="Welcome home! Lights turned on.", severity="low"),
            ],
        ),
    ]
