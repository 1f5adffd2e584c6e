"""mqtt2rules - MQTT smart home automation rule engine.

This package evaluates prioritized, condition-based automation rules
against a stream of device telemetry received over MQTT and executes the
matched actions.

Subpackages:
- core: Configuration, event bus, utilities, and main daemon
- mqtt: MQTT client
- rules: Rule model, condition evaluation, cooldowns, and the rule engine
- control: Control center, action execution, and notifications
"""

from mqtt2rules.core.config import Config
from mqtt2rules.core.event_bus import event_bus, EventBus, EventType, Event
from mqtt2rules.rules.engine import RuleEngine

__version__ = "0.1"

__all__ = [
    "Config",
    "event_bus",
    "EventBus",
    "EventType",
    "Event",
    "RuleEngine",
    "__version__",
]
