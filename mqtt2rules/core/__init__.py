"""Core package for mqtt2rules.

This package contains the core components including configuration,
constants, the event bus, utilities, and the main daemon class.
"""
from mqtt2rules.core.config import Config
from mqtt2rules.core.constants import (
    ControlCenterTopics,
    ControlCommand,
    Severity,
    TermColors,
    TopicStructure,
    build_topic,
)
from mqtt2rules.core.event_bus import EventBus, EventType, Event, event_bus
from mqtt2rules.core.utils import iso_timestamp, load_json_file, to_json

__all__ = [
    "build_topic",
    "Config",
    "ControlCenterTopics",
    "ControlCommand",
    "Event",
    "event_bus",
    "EventBus",
    "EventType",
    "iso_timestamp",
    "load_json_file",
    "Severity",
    "TermColors",
    "TopicStructure",
    "to_json",
]
