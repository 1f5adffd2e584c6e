"""In-process events emitted by the rule engine and the control center."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging
import time


class EventType(Enum):
    """Kinds of engine and control center events."""
    RULE_EXECUTED = "rule_executed"
    CALLBACK_FAILED = "callback_failed"
    DEVICE_UPDATED = "device_updated"
    DEVICE_OFFLINE = "device_offline"
    NOTIFICATION = "notification"


@dataclass
class Event:
    """One emitted event."""
    type: EventType
    data: dict
    timestamp: float = field(default_factory=time.time)


class EventBus:
    """Keeps the last ``max_events`` events and fans them out to subscribers."""

    def __init__(self, max_events: int = 1000):
        self._events: List[Event] = []
        self._max_events = max_events
        self._subscribers: Dict[EventType, List[Callable[[Event], None]]] = {}

    def publish(self, event_type: EventType, data: dict) -> None:
        """Record an event and hand it to the subscribers of its type."""
        event = Event(type=event_type, data=data)
        self._events.append(event)
        del self._events[:-self._max_events]

        for callback in self._subscribers.get(event_type, []):
            try:
                callback(event)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logging.error("Event subscriber for %s failed: %s", event_type.value, e)

    def subscribe(self, event_type: EventType, callback: Callable[[Event], None]) -> None:
        """Call ``callback(event)`` for every future event of ``event_type``."""
        self._subscribers.setdefault(event_type, []).append(callback)

    def get_events(self, event_type: Optional[EventType] = None) -> List[Event]:
        """Return the kept events, oldest first, optionally of one type only."""
        return [e for e in self._events if event_type is None or e.type == event_type]

    def event_count(self, event_type: Optional[EventType] = None) -> int:
        """Count the kept events, optionally of one type only."""
        return len(self.get_events(event_type))


# Shared by the daemon's engine and control center
event_bus = EventBus()
