"""Notification bookkeeping for the control center."""
import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from mqtt2rules.core.constants import ControlCenterTopics, Severity, TopicStructure, build_topic
from mqtt2rules.core.event_bus import EventBus, EventType
from mqtt2rules.core.utils import iso_timestamp, to_json


@dataclass
class Notification:
    """A user-facing message raised by a rule or by the control center."""
    message: str
    severity: str = Severity.MEDIUM
    device_id: Optional[str] = None
    rule_id: Optional[str] = None
    id: str = field(default_factory=lambda: f"notif_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}")
    timestamp: float = field(default_factory=time.time)
    acknowledged: bool = False

    def to_dict(self) -> dict:
        """Return the JSON form published over MQTT."""
        data = asdict(self)
        data["timestamp"] = iso_timestamp(self.timestamp)
        return data


class NotificationCenter:
    """Keeps the most recent notifications, newest first, and publishes new ones."""

    def __init__(self, mqtt_client, topic_root: str, event_bus: EventBus, limit: int = 100):
        """Initialize the notification center.

        Args:
            mqtt_client: Client used to publish notifications (may be None)
            topic_root: Root of the topic tree (e.g. "home")
            event_bus: Bus receiving NOTIFICATION events
            limit: Maximum notifications kept
        """
        self.mqtt = mqtt_client
        self.topic = build_topic(
            topic_root, TopicStructure.CONTROL_CENTER, ControlCenterTopics.NOTIFICATION
        )
        self.event_bus = event_bus
        self.limit = limit
        self._notifications: List[Notification] = []
        self._lock = threading.Lock()

    def add(
        self,
        message: str,
        severity: str = Severity.MEDIUM,
        device_id: Optional[str] = None,
        rule_id: Optional[str] = None
    ) -> Notification:
        """Record a notification and publish it."""
        notification = Notification(
            message=message, severity=severity, device_id=device_id, rule_id=rule_id
        )
        with self._lock:
            self._notifications.insert(0, notification)
            del self._notifications[self.limit:]

        logging.info("Notification [%s]: %s", severity, message)
        self.event_bus.publish(EventType.NOTIFICATION, notification.to_dict())
        if self.mqtt is not None:
            self.mqtt.publish(self.topic, to_json(notification.to_dict()), qos=1)
        return notification

    def acknowledge(self, notification_id: str) -> bool:
        """Mark a notification as acknowledged. Returns False if unknown."""
        with self._lock:
            for notification in self._notifications:
                if notification.id == notification_id:
                    notification.acknowledged = True
                    logging.info("Acknowledged notification: %s", notification.message)
                    return True
        return False

    def all(self) -> List[Notification]:
        """Get all kept notifications, newest first."""
        with self._lock:
            return list(self._notifications)

    def unacknowledged(self) -> List[Notification]:
        """Get notifications nobody has acknowledged yet."""
        with self._lock:
            return [n for n in self._notifications if not n.acknowledged]

    def summary(self) -> dict:
        """Return total and unacknowledged counts."""
        with self._lock:
            return {
                "total": len(self._notifications),
                "unacknowledged": sum(1 for n in self._notifications if not n.acknowledged),
            }
