"""Tests for the NotificationCenter."""
import pytest

from mqtt2rules.control.notifications import Notification, NotificationCenter
from mqtt2rules.core.event_bus import EventType

NOTIFICATION_TOPIC = "home/control-center/notification"


@pytest.fixture
def center(mock_mqtt, bus):
    """A notification center publishing to a mock client."""
    return NotificationCenter(mock_mqtt, "home", bus, limit=3)


class TestNotification:
    """Tests for the Notification record."""

    def test_defaults(self):
        """Test generated id, severity and acknowledgement defaults."""
        notification = Notification(message="hi")
        assert notification.id.startswith("notif_")
        assert notification.severity == "medium"
        assert notification.acknowledged is False

    def test_ids_are_unique(self):
        """Test two notifications never share an id."""
        assert Notification(message="a").id != Notification(message="b").id

    def test_to_dict(self):
        """Test the JSON form carries an ISO timestamp."""
        data = Notification(message="hi", rule_id="r", timestamp=0.0).to_dict()
        assert data["message"] == "hi"
        assert data["rule_id"] == "r"
        assert isinstance(data["timestamp"], str)
        assert "T" in data["timestamp"]


class TestNotificationCenter:
    """Tests for recording and publishing notifications."""

    def test_add_publishes(self, center, mock_mqtt, bus, published):
        """Test a new notification is published over MQTT and on the bus."""
        notification = center.add("Door open", severity="high", device_id="door", rule_id="r")

        payloads = published(mock_mqtt, NOTIFICATION_TOPIC)
        assert payloads[0]["id"] == notification.id
        assert payloads[0]["severity"] == "high"
        assert mock_mqtt.publish.call_args.kwargs["qos"] == 1
        assert bus.get_events(EventType.NOTIFICATION)[0].data["message"] == "Door open"

    def test_newest_first_and_capped(self, center):
        """Test notifications are kept newest first up to the limit."""
        for i in range(5):
            center.add(f"n{i}")

        assert [n.message for n in center.all()] == ["n4", "n3", "n2"]

    def test_acknowledge(self, center):
        """Test acknowledging a notification."""
        first = center.add("first")
        center.add("second")

        assert center.acknowledge(first.id) is True
        assert center.acknowledge("nope") is False
        assert [n.message for n in center.unacknowledged()] == ["second"]
        assert center.summary() == {"total": 2, "unacknowledged": 1}

    def test_without_mqtt(self, bus):
        """Test notifications are still recorded without a client."""
        center = NotificationCenter(None, "home", bus)
        center.add("offline mode")
        assert center.summary()["total"] == 1
