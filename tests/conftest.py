"""Shared pytest fixtures for mqtt2rules tests."""
import json
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from mqtt2rules.core.config import Config
from mqtt2rules.core.event_bus import EventBus
from mqtt2rules.rules.engine import RuleEngine
from mqtt2rules.rules.models import DeviceData


class FakeClock:
    """Controllable clock returning epoch seconds."""

    def __init__(self, start: float):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        """Move the clock forward by ``ms`` milliseconds."""
        self.now += ms / 1000.0

    def set_local(self, hour: int, minute: int = 0, day: int = 15) -> None:
        """Jump to a local wall-clock time in June 2025 (15th is a Sunday)."""
        self.now = datetime(2025, 6, day, hour, minute).timestamp()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def config():
    """Create a default Config instance for testing."""
    cfg = Config()
    cfg.mqtt_host = "localhost"
    cfg.mqtt_port = "1883"
    cfg.mqtt_username = ""
    cfg.mqtt_password = ""
    cfg.enable_automation = True
    cfg.rules_file = None
    cfg.verbose = False
    return cfg


@pytest.fixture
def clock():
    """A fake clock set to midday local time."""
    fake = FakeClock(0.0)
    fake.set_local(12)
    return fake


@pytest.fixture
def bus():
    """An isolated event bus."""
    return EventBus()


@pytest.fixture
def engine(clock, bus):
    """A rule engine without starter rules, driven by the fake clock."""
    return RuleEngine(load_defaults=False, clock=clock, event_bus=bus)


@pytest.fixture
def make_device():
    """Factory for DeviceData records."""
    def _make(device_id="sensor-1", value=None, device_type="sensor", room="living", online=True):
        return DeviceData(
            device_id=device_id,
            device_type=device_type,
            room=room,
            name=device_id,
            topic=f"home/{room}/{device_id}/state",
            value=value,
            online=online,
        )
    return _make


@pytest.fixture
def mock_mqtt():
    """A MagicMock standing in for MqttClient; publish always succeeds."""
    client = MagicMock()
    client.publish.return_value = True
    client.is_connected.return_value = True
    return client


@pytest.fixture
def published():
    """Returns a helper decoding the JSON payloads a mock client published to a topic."""
    def _published(mock_client, topic: str) -> list:
        return [
            json.loads(c.args[1])
            for c in mock_client.publish.call_args_list
            if c.args[0] == topic
        ]
    return _published
