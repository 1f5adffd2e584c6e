"""Tests for the Config module."""
import os
from unittest.mock import patch

from mqtt2rules.core.config import Config


class TestConfigDefaults:
    """Test default configuration values."""

    def test_defaults(self):
        """Test defaults with an empty environment."""
        with patch.dict(os.environ, {}, clear=True):
            config = Config()

        assert config.mqtt_host == "localhost"
        assert config.mqtt_port == "1883"
        assert config.mqtt_username == ""
        assert config.client_id == "control-center"
        assert config.topic_root == "home"
        assert config.enable_automation is True
        assert config.load_default_rules is True
        assert config.rules_file is None
        assert config.max_reentry_depth == 16
        assert config.status_interval == 30
        assert config.verbose is False

    def test_environment_overrides(self):
        """Test MQTT and automation settings are read from the environment."""
        env = {
            "MQTT_HOST": "broker.lan",
            "MQTT_PORT": "8883",
            "MQTT_USERNAME": "rules",
            "MQTT_PASSWORD": "secret",
            "AUTOMATION_ENABLED": "false",
            "RULES_FILE": "/etc/rules.json",
            "VERBOSE": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config()

        assert config.mqtt_host == "broker.lan"
        assert config.mqtt_port == "8883"
        assert config.mqtt_username == "rules"
        assert config.mqtt_password == "secret"
        assert config.enable_automation is False
        assert config.rules_file == "/etc/rules.json"
        assert config.verbose is True


class TestConfigFromArgs:
    """Test Config.from_args() method."""

    def test_from_args_with_defaults(self):
        """Test from_args with no arguments uses defaults."""
        with patch.dict(os.environ, {}, clear=True), patch("sys.argv", ["mqtt2rules"]):
            config = Config.from_args()

        assert config.mqtt_host == "localhost"
        assert config.enable_automation is True
        assert config.load_default_rules is True
        assert config.rules_file is None
        assert config.verbose is False

    def test_from_args_overrides(self):
        """Test command-line flags are applied."""
        argv = [
            "mqtt2rules",
            "--mqtt-host", "10.0.0.5",
            "--mqtt-port", "1884",
            "--client-id", "cc-2",
            "--rules-file", "rules.json",
            "--no-default-rules",
            "--disable-automation",
            "--status-interval", "5",
            "--max-reentry-depth", "4",
            "-v",
        ]
        with patch.dict(os.environ, {}, clear=True), patch("sys.argv", argv):
            config = Config.from_args()

        assert config.mqtt_host == "10.0.0.5"
        assert config.mqtt_port == "1884"
        assert config.client_id == "cc-2"
        assert config.rules_file == "rules.json"
        assert config.load_default_rules is False
        assert config.enable_automation is False
        assert config.status_interval == 5
        assert config.max_reentry_depth == 4
        assert config.verbose is True

    def test_automation_env_sets_flag_default(self):
        """Test AUTOMATION_ENABLED=false disables automation without a flag."""
        with patch.dict(os.environ, {"AUTOMATION_ENABLED": "false"}, clear=True), \
                patch("sys.argv", ["mqtt2rules"]):
            config = Config.from_args()

        assert config.enable_automation is False
