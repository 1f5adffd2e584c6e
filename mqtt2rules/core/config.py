"""Configuration module for mqtt2rules.

This module provides the Config dataclass which holds all configuration
settings for the daemon, including MQTT connection details, automation
switches and the optional rules file.
"""
import argparse
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present (for broker credentials etc.)
load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes")


@dataclass
class Config:  # pylint: disable=too-many-instance-attributes
    """Configuration settings for the mqtt2rules daemon."""

    mqtt_host: str = field(default_factory=lambda: os.environ.get("MQTT_HOST", "localhost"))
    mqtt_port: str = field(default_factory=lambda: os.environ.get("MQTT_PORT", "1883"))
    mqtt_username: str = field(default_factory=lambda: os.environ.get("MQTT_USERNAME", ""))
    mqtt_password: str = field(default_factory=lambda: os.environ.get("MQTT_PASSWORD", ""))
    client_id: str = "control-center"
    topic_root: str = "home"

    # Automation
    enable_automation: bool = field(
        default_factory=lambda: os.environ.get("AUTOMATION_ENABLED", "").lower() != "false"
    )
    enable_logging: bool = True  # Write "log" actions to the log as well as MQTT
    load_default_rules: bool = True
    rules_file: Optional[str] = field(
        default_factory=lambda: os.environ.get("RULES_FILE") or None
    )
    max_reentry_depth: int = 16

    # Control center
    status_interval: int = 30  # Seconds between status publishes
    max_notifications: int = 100
    webhook_timeout: float = 10.0

    verbose: bool = field(default_factory=lambda: _env_flag("VERBOSE", False))

    @classmethod
    def from_args(cls) -> 'Config':
        """Parse command-line arguments and return a Config instance."""
        parser = argparse.ArgumentParser(
            description="mqtt2rules - MQTT smart home automation rule engine"
        )

        parser.add_argument(
            "--mqtt-host",
            default=os.environ.get("MQTT_HOST", "localhost"),
            help="MQTT Broker Host"
        )
        parser.add_argument(
            "--mqtt-port",
            default=os.environ.get("MQTT_PORT", "1883"),
            help="MQTT Broker Port"
        )
        parser.add_argument(
            "--mqtt-username",
            default=os.environ.get("MQTT_USERNAME", ""),
            help="MQTT username (env: MQTT_USERNAME)"
        )
        parser.add_argument(
            "--mqtt-password",
            default=os.environ.get("MQTT_PASSWORD", ""),
            help="MQTT password (env: MQTT_PASSWORD)"
        )
        parser.add_argument(
            "--client-id",
            default="control-center",
            help="MQTT client id"
        )
        parser.add_argument(
            "--rules-file",
            metavar="FILE",
            default=os.environ.get("RULES_FILE", ""),
            help="JSON file with additional rules to load at start-up (env: RULES_FILE)"
        )
        parser.add_argument(
            "--no-default-rules",
            action="store_true",
            help="Do not seed the starter automation rules"
        )
        parser.add_argument(
            "--disable-automation",
            action="store_true",
            default=os.environ.get("AUTOMATION_ENABLED", "").lower() == "false",
            help="Track devices without evaluating rules (env: AUTOMATION_ENABLED=false)"
        )
        parser.add_argument(
            "--status-interval",
            type=int,
            default=30,
            metavar="SECONDS",
            help="Seconds between control center status publishes"
        )
        parser.add_argument(
            "--max-reentry-depth",
            type=int,
            default=16,
            help="Nested rule evaluation passes allowed when actions re-trigger rules"
        )
        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            default=_env_flag("VERBOSE", False),
            help="Enable verbose logging"
        )

        args = parser.parse_args()

        c = cls()
        c.mqtt_host = args.mqtt_host
        c.mqtt_port = args.mqtt_port
        c.mqtt_username = args.mqtt_username
        c.mqtt_password = args.mqtt_password
        c.client_id = args.client_id
        c.rules_file = args.rules_file or None
        c.load_default_rules = not args.no_default_rules
        c.enable_automation = not args.disable_automation
        c.status_interval = args.status_interval
        c.max_reentry_depth = args.max_reentry_depth
        c.verbose = args.verbose
        return c
