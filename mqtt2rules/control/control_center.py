"""Control center: bridges MQTT traffic and the rule engine.

Inbound MQTT messages are decoded into device telemetry, offline
transitions or management commands. Rule firings are executed by the
ActionExecutor, and engine/notification state is published back under
home/control-center/.
"""
import json
import logging
import time
from datetime import datetime
from typing import Any, List, Optional

from mqtt2rules.core.config import Config
from mqtt2rules.core.constants import (
    ControlCenterTopics,
    ControlCommand,
    Severity,
    TopicStructure,
    build_topic,
)
from mqtt2rules.core.event_bus import EventBus
from mqtt2rules.core.event_bus import event_bus as global_event_bus
from mqtt2rules.core.utils import iso_timestamp, to_json
from mqtt2rules.control.actions import ActionExecutor
from mqtt2rules.control.notifications import NotificationCenter
from mqtt2rules.rules.engine import RuleEngine
from mqtt2rules.rules.models import DeviceData, InvalidRuleError, Rule


def _parse_timestamp(value: Any) -> float:
    """Accept epoch seconds, epoch milliseconds or an ISO string; default to now."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Millisecond epochs are far beyond any plausible second epoch
        return value / 1000.0 if value > 1e11 else float(value)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
        except ValueError:
            pass
    return time.time()


class ControlCenter:  # pylint: disable=too-many-instance-attributes
    """Feeds MQTT telemetry into the rule engine and executes its rule firings."""

    def __init__(
        self,
        config: Config,
        mqtt_client=None,
        rule_engine: Optional[RuleEngine] = None,
        event_bus: Optional[EventBus] = None,
        executor: Optional[ActionExecutor] = None
    ):
        """Initialize the control center.

        Args:
            config: Application configuration
            mqtt_client: Client for publishing (may be None, e.g. in tests)
            rule_engine: Engine to drive (a new one is created if omitted)
            event_bus: Bus for notifications (defaults to the global bus)
            executor: Action executor (a new one is created if omitted)
        """
        self.config = config
        self.mqtt = mqtt_client
        self.event_bus = event_bus if event_bus is not None else global_event_bus
        self.rule_engine = rule_engine or RuleEngine(
            load_defaults=config.load_default_rules,
            event_bus=self.event_bus,
            max_reentry_depth=config.max_reentry_depth,
        )
        self.notifications = NotificationCenter(
            mqtt_client, config.topic_root, self.event_bus, limit=config.max_notifications
        )
        self.executor = executor or ActionExecutor(config, mqtt_client, self.notifications)
        self.automation_enabled = config.enable_automation

        self.rule_engine.on_rule_execution(self.executor.submit)

    # --- Topics ----------------------------------------------------------

    def _cc_topic(self, name: str) -> str:
        return build_topic(self.config.topic_root, TopicStructure.CONTROL_CENTER, name)

    @property
    def status_topic(self) -> str:
        """Retained control center status topic."""
        return self._cc_topic(ControlCenterTopics.STATUS)

    def subscription_topics(self) -> List[str]:
        """Topics the control center needs to receive."""
        root = self.config.topic_root
        single = TopicStructure.WILDCARD_SINGLE
        return [
            build_topic(root, single, single, single),
            build_topic(root, TopicStructure.STATUS, single),
            self._cc_topic(ControlCenterTopics.COMMAND),
        ]

    def offline_status_payload(self) -> str:
        """Payload announcing that the control center is offline."""
        return to_json({"online": False, "timestamp": iso_timestamp(time.time())})

    # --- Inbound messages ------------------------------------------------

    def handle_message(self, topic: str, payload: str) -> None:
        """Route one inbound MQTT message."""
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logging.debug("Dropping non-JSON message on %s: %s", topic, e)
            return
        if not isinstance(data, dict):
            logging.debug("Dropping non-object message on %s", topic)
            return

        parts = topic.split(TopicStructure.SEPARATOR)
        if parts[0] != self.config.topic_root or len(parts) < 3:
            return

        if parts[1] == TopicStructure.STATUS:
            self.handle_device_status(parts[2], data)
        elif parts[1] == TopicStructure.CONTROL_CENTER:
            if parts[2] == ControlCenterTopics.COMMAND:
                self.handle_command(data)
        elif parts[1] == TopicStructure.COMMAND:
            return
        elif len(parts) >= 4:
            self.handle_device_data(topic, parts, data)

    def handle_device_data(self, topic: str, parts: List[str], data: dict) -> DeviceData:
        """Turn a home/<room>/<device>/<metric> message into DeviceData."""
        device = DeviceData(
            device_id=data.get("deviceId") or parts[2],
            device_type=data.get("deviceType") or "unknown",
            room=parts[1],
            name=data.get("name") or parts[2],
            topic=topic,
            value=data["value"] if data.get("value") is not None else data,
            timestamp=_parse_timestamp(data.get("timestamp")),
            online=True,
        )

        if self.automation_enabled:
            self.rule_engine.update_device_data(device)
        return device

    def handle_device_status(self, device_id: str, data: dict) -> None:
        """React to home/status/<device> messages."""
        if data.get("online") is False:
            self.rule_engine.mark_device_offline(device_id)
            self.notifications.add(
                f"Device {device_id} went offline",
                severity=Severity.MEDIUM,
                device_id=device_id,
            )

    def handle_command(self, data: dict) -> None:  # pylint: disable=too-many-branches
        """Execute a management command received over MQTT."""
        command = data.get("command")
        logging.info("Control center received command: %s", command)

        if command == ControlCommand.GET_RULE_STATS:
            self.publish_rule_stats()
        elif command == ControlCommand.ENABLE_RULE:
            if data.get("ruleId"):
                ok = self.rule_engine.enable_rule(data["ruleId"])
                self.publish_rule_status(data["ruleId"], "enabled" if ok else "not_found")
        elif command == ControlCommand.DISABLE_RULE:
            if data.get("ruleId"):
                ok = self.rule_engine.disable_rule(data["ruleId"])
                self.publish_rule_status(data["ruleId"], "disabled" if ok else "not_found")
        elif command == ControlCommand.ADD_RULE:
            self._add_rule(data.get("rule"))
        elif command == ControlCommand.REMOVE_RULE:
            if data.get("ruleId"):
                ok = self.rule_engine.remove_rule(data["ruleId"])
                self.publish_rule_status(data["ruleId"], "removed" if ok else "not_found")
        elif command == ControlCommand.GET_NOTIFICATIONS:
            self.publish_notifications()
        elif command == ControlCommand.ACKNOWLEDGE_NOTIFICATION:
            if data.get("notificationId"):
                self.notifications.acknowledge(data["notificationId"])
        elif command == ControlCommand.SEND_DEVICE_COMMAND:
            if data.get("deviceId") and data.get("deviceCommand"):
                self.executor.send_device_command(data["deviceId"], data["deviceCommand"])
        else:
            logging.info("Unknown control center command: %s", command)

    def _add_rule(self, rule_data: Any) -> None:
        try:
            rule = Rule.from_dict(rule_data)
        except (InvalidRuleError, TypeError, ValueError, AttributeError) as e:
            logging.error("Rejected addRule command: %s", e)
            return
        if self.rule_engine.add_rule(rule):
            self.publish_rule_status(rule.id, "added")

    # --- Outbound state --------------------------------------------------

    def _publish(self, name: str, data: dict, qos: int = 1, retain: bool = False) -> bool:
        if self.mqtt is None:
            return False
        return self.mqtt.publish(self._cc_topic(name), to_json(data), qos=qos, retain=retain)

    def publish_status(self) -> bool:
        """Publish the retained control center status."""
        status = {
            "online": self.mqtt.is_connected() if self.mqtt is not None else False,
            "timestamp": iso_timestamp(time.time()),
            "automationEnabled": self.automation_enabled,
            "ruleStats": self.rule_engine.get_stats(),
            "notifications": self.notifications.summary(),
        }
        return self._publish(ControlCenterTopics.STATUS, status, qos=1, retain=True)

    def publish_rule_stats(self) -> bool:
        """Publish the rule engine statistics."""
        return self._publish(ControlCenterTopics.RULE_STATS, self.rule_engine.get_stats(), qos=0)

    def publish_rule_status(self, rule_id: str, status: str) -> bool:
        """Publish the outcome of a rule management command."""
        rule = self.rule_engine.get_rule(rule_id)
        message = {
            "ruleId": rule_id,
            "status": status,
            "rule": {"id": rule.id, "name": rule.name, "enabled": rule.enabled} if rule else None,
            "timestamp": iso_timestamp(time.time()),
        }
        return self._publish(ControlCenterTopics.RULE_STATUS, message)

    def publish_notifications(self, limit: int = 20) -> bool:
        """Publish the most recent notifications."""
        summary = self.notifications.summary()
        message = {
            "notifications": [n.to_dict() for n in self.notifications.all()[:limit]],
            "total": summary["total"],
            "unacknowledged": summary["unacknowledged"],
        }
        return self._publish(ControlCenterTopics.NOTIFICATIONS, message)

    # --- Automation switch -----------------------------------------------

    def enable_automation(self) -> None:
        """Resume feeding telemetry into the rule engine."""
        self.automation_enabled = True
        self.publish_status()

    def disable_automation(self) -> None:
        """Stop feeding telemetry into the rule engine."""
        self.automation_enabled = False
        self.publish_status()
