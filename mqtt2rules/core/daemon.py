"""Daemon module for mqtt2rules.

This module contains the RulesDaemon class that wires the MQTT client,
the rule engine and the control center together and runs the main loop.
"""
import logging
import queue
import threading
import time
from typing import Optional

from mqtt2rules.core.config import Config
from mqtt2rules.core.constants import TermColors
from mqtt2rules.core.event_bus import event_bus
from mqtt2rules.core.utils import load_json_file
from mqtt2rules.control.control_center import ControlCenter
from mqtt2rules.mqtt.client import MqttClient
from mqtt2rules.rules.engine import RuleEngine

VERSION = "0.1"

BANNER = r"""
 __  __  ___ _____ _____ ___  ___      _
|  \/  |/ _ \_   _|_   _|_  )| _ \_  _| |___ ___
| |\/| | (_) || |   | |  / / |   / || | / -_|_-<
|_|  |_|\__\_\|_|   |_| /___||_|_\\_,_|_\___/__/
"""


def setup_logging(config: Config):
    """Configure the logging module."""
    level = logging.DEBUG if config.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="[%H:%M:%S]"
    )


def print_banner(config: Config):
    """Print the ASCII art banner with version and broker info."""
    c = TermColors
    print(f"{c.CYAN}{BANNER}{c.RESET}")
    print(
        f"  {c.DIM}v{VERSION}{c.RESET}  {c.BOLD}Broker:{c.RESET} "
        f"{c.YELLOW}{config.mqtt_host}:{config.mqtt_port}{c.RESET}"
    )
    if not config.enable_automation:
        print(f"  {c.BOLD}{c.MAGENTA}[AUTOMATION DISABLED]{c.RESET}")
    print()


def load_rules_file(engine: RuleEngine, path: str) -> int:
    """Load extra rules from a JSON file into the engine.

    The file holds either a list of rule objects or {"rules": [...]}.

    Returns:
        Number of rules loaded
    """
    data = load_json_file(path, {"rules": []})
    rules = data.get("rules", []) if isinstance(data, dict) else data
    if not isinstance(rules, list):
        logging.error("Rules file %s does not contain a list of rules", path)
        return 0
    loaded = engine.load_rules(rules)
    logging.info("Loaded %d rule(s) from %s", loaded, path)
    return loaded


class RulesDaemon:  # pylint: disable=too-many-instance-attributes
    """Main daemon class orchestrating the components."""

    def __init__(self, config: Config, mqtt_client: Optional[MqttClient] = None):
        self.config = config
        self.mqtt = mqtt_client or MqttClient(config)

        self.rule_engine = RuleEngine(
            load_defaults=config.load_default_rules,
            event_bus=event_bus,
            max_reentry_depth=config.max_reentry_depth,
        )
        if config.rules_file:
            load_rules_file(self.rule_engine, config.rules_file)

        self.control_center = ControlCenter(
            config,
            mqtt_client=self.mqtt,
            rule_engine=self.rule_engine,
            event_bus=event_bus,
        )

        # Queue for receiving MQTT messages from paho-mqtt subscription
        self.message_queue: queue.Queue[tuple[str, str]] = queue.Queue()
        self.running = False
        self._stop_event = threading.Event()

    def start(self):
        """Start the daemon and block until stop() is called."""
        setup_logging(self.config)
        print_banner(self.config)

        stats = self.rule_engine.get_stats()
        logging.info(
            "Rule engine initialized: %d rules (%d enabled)",
            stats["total_rules"], stats["enabled_rules"]
        )

        self.mqtt.set_will(
            self.control_center.status_topic,
            self.control_center.offline_status_payload()
        )
        if not self.mqtt.subscribe(
            self.control_center.subscription_topics(),
            self.message_queue
        ):
            logging.critical("Failed to subscribe to MQTT topics")
            self._shutdown()
            return

        self.control_center.executor.start()
        self.control_center.publish_status()
        self.running = True
        logging.info("Daemon started. Automation %s",
                     "enabled" if self.control_center.automation_enabled else "disabled")

        self._main_loop()

    def stop(self):
        """Ask the main loop to exit; safe to call from any thread."""
        self.running = False
        self._stop_event.set()

    def process_pending(self, timeout: float = 1.0) -> int:
        """Hand queued MQTT messages to the control center.

        Waits up to ``timeout`` for the first message, then drains the queue.

        Returns:
            Number of messages processed
        """
        processed = 0
        try:
            topic, payload = self.message_queue.get(timeout=timeout)
        except queue.Empty:
            return 0

        while True:
            try:
                self.control_center.handle_message(topic, payload)
            except Exception:  # pylint: disable=broad-exception-caught
                logging.exception("Error handling message on %s", topic)
            processed += 1
            try:
                topic, payload = self.message_queue.get_nowait()
            except queue.Empty:
                return processed

    def _main_loop(self):
        """Main event loop for the daemon."""
        last_status = time.time()

        try:
            while self.running and not self._stop_event.is_set():
                self.process_pending(timeout=1.0)

                if time.time() - last_status >= self.config.status_interval:
                    self.control_center.publish_status()
                    last_status = time.time()

        except KeyboardInterrupt:
            logging.info("Stopping daemon (KeyboardInterrupt)...")
        finally:
            self._shutdown()

    def _shutdown(self):
        """Publish offline status and release resources."""
        self.running = False
        self.control_center.executor.stop()
        if self.mqtt.is_connected():
            self.mqtt.publish(
                self.control_center.status_topic,
                self.control_center.offline_status_payload(),
                qos=1,
                retain=True
            )
        self.mqtt.disconnect()
        logging.info("Daemon stopped")
