"""Tests for the daemon module."""
import json
import logging
import os
import signal
from unittest.mock import patch, MagicMock

import pytest

from mqtt2rules.__main__ import main
from mqtt2rules.core.daemon import RulesDaemon, load_rules_file, setup_logging


@pytest.fixture
def daemon(config, mock_mqtt):
    """A daemon without starter rules and with a mock MQTT client."""
    config.load_default_rules = False
    return RulesDaemon(config, mqtt_client=mock_mqtt)


def write_json(path, data):
    """Write data as JSON to path."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)


class TestSetupLogging:
    """Tests for setup_logging function."""

    @pytest.mark.parametrize("verbose,level", [(True, logging.DEBUG), (False, logging.INFO)])
    def test_setup_logging_level(self, config, verbose, level):
        """Test that the log level follows the verbose flag."""
        config.verbose = verbose
        # Reset root logger before testing
        root_logger = logging.getLogger()
        original_level = root_logger.level
        original_handlers = root_logger.handlers[:]

        try:
            # Clear handlers to force basicConfig to take effect
            root_logger.handlers = []
            root_logger.setLevel(logging.NOTSET)
            setup_logging(config)
            assert root_logger.level == level
        finally:
            # Restore original state
            root_logger.level = original_level
            root_logger.handlers = original_handlers


class TestRulesFile:
    """Tests for loading rules from a file."""

    RULE = {"id": "from-file", "conditions": [], "actions": []}

    def test_list_form(self, daemon, temp_dir):
        """Test a file holding a plain list of rules."""
        path = os.path.join(temp_dir, "rules.json")
        write_json(path, [self.RULE])

        assert load_rules_file(daemon.rule_engine, path) == 1
        assert daemon.rule_engine.get_rule("from-file") is not None

    def test_object_form(self, daemon, temp_dir):
        """Test a file holding {"rules": [...]}."""
        path = os.path.join(temp_dir, "rules.json")
        write_json(path, {"rules": [self.RULE, {"name": "no id"}]})

        assert load_rules_file(daemon.rule_engine, path) == 1

    def test_unusable_file(self, daemon, temp_dir):
        """Test missing files and wrong shapes load nothing."""
        path = os.path.join(temp_dir, "rules.json")
        write_json(path, 42)

        assert load_rules_file(daemon.rule_engine, path) == 0
        assert load_rules_file(daemon.rule_engine, os.path.join(temp_dir, "nope.json")) == 0

    def test_daemon_loads_configured_file(self, config, mock_mqtt, temp_dir):
        """Test the daemon loads the rules file named in the config."""
        path = os.path.join(temp_dir, "rules.json")
        write_json(path, [self.RULE])
        config.rules_file = path

        daemon = RulesDaemon(config, mqtt_client=mock_mqtt)

        assert daemon.rule_engine.get_stats()["total_rules"] == 7


class TestRulesDaemonInit:
    """Tests for RulesDaemon initialization."""

    def test_components_share_engine(self, daemon):
        """Test the control center drives the daemon's engine."""
        assert daemon.control_center.rule_engine is daemon.rule_engine
        assert daemon.control_center.mqtt is daemon.mqtt
        assert daemon.running is False

    def test_starter_rules(self, config, mock_mqtt):
        """Test starter rules are loaded by default."""
        daemon = RulesDaemon(config, mqtt_client=mock_mqtt)
        assert daemon.rule_engine.get_stats()["total_rules"] == 6

    def test_reentry_depth_from_config(self, config, mock_mqtt):
        """Test the engine uses the configured re-entry depth."""
        config.max_reentry_depth = 4
        daemon = RulesDaemon(config, mqtt_client=mock_mqtt)
        assert daemon.rule_engine.max_reentry_depth == 4


class TestProcessPending:
    """Tests for draining the message queue."""

    def test_processes_all_queued_messages(self, daemon):
        """Test every queued message reaches the control center."""
        daemon.message_queue.put(("home/living/thermo/temperature", '{"value": 20}'))
        daemon.message_queue.put(("home/hall/door/contact", '{"value": {"state": "open"}}'))

        assert daemon.process_pending(timeout=0.01) == 2
        assert daemon.rule_engine.get_stats()["total_devices"] == 2

    def test_empty_queue(self, daemon):
        """Test an empty queue times out and processes nothing."""
        assert daemon.process_pending(timeout=0.01) == 0

    def test_handler_error_does_not_stop_processing(self, daemon):
        """Test an exception for one message does not drop the rest."""
        daemon.message_queue.put(("a", "{}"))
        daemon.message_queue.put(("b", "{}"))

        with patch.object(daemon.control_center, "handle_message",
                          side_effect=[RuntimeError("bad"), None]) as handler:
            assert daemon.process_pending(timeout=0.01) == 2

        assert handler.call_count == 2


class TestRulesDaemonLifecycle:
    """Tests for start, the main loop and shutdown."""

    def test_start_runs_until_stopped(self, daemon, mock_mqtt):
        """Test start subscribes, processes messages and shuts down cleanly."""
        def fake_subscribe(topics, message_queue):
            message_queue.put(("home/living/thermo/temperature", '{"value": 20}'))
            return True

        mock_mqtt.subscribe.side_effect = fake_subscribe
        real_handler = daemon.control_center.handle_message

        def handle_then_stop(topic, payload):
            real_handler(topic, payload)
            daemon.stop()

        with patch("mqtt2rules.core.daemon.setup_logging"), \
                patch("mqtt2rules.core.daemon.print_banner"), \
                patch.object(daemon.control_center, "handle_message",
                             side_effect=handle_then_stop):
            daemon.start()

        status_topic = daemon.control_center.status_topic
        mock_mqtt.set_will.assert_called_once()
        assert mock_mqtt.set_will.call_args.args[0] == status_topic
        assert json.loads(mock_mqtt.set_will.call_args.args[1])["online"] is False
        assert mock_mqtt.subscribe.call_args.args[0] == daemon.control_center.subscription_topics()
        assert daemon.rule_engine.get_device("thermo") is not None

        final = mock_mqtt.publish.call_args
        assert final.args[0] == status_topic
        assert json.loads(final.args[1])["online"] is False
        assert final.kwargs["retain"] is True
        mock_mqtt.disconnect.assert_called_once()
        assert daemon.running is False
        assert not daemon.control_center.executor.is_running()

    def test_start_aborts_when_subscribe_fails(self, daemon, mock_mqtt):
        """Test a failed subscription shuts the daemon down."""
        mock_mqtt.subscribe.return_value = False
        mock_mqtt.is_connected.return_value = False

        with patch("mqtt2rules.core.daemon.setup_logging"), \
                patch("mqtt2rules.core.daemon.print_banner"):
            daemon.start()

        mock_mqtt.publish.assert_not_called()
        mock_mqtt.disconnect.assert_called_once()
        assert daemon.running is False

    def test_stop(self, daemon):
        """Test stop clears the running flag."""
        daemon.running = True
        daemon.stop()
        assert daemon.running is False


class TestMain:
    """Tests for the module entry point."""

    def test_main_wires_signals(self):
        """Test main starts the daemon and SIGTERM/SIGINT stop it."""
        daemon = MagicMock()
        with patch("mqtt2rules.__main__.Config.from_args") as from_args, \
                patch("mqtt2rules.__main__.RulesDaemon", return_value=daemon) as daemon_class, \
                patch("mqtt2rules.__main__.signal.signal") as signal_mock:
            main()

        daemon_class.assert_called_once_with(from_args.return_value)
        daemon.start.assert_called_once()
        handled = {c.args[0] for c in signal_mock.call_args_list}
        assert handled == {signal.SIGTERM, signal.SIGINT}

        handler = signal_mock.call_args_list[0].args[1]
        handler(signal.SIGTERM, None)
        daemon.stop.assert_called_once()
