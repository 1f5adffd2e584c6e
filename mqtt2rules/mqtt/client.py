"""MQTT Client module for mqtt2rules.

This module handles MQTT operations using paho-mqtt for persistent connections
including both publishing and subscribing to MQTT messages.
"""
import logging
import queue
import threading
from typing import Any, Optional

import paho.mqtt.client as mqtt

from mqtt2rules.core.config import Config


class MqttClient:
    """Handles MQTT operations with persistent paho-mqtt connection."""

    def __init__(self, config: Config):
        self.config = config
        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._lock = threading.Lock()
        self._message_queue: Optional[queue.Queue] = None
        self._subscribed_topics: list[str] = []
        self._will: Optional[tuple[str, str]] = None

    def set_will(self, topic: str, payload: str) -> None:
        """Register a retained last-will message, used on the next connect."""
        self._will = (topic, payload)

    def is_connected(self) -> bool:
        """Check whether the broker connection is up."""
        return self._connected.is_set()

    def connect(self) -> bool:
        """Establish a persistent connection to the MQTT broker.

        Returns:
            True if connection was successful, False otherwise.
        """
        if self._client is not None and self._connected.is_set():
            return True

        with self._lock:
            if self._client is not None and self._connected.is_set():
                return True

            try:
                self._client = mqtt.Client(
                    callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                    client_id=self.config.client_id,
                    protocol=mqtt.MQTTv311
                )

                # Set up callbacks
                self._client.on_connect = self._on_connect
                self._client.on_disconnect = self._on_disconnect

                if self.config.mqtt_username:
                    self._client.username_pw_set(
                        self.config.mqtt_username, self.config.mqtt_password or None
                    )
                if self._will is not None:
                    will_topic, will_payload = self._will
                    self._client.will_set(will_topic, will_payload, qos=1, retain=True)

                # Connect to broker
                port = int(self.config.mqtt_port)
                logging.info(
                    "Connecting to MQTT broker at %s:%d",
                    self.config.mqtt_host, port
                )
                self._client.connect(self.config.mqtt_host, port, keepalive=60)

                # Start the network loop in a background thread
                self._client.loop_start()

                # Wait for connection with timeout
                if self._connected.wait(timeout=10.0):
                    return True
                logging.error("MQTT connection timeout")
                return False

            except Exception as e:  # pylint: disable=broad-exception-caught
                logging.error("Failed to connect to MQTT broker: %s", e)
                self._client = None
                return False

    def disconnect(self):
        """Disconnect from the MQTT broker and clean up."""
        with self._lock:
            if self._client is not None:
                logging.info("Disconnecting from MQTT broker")
                self._client.loop_stop()
                self._client.disconnect()
                self._client = None
                self._connected.clear()

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: mqtt.ConnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: Optional[mqtt.Properties] = None
    ):
        """Callback when connected to MQTT broker."""
        if reason_code == 0:
            logging.info("Connected to MQTT broker successfully")
            self._connected.set()
            # Resubscribe to topics on reconnection
            for topic in self._subscribed_topics:
                client.subscribe(topic)
                logging.debug("Resubscribed to topic: %s", topic)
        else:
            logging.error("MQTT connection failed with code: %s", reason_code)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: mqtt.DisconnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: Optional[mqtt.Properties] = None
    ):
        """Callback when disconnected from MQTT broker."""
        self._connected.clear()
        if reason_code != 0:
            logging.warning(
                "Unexpected MQTT disconnection (code: %s). Will auto-reconnect.",
                reason_code
            )
        else:
            logging.info("Disconnected from MQTT broker")

    def _on_message(
        self,
        client: mqtt.Client,
        userdata: Any,
        msg: mqtt.MQTTMessage
    ):
        """Callback when a message is received on a subscribed topic.

        Puts a (topic, payload) tuple into the message queue for the
        daemon's main loop; rule evaluation never runs on the network thread.
        """
        if self._message_queue is None:
            logging.warning("Received message but no queue configured")
            return

        try:
            payload = msg.payload.decode("utf-8", errors="replace")
            self._message_queue.put((msg.topic, payload))
        except Exception as e:  # pylint: disable=broad-exception-caught
            logging.error("Error processing received message: %s", e)

    def subscribe(self, topics: list[str], message_queue: queue.Queue) -> bool:
        """Subscribe to MQTT topics and put received messages in the queue.

        Uses the persistent paho-mqtt connection. Will connect if not already
        connected. Subscriptions are automatically restored on reconnection.

        Args:
            topics: List of MQTT topic patterns to subscribe to.
            message_queue: Queue where received (topic, payload) tuples are put.

        Returns:
            True if subscriptions were successful, False otherwise.
        """
        self._message_queue = message_queue

        # Ensure we're connected
        if not self._connected.is_set():
            if not self.connect():
                logging.error("Cannot subscribe: not connected to MQTT broker")
                return False

        # Set the message callback
        self._client.on_message = self._on_message

        # Subscribe to each topic
        try:
            for topic in topics:
                result, _ = self._client.subscribe(topic)
                if result == mqtt.MQTT_ERR_SUCCESS:
                    self._subscribed_topics.append(topic)
                    logging.info("Subscribed to topic: %s", topic)
                else:
                    logging.error("Failed to subscribe to %s: %s", topic, result)
                    return False
            return True
        except Exception as e:  # pylint: disable=broad-exception-caught
            logging.error("Error subscribing to topics: %s", e)
            return False

    def publish(self, topic: str, payload: str, qos: int = 1, retain: bool = False) -> bool:
        """Publish a message to the MQTT broker.

        Uses the persistent paho-mqtt connection. Will attempt to connect
        if not already connected.

        Args:
            topic: The MQTT topic to publish to.
            payload: The message payload as a string.
            qos: Quality of service level.
            retain: Whether the broker should retain the message.

        Returns:
            True if the message was published successfully, False otherwise.
        """
        logging.debug("-> Sending MQTT: Topic='%s', Payload='%s'", topic, payload)

        # Ensure we're connected
        if not self._connected.is_set():
            if not self.connect():
                logging.error("Cannot publish: not connected to MQTT broker")
                return False

        try:
            result = self._client.publish(topic, payload, qos=qos, retain=retain)
            if qos > 0:
                # Wait for publish to complete with timeout
                result.wait_for_publish(timeout=5.0)

            if result.rc == mqtt.MQTT_ERR_SUCCESS:
                return True
            logging.error("MQTT publish failed with code: %s", result.rc)
            return False

        except Exception as e:  # pylint: disable=broad-exception-caught
            logging.error("Error publishing MQTT message: %s", e)
            return False
