"""MQTT package for mqtt2rules.

This package contains the persistent paho-mqtt client.
"""
from mqtt2rules.mqtt.client import MqttClient

__all__ = [
    "MqttClient",
]
