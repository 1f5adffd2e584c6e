"""Control center package for mqtt2rules.

This package contains the control center that decodes MQTT traffic for
the rule engine, the action executor that carries out rule firings, and
notification bookkeeping.
"""
from mqtt2rules.control.actions import ActionExecutor, ActionJob, find_related_device
from mqtt2rules.control.control_center import ControlCenter
from mqtt2rules.control.notifications import Notification, NotificationCenter

__all__ = [
    "ActionExecutor",
    "ActionJob",
    "ControlCenter",
    "find_related_device",
    "Notification",
    "NotificationCenter",
]
