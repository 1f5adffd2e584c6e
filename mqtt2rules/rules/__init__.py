"""Rules package for mqtt2rules.

This package contains the rule data model, condition evaluation,
cooldown tracking, rule storage, the device state table and the
rule engine that ties them together.
"""
from mqtt2rules.rules.conditions import ConditionEvaluator, compare_values
from mqtt2rules.rules.cooldown import CooldownTracker
from mqtt2rules.rules.device_table import DeviceStateTable
from mqtt2rules.rules.engine import RuleEngine
from mqtt2rules.rules.extractor import UNDEFINED, get_property_value
from mqtt2rules.rules.models import (
    Action,
    Condition,
    DelayAction,
    DeviceCommandAction,
    DeviceData,
    InvalidRuleError,
    LogAction,
    NotificationAction,
    Rule,
    RuleExecutionContext,
    UnknownAction,
    WebhookAction,
    action_from_dict,
)
from mqtt2rules.rules.store import RuleStore

__all__ = [
    "Action",
    "action_from_dict",
    "compare_values",
    "Condition",
    "ConditionEvaluator",
    "CooldownTracker",
    "DelayAction",
    "DeviceCommandAction",
    "DeviceData",
    "DeviceStateTable",
    "get_property_value",
    "InvalidRuleError",
    "LogAction",
    "NotificationAction",
    "Rule",
    "RuleEngine",
    "RuleExecutionContext",
    "RuleStore",
    "UNDEFINED",
    "UnknownAction",
    "WebhookAction",
]
