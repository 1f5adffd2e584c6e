"""Rule engine: evaluates automation rules against device telemetry.

Every telemetry update (or offline transition) runs one evaluation pass:
enabled rules are walked highest priority first, cooled-down rules are
skipped, and every rule whose condition chain matches is handed to the
registered execution callbacks together with its actions. The engine
never performs actions itself.

A whole pass, callbacks included, runs under one re-entrant lock so two
concurrent triggers can never both slip past the same rule's cooldown.
"""
import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from mqtt2rules.core.constants import TermColors
from mqtt2rules.core.event_bus import EventBus, EventType
from mqtt2rules.core.event_bus import event_bus as global_event_bus
from mqtt2rules.rules.conditions import ConditionEvaluator
from mqtt2rules.rules.cooldown import CooldownTracker
from mqtt2rules.rules.defaults import default_rules
from mqtt2rules.rules.device_table import DeviceStateTable
from mqtt2rules.rules.models import (
    Action,
    DeviceData,
    InvalidRuleError,
    Rule,
    RuleExecutionContext,
)
from mqtt2rules.rules.store import RuleStore

ExecutionCallback = Callable[[RuleExecutionContext, List[Action]], None]

RECENT_EXECUTIONS_LIMIT = 10
DEFAULT_MAX_REENTRY_DEPTH = 16


class RuleEngine:  # pylint: disable=too-many-public-methods
    """Evaluates prioritized rules on every device update and dispatches matches."""

    def __init__(
        self,
        load_defaults: bool = True,
        clock: Callable[[], float] = time.time,
        event_bus: Optional[EventBus] = None,
        max_reentry_depth: int = DEFAULT_MAX_REENTRY_DEPTH
    ):
        """Initialize the engine.

        Args:
            load_defaults: Seed the starter rule library
            clock: Source of the current epoch time in seconds
            event_bus: Bus for RULE_EXECUTED and related events
                (defaults to the global bus)
            max_reentry_depth: Nested evaluation passes allowed when a
                callback feeds updates back into the engine
        """
        self._clock = clock
        self._event_bus = event_bus if event_bus is not None else global_event_bus
        self._lock = threading.RLock()
        self._callbacks: List[ExecutionCallback] = []
        self._depth = 0
        self.max_reentry_depth = max_reentry_depth

        self.store = RuleStore()
        self.devices = DeviceStateTable()
        self.cooldowns = CooldownTracker(clock)
        self.evaluator = ConditionEvaluator(self.devices.get, clock)

        if load_defaults:
            rules = default_rules()
            for rule in rules:
                self.store.add(rule)
            logging.info("Loaded %d default automation rules", len(rules))

    # --- Rule management -------------------------------------------------

    def add_rule(self, rule: Rule) -> bool:
        """Add a rule, replacing any rule with the same id.

        Returns:
            False if a field of the rule has the wrong type
        """
        with self._lock:
            try:
                self.store.add(rule)
            except InvalidRuleError as e:
                logging.error("Rejected rule '%s': %s", rule.id, e)
                return False
            return True

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Get a rule by id, or None."""
        with self._lock:
            return self.store.get(rule_id)

    def get_all_rules(self) -> List[Rule]:
        """Get all rules, highest priority first (stable for ties)."""
        with self._lock:
            return self.store.list_all()

    def update_rule(self, rule_id: str, updates: Mapping[str, Any]) -> bool:
        """Merge ``updates`` into a rule. Returns False for unknown rules."""
        with self._lock:
            return self.store.update(rule_id, updates)

    def enable_rule(self, rule_id: str) -> bool:
        """Enable a rule. Returns False for unknown rules."""
        with self._lock:
            return self.store.enable(rule_id)

    def disable_rule(self, rule_id: str) -> bool:
        """Disable a rule. Returns False for unknown rules."""
        with self._lock:
            return self.store.disable(rule_id)

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule. Returns False for unknown rules."""
        with self._lock:
            return self.store.remove(rule_id)

    def load_rules(self, rules: Iterable[Mapping[str, Any]]) -> int:
        """Add rules from their JSON form, skipping invalid entries.

        Returns:
            Number of rules added
        """
        loaded = 0
        for data in rules:
            try:
                rule = Rule.from_dict(data)
            except (InvalidRuleError, TypeError, ValueError, AttributeError) as e:
                logging.error("Skipping invalid rule: %s", e)
                continue
            if self.add_rule(rule):
                loaded += 1
        return loaded

    def is_in_cooldown(self, rule_id: str) -> bool:
        """Check whether a rule is currently throttled by its cooldown."""
        with self._lock:
            rule = self.store.get(rule_id)
            if rule is None:
                return False
            return self.cooldowns.is_in_cooldown(rule.id, rule.cooldown_ms)

    def on_rule_execution(self, callback: ExecutionCallback) -> None:
        """Register a consumer called as ``callback(context, actions)`` per firing."""
        with self._lock:
            self._callbacks.append(callback)

    # --- Telemetry ingress -----------------------------------------------

    def update_device_data(self, device: DeviceData) -> None:
        """Store a device's latest telemetry and evaluate rules against it."""
        try:
            with self._lock:
                record = self.devices.upsert(device, self._clock())
                self._event_bus.publish(EventType.DEVICE_UPDATED, {
                    "device_id": record.device_id,
                    "online": record.online,
                })
                self._evaluate_rules(record)
        except Exception:  # pylint: disable=broad-exception-caught
            logging.exception("Failed to process update for device %r", device)

    def mark_device_offline(self, device_id: str) -> None:
        """Flag a known device offline and evaluate rules. Unknown ids are ignored."""
        try:
            with self._lock:
                record = self.devices.mark_offline(device_id, self._clock())
                if record is None:
                    logging.debug("Ignoring offline mark for unknown device %s", device_id)
                    return
                self._event_bus.publish(EventType.DEVICE_OFFLINE, {"device_id": device_id})
                self._evaluate_rules(record)
        except Exception:  # pylint: disable=broad-exception-caught
            logging.exception("Failed to mark device %s offline", device_id)

    # --- Read-only views -------------------------------------------------

    def get_devices(self) -> Mapping[str, DeviceData]:
        """Get a read-only snapshot of all known devices."""
        with self._lock:
            return self.devices.snapshot()

    def get_device(self, device_id: str) -> Optional[DeviceData]:
        """Get a copy of one device's record, or None."""
        with self._lock:
            return self.devices.get(device_id)

    def get_stats(self) -> Dict[str, Any]:
        """Summarize rules, devices and the most recent rule firings."""
        with self._lock:
            total_rules = self.store.count()
            enabled_rules = self.store.enabled_count()
            recent = self.cooldowns.recent(RECENT_EXECUTIONS_LIMIT)
            return {
                "total_rules": total_rules,
                "enabled_rules": enabled_rules,
                "disabled_rules": total_rules - enabled_rules,
                "total_devices": self.devices.count(),
                "online_devices": self.devices.online_count(),
                "recent_executions": [
                    {"rule_id": rule_id, "timestamp": ts} for rule_id, ts in recent
                ],
            }

    # --- Evaluation ------------------------------------------------------

    def _evaluate_rules(self, trigger_device: DeviceData) -> None:
        """Run one evaluation pass for a trigger. Caller holds the lock."""
        if self._depth >= self.max_reentry_depth:
            logging.warning(
                "Skipping rule evaluation for %s: nested %d passes deep "
                "(a rule action keeps re-triggering rules)",
                trigger_device.device_id, self._depth
            )
            return

        self._depth += 1
        try:
            for rule in self.store.enabled_rules():
                try:
                    if self.cooldowns.is_in_cooldown(rule.id, rule.cooldown_ms):
                        continue
                    matched = self.evaluator.evaluate_chain(rule.conditions, trigger_device)
                except Exception:  # pylint: disable=broad-exception-caught
                    logging.exception("Skipping rule '%s': evaluation failed", rule.id)
                    continue
                if matched:
                    self._execute_rule(rule, trigger_device)
        finally:
            self._depth -= 1

    def _execute_rule(self, rule: Rule, trigger_device: DeviceData) -> None:
        """Mark cooldown and hand the rule to every callback."""
        timestamp = self.cooldowns.mark_executed(rule.id)

        context = RuleExecutionContext(
            rule=copy.deepcopy(rule),
            trigger_device=trigger_device.copy(),
            all_devices=self.devices.snapshot(),
            timestamp=timestamp,
        )

        logging.info(
            "%s[RULE] %s: %s (triggered by %s)%s",
            TermColors.GREEN, rule.id, rule.name, trigger_device.device_id, TermColors.RESET
        )
        self._event_bus.publish(EventType.RULE_EXECUTED, {
            "rule_id": rule.id,
            "trigger_device": trigger_device.device_id,
            "action_count": len(rule.actions),
        })

        for callback in list(self._callbacks):
            try:
                callback(context, list(context.rule.actions))
            except Exception as e:  # pylint: disable=broad-exception-caught
                logging.exception("Error in rule execution callback for '%s'", rule.id)
                self._event_bus.publish(EventType.CALLBACK_FAILED, {
                    "rule_id": rule.id,
                    "error": str(e),
                })
