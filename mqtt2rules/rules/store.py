"""In-memory rule storage ordered by priority."""
import dataclasses
import logging
from typing import Any, Dict, List, Mapping, Optional

from mqtt2rules.rules.models import (
    RULE_FIELDS,
    InvalidRuleError,
    Rule,
    convert_rule_field,
    normalize_rule,
)


class RuleStore:
    """Holds rules by id.

    Insertion order is kept so that rules with equal priority are listed
    in the order they were first added. Missing ids are reported through
    the return value, never by raising.
    """

    def __init__(self):
        self._rules: Dict[str, Rule] = {}

    def add(self, rule: Rule) -> None:
        """Add a rule, replacing any existing rule with the same id.

        Raises:
            InvalidRuleError: if a field of the rule has the wrong type
        """
        self._rules[rule.id] = normalize_rule(rule)

    def get(self, rule_id: str) -> Optional[Rule]:
        """Return the rule with this id, or None."""
        return self._rules.get(rule_id)

    def list_all(self) -> List[Rule]:
        """Return all rules, highest priority first."""
        return sorted(self._rules.values(), key=lambda r: r.priority, reverse=True)

    def enabled_rules(self) -> List[Rule]:
        """Return the enabled rules, highest priority first."""
        return [r for r in self.list_all() if r.enabled]

    def update(self, rule_id: str, updates: Mapping[str, Any]) -> bool:
        """Merge the supplied fields into a rule.

        Fields not present in ``updates`` keep their values. The id cannot
        be changed.

        Returns:
            False if the rule is unknown, ``updates`` names an unknown field
            or a value cannot be converted to the field's type
        """
        rule = self._rules.get(rule_id)
        if rule is None:
            return False

        changes = dict(updates)
        if changes.pop("id", rule_id) != rule_id:
            logging.warning("Ignoring attempt to change id of rule '%s'", rule_id)

        unknown = set(changes) - RULE_FIELDS
        if unknown:
            logging.warning(
                "Cannot update rule '%s': unknown fields %s", rule_id, sorted(unknown)
            )
            return False

        try:
            converted = {name: convert_rule_field(name, value) for name, value in changes.items()}
        except InvalidRuleError as e:
            logging.warning("Cannot update rule '%s': %s", rule_id, e)
            return False

        self._rules[rule_id] = dataclasses.replace(rule, **converted)
        return True

    def enable(self, rule_id: str) -> bool:
        """Enable a rule. Returns False if the rule is unknown."""
        return self.update(rule_id, {"enabled": True})

    def disable(self, rule_id: str) -> bool:
        """Disable a rule. Returns False if the rule is unknown."""
        return self.update(rule_id, {"enabled": False})

    def remove(self, rule_id: str) -> bool:
        """Remove a rule. Returns False if the rule is unknown."""
        return self._rules.pop(rule_id, None) is not None

    def count(self) -> int:
        """Get the total number of rules."""
        return len(self._rules)

    def enabled_count(self) -> int:
        """Get the number of enabled rules."""
        return sum(1 for r in self._rules.values() if r.enabled)
