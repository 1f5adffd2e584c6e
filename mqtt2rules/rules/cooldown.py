"""Per-rule cooldown tracking."""
import time
from typing import Callable, Dict, List, Optional, Tuple


class CooldownTracker:
    """Remembers when each rule last fired and gates re-firing."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last_execution: Dict[str, float] = {}

    def is_in_cooldown(self, rule_id: str, cooldown_ms: Optional[int]) -> bool:
        """Check whether a rule fired less than ``cooldown_ms`` ago.

        A rule without a cooldown, or one that never fired, is never
        in cooldown.
        """
        if not cooldown_ms:
            return False
        last = self._last_execution.get(rule_id)
        if last is None:
            return False
        return (self._clock() - last) * 1000.0 < cooldown_ms

    def mark_executed(self, rule_id: str) -> float:
        """Record that a rule fires now and return the timestamp used."""
        now = self._clock()
        self._last_execution[rule_id] = now
        return now

    def last_execution(self, rule_id: str) -> Optional[float]:
        """Return when a rule last fired, or None."""
        return self._last_execution.get(rule_id)

    def recent(self, limit: int = 10) -> List[Tuple[str, float]]:
        """Return up to ``limit`` (rule_id, timestamp) pairs, newest first."""
        ordered = sorted(self._last_execution.items(), key=lambda item: item[1], reverse=True)
        return ordered[:limit]
