"""Dotted property path resolution against telemetry payloads."""
from collections.abc import Mapping, Sequence
from typing import Any, Optional


class _Undefined:
    """Marker for a path that does not resolve to anything."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


def get_property_value(root: Any, path: Optional[str]) -> Any:
    """Walk ``path`` (e.g. "value.temperature") segment by segment from ``root``.

    Mappings are indexed by key and lists/tuples by integer segment. Any
    step that hits a scalar, a missing key or an out-of-range index yields
    UNDEFINED instead of raising.

    Args:
        root: The structure to walk
        path: Dotted path; empty or None returns root unchanged

    Returns:
        The resolved value, or UNDEFINED
    """
    if not path:
        return root

    current = root
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return UNDEFINED
            current = current[part]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not part.isdigit() or int(part) >= len(current):
                return UNDEFINED
            current = current[int(part)]
        else:
            return UNDEFINED
    return current
