"""Shared utility functions for mqtt2rules."""
import json
import logging
from datetime import datetime
from typing import Any, TypeVar

T = TypeVar('T')

def load_json_file(filepath: str, default: T) -> T:
    """Load a JSON file, returning default if not found or invalid.

    Args:
        filepath: Path to the JSON file
        default: Default value to return if file doesn't exist or is invalid

    Returns:
        The loaded JSON data, or the default value
    """
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logging.warning("File not found: %s", filepath)
        return default
    except json.JSONDecodeError as e:
        logging.error("Invalid JSON in %s: %s", filepath, e)
        return default

def iso_timestamp(epoch: float) -> str:
    """Format an epoch timestamp as an ISO 8601 string."""
    return datetime.fromtimestamp(epoch).isoformat()

def to_json(data: Any) -> str:
    """Serialize data for an MQTT payload."""
    return json.dumps(data, default=str)
