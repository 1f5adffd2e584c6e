"""Constants used throughout the mqtt2rules application.

This module centralizes magic strings and values to:
- Prevent typos and inconsistencies
- Make refactoring easier
- Provide a single source of truth for topic layout and command names
"""


class TopicStructure:
    """MQTT topic layout shared with the devices.

    Telemetry:       home/<room>/<device>/<metric>
    Device status:   home/status/<device>
    Device commands: home/command/<device>
    """
    HOME = "home"
    STATUS = "status"
    COMMAND = "command"
    CONTROL_CENTER = "control-center"
    SEPARATOR = "/"
    WILDCARD_SINGLE = "+"
    WILDCARD_MULTI = "#"


def build_topic(*segments: str) -> str:
    """Join topic segments with the topic separator."""
    return TopicStructure.SEPARATOR.join(segments)


class ControlCenterTopics:
    """Sub-topics published or consumed under home/control-center/."""
    STATUS = "status"
    COMMAND = "command"
    LOG = "log"
    NOTIFICATION = "notification"
    NOTIFICATIONS = "notifications"
    RULE_STATS = "rule-stats"
    RULE_STATUS = "rule-status"


class ControlCommand:
    """Command names accepted on home/control-center/command."""
    GET_RULE_STATS = "getRuleStats"
    ENABLE_RULE = "enableRule"
    DISABLE_RULE = "disableRule"
    ADD_RULE = "addRule"
    REMOVE_RULE = "removeRule"
    GET_NOTIFICATIONS = "getNotifications"
    ACKNOWLEDGE_NOTIFICATION = "acknowledgeNotification"
    SEND_DEVICE_COMMAND = "sendDeviceCommand"


class Severity:
    """Notification severities."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Terminal colors for output formatting
class TermColors:
    """ANSI color codes for terminal output."""
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    MAGENTA = "\033[95m"
    RESET = "\033[0m"
    DIM = "\033[2m"
    BOLD = "\033[1m"
