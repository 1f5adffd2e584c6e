"""Execution of rule actions for the control center.

The rule engine only hands matched actions to its callbacks. The
ActionExecutor is that callback: it queues each firing for a background
worker so that publishing, webhooks and delays never hold up a rule
evaluation pass.
"""
import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from mqtt2rules.core.config import Config
from mqtt2rules.core.constants import (
    ControlCenterTopics,
    Severity,
    TopicStructure,
    build_topic,
)
from mqtt2rules.core.utils import iso_timestamp, to_json
from mqtt2rules.control.notifications import NotificationCenter
from mqtt2rules.rules.models import (
    Action,
    DelayAction,
    DeviceCommandAction,
    DeviceData,
    LogAction,
    NotificationAction,
    RuleExecutionContext,
    WebhookAction,
)

COMMAND_HISTORY_LIMIT = 10


@dataclass
class ActionJob:
    """A batch of actions still to run for one rule firing."""
    context: RuleExecutionContext
    actions: List[Action]


def find_related_device(
    trigger_device: DeviceData,
    devices: Mapping[str, DeviceData]
) -> Optional[str]:
    """Pick a light in the trigger device's room for motion and door/window sensors.

    Returns:
        The related device id, or None if there is no sensible target
    """
    trigger_type = trigger_device.device_type or ""
    if not any(kind in trigger_type for kind in ("motion", "door", "window")):
        return None

    for device_id, device in devices.items():
        if device.room == trigger_device.room and "light" in (device.device_type or ""):
            return device_id
    return None


class ActionExecutor:  # pylint: disable=too-many-instance-attributes
    """Runs rule actions on a worker thread.

    This class handles:
    - Queuing rule firings handed over by the rule engine
    - Publishing device commands, log entries and notifications
    - Deferring the rest of an action list behind delay actions
    - Calling webhooks

    Before start() is called, submitted actions run inline on the
    caller's thread.
    """

    def __init__(
        self,
        config: Config,
        mqtt_client,
        notifications: NotificationCenter,
        http_client: Optional[httpx.Client] = None,
        queue_size: int = 100
    ):
        """Initialize the executor.

        Args:
            config: Application configuration
            mqtt_client: Client used for publishing (may be None)
            notifications: Where notification actions are recorded
            http_client: Client for webhook calls (created on demand)
            queue_size: Maximum queued firings before new ones are dropped
        """
        self.config = config
        self.mqtt = mqtt_client
        self.notifications = notifications
        self._http = http_client
        self._owns_http = http_client is None

        self._queue: queue.Queue[Optional[ActionJob]] = queue.Queue(maxsize=queue_size)
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._timers: List[threading.Timer] = []
        self._timers_lock = threading.Lock()

        self._device_commands: Dict[str, List[dict]] = {}
        self._commands_lock = threading.Lock()

    # --- Lifecycle -------------------------------------------------------

    def start(self) -> None:
        """Start the worker thread."""
        if self._running:
            logging.warning("Action executor already running")
            return

        self._running = True
        self._thread = threading.Thread(
            target=self._worker_loop,
            daemon=True,
            name="Action-Worker"
        )
        self._thread.start()
        logging.info("Action executor started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker, cancel pending delays and close the HTTP client."""
        with self._timers_lock:
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()

        if self._running:
            self._running = False
            if self._thread and self._thread.is_alive():
                self._queue.put(None)  # Shutdown signal
                self._thread.join(timeout=timeout)
                if self._thread.is_alive():
                    logging.warning("Action worker thread did not stop in time")
            self._thread = None

        if self._owns_http and self._http is not None:
            self._http.close()
            self._http = None

    def is_running(self) -> bool:
        """Check if the worker thread is running."""
        return self._running and self._thread is not None and self._thread.is_alive()

    # --- Submission ------------------------------------------------------

    def submit(self, context: RuleExecutionContext, actions: Sequence[Action]) -> bool:
        """Accept a rule firing; this is the rule engine callback.

        Returns:
            False if the firing was dropped because the queue is full
        """
        job = ActionJob(context=context, actions=list(actions))
        if not self._running:
            self.run(job)
            return True

        try:
            self._queue.put_nowait(job)
            return True
        except queue.Full:
            logging.warning(
                "Action queue full (size=%d), dropping actions of rule '%s'",
                self._queue.maxsize, context.rule.id
            )
            return False

    def run(self, job: ActionJob) -> None:
        """Run a job's actions in order until the first delay."""
        for index, action in enumerate(job.actions):
            if isinstance(action, DelayAction):
                remaining = job.actions[index + 1:]
                if action.delay_ms and remaining:
                    self._schedule(action.delay_ms, ActionJob(job.context, remaining))
                    return
                continue
            try:
                self.execute_action(action, job.context)
            except Exception:  # pylint: disable=broad-exception-caught
                logging.exception(
                    "Error executing %s action of rule '%s'",
                    action.type or type(action).__name__, job.context.rule.id
                )

    def _schedule(self, delay_ms: int, job: ActionJob) -> None:
        """Resubmit the remaining actions once the delay has passed."""
        def fire():
            with self._timers_lock:
                if timer in self._timers:
                    self._timers.remove(timer)
            self.submit(job.context, job.actions)

        timer = threading.Timer(delay_ms / 1000.0, fire)
        timer.daemon = True
        with self._timers_lock:
            self._timers.append(timer)
        timer.start()
        logging.debug(
            "Deferred %d action(s) of rule '%s' by %d ms",
            len(job.actions), job.context.rule.id, delay_ms
        )

    def pending_delays(self) -> int:
        """Get the number of delayed action batches still waiting."""
        with self._timers_lock:
            return len(self._timers)

    def _worker_loop(self) -> None:
        """Background thread that runs queued jobs."""
        while self._running:
            try:
                job = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue

            try:
                if job is None:
                    break
                self.run(job)
            finally:
                self._queue.task_done()

    # --- Individual actions ----------------------------------------------

    def execute_action(self, action: Action, context: RuleExecutionContext) -> None:
        """Perform a single non-delay action."""
        if isinstance(action, DeviceCommandAction):
            self._execute_device_command(action, context)
        elif isinstance(action, NotificationAction):
            self._create_notification(action, context)
        elif isinstance(action, LogAction):
            self._log_message(action, context)
        elif isinstance(action, WebhookAction):
            self._execute_webhook(action, context)
        else:
            logging.info("Unknown action type: %s", action.to_dict().get("type"))

    def _execute_device_command(
        self,
        action: DeviceCommandAction,
        context: RuleExecutionContext
    ) -> None:
        if not action.command:
            return

        target = action.device_id or find_related_device(
            context.trigger_device, context.all_devices
        )
        if target is None:
            logging.debug(
                "No target device for command of rule '%s' (trigger %s)",
                context.rule.id, context.trigger_device.device_id
            )
            return
        self.send_device_command(target, action.command)

    def send_device_command(self, device_id: str, command: Any) -> bool:
        """Publish a command to home/command/<device_id> and remember it."""
        message: Dict[str, Any] = {}
        if isinstance(command, dict):
            message["command"] = command.get("command", command)
            message.update(command)
        else:
            message["command"] = command
        message["timestamp"] = iso_timestamp(time.time())
        message["source"] = self.config.client_id

        with self._commands_lock:
            history = self._device_commands.setdefault(device_id, [])
            history.append(dict(message))
            del history[:-COMMAND_HISTORY_LIMIT]

        if self.mqtt is None:
            return False

        topic = build_topic(self.config.topic_root, TopicStructure.COMMAND, device_id)
        if self.mqtt.publish(topic, to_json(message), qos=1):
            logging.info("Sent command to %s: %s", device_id, message["command"])
            return True
        logging.error("Failed to send command to device %s", device_id)
        return False

    def get_device_commands(self, device_id: Optional[str] = None) -> Dict[str, List[dict]]:
        """Get the recent commands sent per device (optionally for one device)."""
        with self._commands_lock:
            if device_id is not None:
                history = self._device_commands.get(device_id)
                return {device_id: list(history)} if history else {}
            return {k: list(v) for k, v in self._device_commands.items()}

    def _create_notification(
        self,
        action: NotificationAction,
        context: RuleExecutionContext
    ) -> None:
        if not action.message:
            return
        self.notifications.add(
            action.message,
            severity=action.severity or Severity.MEDIUM,
            device_id=context.trigger_device.device_id,
            rule_id=context.rule.id,
        )

    def _log_message(self, action: LogAction, context: RuleExecutionContext) -> None:
        log_data = {
            "timestamp": iso_timestamp(context.timestamp),
            "ruleId": context.rule.id,
            "ruleName": context.rule.name,
            "triggerDevice": context.trigger_device.device_id,
            "message": action.message or f"Rule {context.rule.name} executed",
        }

        if self.config.enable_logging:
            logging.info("Rule log: %s", log_data)

        if self.mqtt is not None:
            topic = build_topic(
                self.config.topic_root, TopicStructure.CONTROL_CENTER, ControlCenterTopics.LOG
            )
            self.mqtt.publish(topic, to_json(log_data), qos=0)

    def _execute_webhook(self, action: WebhookAction, context: RuleExecutionContext) -> None:
        if not action.webhook_url:
            return

        trigger = context.trigger_device.as_mapping()
        trigger["timestamp"] = iso_timestamp(context.trigger_device.timestamp)
        body = {
            "rule": context.rule.to_dict(),
            "triggerDevice": trigger,
            "timestamp": iso_timestamp(context.timestamp),
        }

        if self._http is None:
            self._http = httpx.Client(timeout=self.config.webhook_timeout)

        try:
            response = self._http.post(action.webhook_url, json=body)
            response.raise_for_status()
            logging.info("Webhook %s answered %s", action.webhook_url, response.status_code)
        except httpx.HTTPError as e:
            logging.error("Webhook %s failed: %s", action.webhook_url, e)
