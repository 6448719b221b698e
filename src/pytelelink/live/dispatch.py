"""Routing of inbound broker frames to registered handlers."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from pytelelink._routing import MessageClass, parse_routing_key
from pytelelink.live.session import Frame
from pytelelink.models.commands import Command
from pytelelink.models.pulse import Pulse

_logger = logging.getLogger(__name__)

CommandHandler = Callable[[str, Command], Any]
PulseHandler = Callable[[str, int, Pulse], Any]
Acknowledge = Callable[[Frame, bool], None]


class Dispatcher:
    """Matches frames against command and pulse handlers.

    Handlers are keyed by the id carried in the decoded message body. When
    several handlers are registered for the same id the first one wins.
    Every frame is either acknowledged after its handler returns or
    negatively acknowledged without requeue.
    """

    def __init__(self, mid: str, acknowledge: Acknowledge) -> None:
        self._mid = mid
        self._acknowledge = acknowledge
        self._lock = threading.Lock()
        self._command_handlers: defaultdict[int, list[CommandHandler]] = defaultdict(list)
        self._pulse_handlers: defaultdict[int, list[PulseHandler]] = defaultdict(list)

    def register_command_handler(self, command_id: int, handler: CommandHandler) -> None:
        with self._lock:
            self._command_handlers[command_id].append(handler)

    def unregister_command_handler(self, command_id: int) -> None:
        """Remove every handler registered for *command_id*."""
        with self._lock:
            self._command_handlers.pop(command_id, None)

    def register_pulse_handler(self, pulse_id: int, handler: PulseHandler) -> None:
        with self._lock:
            self._pulse_handlers[pulse_id].append(handler)

    def unregister_pulse_handler(self, pulse_id: int) -> None:
        """Remove every handler registered for *pulse_id*."""
        with self._lock:
            self._pulse_handlers.pop(pulse_id, None)

    def has_command_handler(self, command_id: int) -> bool:
        with self._lock:
            return bool(self._command_handlers.get(command_id))

    def has_pulse_handler(self, pulse_id: int) -> bool:
        with self._lock:
            return bool(self._pulse_handlers.get(pulse_id))

    def dispatch(self, frame: Frame) -> bool:
        """Deliver *frame* to its handler and acknowledge it.

        Returns ``True`` when a handler ran and the frame was acknowledged,
        ``False`` when the frame was rejected. Handler exceptions propagate
        and leave the frame unacknowledged.
        """
        if not frame.routing_key:
            return self._reject(frame, "empty routing key")

        address = parse_routing_key(frame.routing_key)
        if address.mid != self._mid:
            return self._reject(frame, f"foreign identity {address.mid!r}")
        if not frame.body:
            return self._reject(frame, "empty body")

        if address.message_class is MessageClass.COMMAND:
            try:
                command = Command.model_validate_json(frame.body)
            except ValidationError as exc:
                return self._reject(frame, f"malformed command body: {exc.error_count()} errors")
            command_handler = self._first(self._command_handlers, command.id)
            if command_handler is None:
                return self._reject(frame, f"no handler for command {command.id}")
            command_handler(address.mid, command)

        elif address.message_class is MessageClass.PULSE:
            try:
                pulse = Pulse.model_validate_json(frame.body)
            except ValidationError as exc:
                return self._reject(frame, f"malformed pulse body: {exc.error_count()} errors")
            pulse_handler = self._first(self._pulse_handlers, pulse.pulse_id)
            if pulse_handler is None:
                return self._reject(frame, f"no handler for pulse {pulse.pulse_id}")
            pulse_handler(address.mid, pulse.pulse_id, pulse)

        else:
            return self._reject(frame, f"unsupported message class {address.message_class}")

        self._acknowledge(frame, True)
        return True

    def _first(self, registry: defaultdict[int, list[Any]], subject_id: int) -> Any:
        with self._lock:
            handlers = registry.get(subject_id)
            return handlers[0] if handlers else None

    def _reject(self, frame: Frame, reason: str) -> bool:
        _logger.warning("Rejecting frame routing_key=%s: %s", frame.routing_key, reason)
        self._acknowledge(frame, False)
        return False
