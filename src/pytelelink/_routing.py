"""Hierarchical routing keys and per-device broker addresses.

Routing keys have the shape ``"{mid}.{class}.{subject}[.{suffix}]"``:

* ``{mid}.O.{observation_id}``                 observation (device -> service)
* ``{mid}.C.{command_id}``                     command (service -> device)
* ``{mid}.CR.{command_id}.{timestamp_ms}``     command response (device -> service)
* ``{mid}.P.{pulse_id}``                       pulse (both directions)

Device identifiers never contain ``.``, so the first segment is always the
identity.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime


class MessageClass(enum.StrEnum):
    OBSERVATION = "O"
    COMMAND = "C"
    COMMAND_RESPONSE = "CR"
    PULSE = "P"


@dataclass(frozen=True, slots=True)
class RoutingAddress:
    """Parsed routing key."""

    mid: str
    message_class: MessageClass | None
    subject_id: int | None
    raw: str


def exchange_name(mid: str) -> str:
    return f"{mid}.X"


def queue_name(mid: str) -> str:
    return f"{mid}.Q"


def observation_key(mid: str, observation_id: int) -> str:
    return f"{mid}.{MessageClass.OBSERVATION}.{observation_id}"


def command_key(mid: str, command_id: int) -> str:
    return f"{mid}.{MessageClass.COMMAND}.{command_id}"


def command_response_key(mid: str, command_id: int, command_timestamp: datetime) -> str:
    ts_ms = int(command_timestamp.timestamp() * 1000)
    return f"{mid}.{MessageClass.COMMAND_RESPONSE}.{command_id}.{ts_ms}"


def pulse_key(mid: str, pulse_id: int = 0) -> str:
    return f"{mid}.{MessageClass.PULSE}.{pulse_id}"


def parse_routing_key(routing_key: str) -> RoutingAddress:
    """Split *routing_key* into identity, message class and subject id.

    Unrecognised classes and non-numeric subjects come back as ``None``
    rather than raising, so the dispatcher can reject the frame.
    """
    parts = routing_key.split(".")
    mid = parts[0]

    message_class: MessageClass | None = None
    if len(parts) > 1:
        try:
            message_class = MessageClass(parts[1])
        except ValueError:
            message_class = None

    subject_id: int | None = None
    if len(parts) > 2:
        try:
            subject_id = int(parts[2])
        except ValueError:
            subject_id = None

    return RoutingAddress(mid=mid, message_class=message_class, subject_id=subject_id, raw=routing_key)
