"""Command endpoints.

Endpoints:
  - /api/devices/{mid}/commands/queue
  - /api/devices/{mid}/commands/{command_id}/response
"""

from __future__ import annotations

import logging

from pydantic import TypeAdapter, ValidationError

from pytelelink._constants import COMMAND_QUEUE_ENDPOINT, COMMAND_RESPONSE_ENDPOINT
from pytelelink._transport import Transport
from pytelelink.exceptions import TransportError
from pytelelink.models.commands import Command, CommandResponse

_logger = logging.getLogger(__name__)

_COMMAND_LIST = TypeAdapter(list[Command])


def get_command_queue(transport: Transport, mid: str) -> list[Command]:
    """Return pending commands for *mid* (empty list when none are queued)."""
    endpoint = COMMAND_QUEUE_ENDPOINT.format(mid=mid)
    received = transport.get_text(endpoint)
    if not received.strip() or received.strip() == "null":
        return []
    try:
        return _COMMAND_LIST.validate_json(received)
    except ValidationError as exc:
        raise TransportError(f"Invalid command queue payload from {endpoint}: {exc}", endpoint=endpoint) from exc


def respond_to_command(transport: Transport, mid: str, command_id: int, response: CommandResponse) -> None:
    """Send *response* for *command_id* over HTTP."""
    endpoint = COMMAND_RESPONSE_ENDPOINT.format(mid=mid, command_id=command_id)
    transport.post_text(endpoint, response.to_json())
    _logger.debug("Command response sent mid=%s command_id=%s accepted=%s", mid, command_id, response.was_accepted)
