"""Live connection descriptor endpoint.

Endpoints:
  - /api/devices/{mid}/connect
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from pytelelink._constants import DEVICE_CONNECT_ENDPOINT
from pytelelink._transport import Transport
from pytelelink.exceptions import TransportError
from pytelelink.models.connection import DeviceConnection

_logger = logging.getLogger(__name__)


def fetch_connection(transport: Transport, mid: str) -> DeviceConnection:
    """Request broker connection parameters for *mid*."""
    endpoint = DEVICE_CONNECT_ENDPOINT.format(mid=mid)
    received = transport.get_text(endpoint)
    if not received.strip():
        raise TransportError(f"Empty connection descriptor from {endpoint}", endpoint=endpoint)
    try:
        descriptor = DeviceConnection.model_validate_json(received)
    except ValidationError as exc:
        raise TransportError(f"Invalid connection descriptor from {endpoint}: {exc}", endpoint=endpoint) from exc
    if descriptor.node is None:
        raise TransportError(f"Connection descriptor from {endpoint} has no broker node", endpoint=endpoint)
    _logger.debug(
        "Connection descriptor mid=%s host=%s backoff=%ss",
        mid,
        descriptor.node.mq_host,
        descriptor.backoff_seconds,
    )
    return descriptor
