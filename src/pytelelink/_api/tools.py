"""Service tool endpoints.

Endpoints:
  - /api/tools/ping         (reachability check)
  - /api/tools/servertime   (service clock)
  - /api/devices/{mid}/events
"""

from __future__ import annotations

import logging
from datetime import datetime

from pytelelink._constants import DEVICE_EVENTS_ENDPOINT, PING_ENDPOINT, PING_REPLY, SERVER_TIME_ENDPOINT
from pytelelink._transport import Transport
from pytelelink.exceptions import TransportError
from pytelelink.models._base import ensure_utc
from pytelelink.models.events import DeviceEvent

_logger = logging.getLogger(__name__)


def ping(transport: Transport) -> bool:
    """Return ``True`` if the service answers the ping endpoint."""
    try:
        received = transport.get_text(PING_ENDPOINT)
    except TransportError as exc:
        _logger.debug("Ping failed: %s", exc)
        return False
    return PING_REPLY in received


def get_server_time(transport: Transport) -> datetime:
    """Fetch the service clock as an aware UTC datetime."""
    received = transport.get_text(SERVER_TIME_ENDPOINT).strip().strip('"')
    try:
        parsed = datetime.fromisoformat(received.replace("Z", "+00:00"))
    except ValueError as exc:
        raise TransportError(
            f"Failed to obtain server timestamp from {received[:64]!r}",
            endpoint=SERVER_TIME_ENDPOINT,
        ) from exc
    return ensure_utc(parsed)


def report_device_event(transport: Transport, mid: str, event: DeviceEvent) -> None:
    """Post *event* to the device's event log."""
    endpoint = DEVICE_EVENTS_ENDPOINT.format(mid=mid)
    transport.post_text(endpoint, event.to_json())
    _logger.debug("Device event reported mid=%s title=%s", mid, event.title)
