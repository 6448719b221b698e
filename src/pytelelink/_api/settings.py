"""Device settings endpoint.

Endpoints:
  - /api/devices/{mid}/settings/expanded
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from pytelelink._constants import EXPANDED_SETTINGS_ENDPOINT
from pytelelink._transport import Transport
from pytelelink.exceptions import TransportError
from pytelelink.models.settings import SettingsSnapshot

_logger = logging.getLogger(__name__)


def fetch_settings(transport: Transport, mid: str) -> SettingsSnapshot:
    """Download the expanded settings package for *mid*."""
    endpoint = EXPANDED_SETTINGS_ENDPOINT.format(mid=mid)
    received = transport.get_text(endpoint)
    if not received.strip():
        raise TransportError(f"Empty settings response from {endpoint}", endpoint=endpoint)
    try:
        snapshot = SettingsSnapshot.model_validate_json(received)
    except ValidationError as exc:
        raise TransportError(f"Invalid settings payload from {endpoint}: {exc}", endpoint=endpoint) from exc
    _logger.debug("Fetched %d settings mid=%s", len(snapshot.values), mid)
    return snapshot
