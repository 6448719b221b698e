"""Observation upload endpoints.

Endpoints:
  - /api/devices/{mid}/observations          (store and notify listeners)
  - /api/devices/{mid}/observations/import   (store only)
"""

from __future__ import annotations

import logging

from pytelelink._constants import OBSERVATIONS_ENDPOINT, OBSERVATIONS_IMPORT_ENDPOINT
from pytelelink._transport import Transport
from pytelelink.models.observations import ObservationBatch

_logger = logging.getLogger(__name__)


def upload_observations(
    transport: Transport,
    mid: str,
    batch: ObservationBatch,
    *,
    notify_listeners: bool = True,
) -> None:
    """Upload *batch* in one request.

    Parameters
    ----------
    notify_listeners : bool
        ``True`` notifies any listeners on this device; ``False`` imports
        the data into storage without messaging.
    """
    template = OBSERVATIONS_ENDPOINT if notify_listeners else OBSERVATIONS_IMPORT_ENDPOINT
    endpoint = template.format(mid=mid)
    transport.post_text(endpoint, batch.to_json())
    _logger.debug("Uploaded %d observations mid=%s endpoint=%s", len(batch), mid, endpoint)
