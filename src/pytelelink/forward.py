"""Store-and-forward delivery of observations.

Observations are uploaded directly when the service is reachable and the
backlog is empty; otherwise they are appended to the local buffer. The
buffer is drained oldest-first in bounded slices, and each confirmed slice
is marked uploaded before the next one is read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from pytelelink._api import observations as _observations_api
from pytelelink._api import tools as _tools_api
from pytelelink._constants import DEFAULT_UPLOAD_ROW_LIMIT, PING_ENDPOINT
from pytelelink._transport import Transport
from pytelelink.buffer import BufferStore, encode_rows
from pytelelink.exceptions import BufferStoreError, TelelinkError, TransportError
from pytelelink.models.observations import Observation, ObservationBatch
from pytelelink.result import LogOutcome, Outcome

_logger = logging.getLogger(__name__)


class ObservationForwarder:
    """Buffer-only-on-failure observation logger.

    Parameters
    ----------
    mid : str
        Device identifier.
    transport : Transport
        Control-plane transport used for the reachability check and uploads.
    buffer : BufferStore
        Local durable buffer.
    upload_row_limit : int
        Maximum rows per upload slice; ``0`` or negative means unlimited.
    notify_listeners : bool
        Upload through the notifying endpoint instead of the import endpoint.
    """

    def __init__(
        self,
        mid: str,
        transport: Transport,
        buffer: BufferStore,
        *,
        upload_row_limit: int = DEFAULT_UPLOAD_ROW_LIMIT,
        notify_listeners: bool = False,
    ) -> None:
        self._mid = mid
        self._transport = transport
        self._buffer = buffer
        self.upload_row_limit = upload_row_limit
        self.notify_listeners = notify_listeners

    @property
    def buffer(self) -> BufferStore:
        return self._buffer

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log_observations(self, batch: ObservationBatch, *, attempt_upload: bool = True) -> LogOutcome:
        """Deliver *batch* directly if possible, otherwise buffer it.

        When ``attempt_upload`` is set the backlog is drained first; the new
        batch is uploaded only if the drain emptied the buffer. If either
        step fails (or ``attempt_upload`` is false) the whole batch is appended
        to the buffer in one transaction. The outcome is successful when the
        batch was either delivered or fully buffered. An observation that
        cannot be buffered raises :class:`DataTypeError` and nothing of the
        batch is written.
        """
        upload_error: TelelinkError | None = None
        if attempt_upload:
            drained = self.drain_buffer()
            if drained:
                delivered = self._deliver(batch)
                if delivered:
                    return LogOutcome(ok=True, uploaded=True)
                upload_error = delivered.error
            else:
                upload_error = drained.error
            _logger.debug("Direct upload unavailable, buffering %d observations: %s", len(batch), upload_error)

        rows = encode_rows(batch.flatten())
        try:
            self._buffer.append_many(rows)
        except BufferStoreError as exc:
            _logger.warning("Buffering observations failed: %s", exc)
            return LogOutcome(ok=False, error=exc)
        return LogOutcome(ok=True, error=upload_error, uploaded=False)

    def log_observation(
        self,
        observation_id: int,
        observation: Observation,
        *,
        attempt_upload: bool = True,
    ) -> LogOutcome:
        return self.log_observations(ObservationBatch.of(observation_id, [observation]), attempt_upload=attempt_upload)

    def log_series(
        self,
        observation_id: int,
        observations: Iterable[Observation],
        *,
        attempt_upload: bool = True,
    ) -> LogOutcome:
        return self.log_observations(ObservationBatch.of(observation_id, observations), attempt_upload=attempt_upload)

    # ------------------------------------------------------------------
    # Draining
    # ------------------------------------------------------------------

    def drain_buffer(self) -> Outcome:
        """Upload the backlog in insertion order.

        Returns success immediately when nothing is pending. Otherwise the
        service is pinged first; if it is unreachable nothing is attempted.
        Each slice that uploads successfully is marked uploaded up to its
        highest id; the first failed slice stops the drain and leaves it
        and everything after it pending.
        """
        try:
            if self._buffer.count_pending() == 0:
                return Outcome.success()
        except BufferStoreError as exc:
            return Outcome.failure(exc)

        if not _tools_api.ping(self._transport):
            return Outcome.failure(TransportError("Service unreachable", endpoint=PING_ENDPOINT))

        try:
            while self._buffer.count_pending() > 0:
                records = self._buffer.scan_pending(self.upload_row_limit)
                if not records:
                    break
                batch = ObservationBatch.build((r.subject_id, r.to_observation()) for r in records)
                delivered = self._deliver(batch)
                if not delivered:
                    _logger.warning(
                        "Buffer drain stopped after failed slice of %d rows: %s",
                        len(records),
                        delivered.error,
                    )
                    return delivered
                self._buffer.mark_uploaded_up_to(records[-1].id)
                _logger.debug("Drained %d buffered rows up to id=%d", len(records), records[-1].id)
        except BufferStoreError as exc:
            return Outcome.failure(exc)
        return Outcome.success()

    def _deliver(self, batch: ObservationBatch) -> Outcome:
        try:
            _observations_api.upload_observations(
                self._transport,
                self._mid,
                batch,
                notify_listeners=self.notify_listeners,
            )
        except TransportError as exc:
            return Outcome.failure(exc)
        return Outcome.success()

    # ------------------------------------------------------------------
    # Buffer maintenance
    # ------------------------------------------------------------------

    def clear_buffer(self, up_to_id: int | None = None) -> None:
        """Mark buffered rows as uploaded, all of them or up to *up_to_id*."""
        if up_to_id is None:
            self._buffer.mark_all_uploaded()
        else:
            self._buffer.mark_uploaded_up_to(up_to_id)

    def clear_buffer_between(self, start: datetime, end: datetime) -> None:
        self._buffer.mark_uploaded_in_range(start, end)

    def empty_buffer(self) -> None:
        """Physically delete all buffered observations."""
        self._buffer.purge()

    def buffered_row_count(self) -> int:
        return self._buffer.count_pending()
