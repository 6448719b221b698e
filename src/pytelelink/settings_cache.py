"""Device settings with a durable fallback copy."""

from __future__ import annotations

import logging
import threading

from pytelelink._api import settings as _settings_api
from pytelelink._transport import Transport
from pytelelink.buffer import BufferStore
from pytelelink.exceptions import BufferStoreError, NotFoundError, NotInitializedError, TransportError
from pytelelink.models.settings import SettingsSnapshot, SettingValue
from pytelelink.result import Outcome

_logger = logging.getLogger(__name__)


class SettingsCache:
    """Holds the active settings snapshot for one device.

    A successful :meth:`refresh` replaces the durable copy wholesale and
    activates the fetched snapshot. A failed refresh activates whatever was
    last persisted instead.
    """

    def __init__(self, mid: str, transport: Transport, buffer: BufferStore | None = None) -> None:
        self._mid = mid
        self._transport = transport
        self._buffer = buffer
        self._lock = threading.Lock()
        self._snapshot: SettingsSnapshot | None = None

    @property
    def snapshot(self) -> SettingsSnapshot | None:
        """The active snapshot, or ``None`` before anything was loaded."""
        return self._snapshot

    def refresh(self) -> Outcome:
        """Fetch the remote snapshot, falling back to the durable copy.

        The outcome is successful when a snapshot is active afterwards; a
        fallback to the durable copy still carries the fetch error.
        """
        try:
            snapshot = _settings_api.fetch_settings(self._transport, self._mid)
        except TransportError as exc:
            _logger.warning("Settings fetch failed mid=%s, using buffered copy: %s", self._mid, exc)
            try:
                fallback = self.load_from_buffer()
            except BufferStoreError as load_exc:
                _logger.warning("Loading buffered settings failed mid=%s: %s", self._mid, load_exc)
                self._activate(None)
                return Outcome.failure(exc)
            return Outcome(ok=fallback is not None, error=exc)

        if self._buffer is not None:
            try:
                self._buffer.replace_settings(snapshot)
            except BufferStoreError as exc:
                _logger.warning("Persisting settings failed mid=%s: %s", self._mid, exc)
        self._activate(snapshot)
        return Outcome.success()

    def load_from_buffer(self) -> SettingsSnapshot | None:
        """Activate the last persisted snapshot (``None`` if there is none)."""
        snapshot = self._buffer.load_settings() if self._buffer is not None else None
        self._activate(snapshot)
        return snapshot

    def get_value(self, setting_id: int) -> SettingValue:
        snapshot = self._snapshot
        if snapshot is None:
            raise NotInitializedError("Settings have not been loaded")
        value = snapshot.find(setting_id)
        if value is None:
            raise NotFoundError(f"Setting {setting_id} not found")
        return value

    def _activate(self, snapshot: SettingsSnapshot | None) -> None:
        with self._lock:
            self._snapshot = snapshot
