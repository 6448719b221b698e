"""High-level blocking client for one telemetry device."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from types import TracebackType

from pytelelink._api import commands as _commands_api
from pytelelink._api import observations as _observations_api
from pytelelink._api import tools as _tools_api
from pytelelink._redact import redact_for_log
from pytelelink._transport import HttpTransport, Transport
from pytelelink.buffer import BufferStore
from pytelelink.config import TelelinkConfig
from pytelelink.exceptions import ConfigurationError, TransportError
from pytelelink.forward import ObservationForwarder
from pytelelink.live.device import LiveDevice
from pytelelink.live.session import ConnectionFactory
from pytelelink.models.commands import Command, CommandResponse
from pytelelink.models.events import DeviceEvent
from pytelelink.models.observations import Observation, ObservationBatch
from pytelelink.models.settings import SettingValue, SettingsSnapshot
from pytelelink.result import LogOutcome, Outcome
from pytelelink.settings_cache import SettingsCache

_logger = logging.getLogger(__name__)


class DeviceClient:
    """Control-plane, buffering and live messaging for one device.

    Usage::

        with DeviceClient(TelelinkConfig.from_env()) as client:
            client.refresh_settings()
            client.log_observation(3, DoubleObservation(timestamp=now, value=21.5))
            if client.live.connect():
                client.live.send_pulse()

    Buffered logging requires ``buffer_path`` in the configuration.
    """

    def __init__(
        self,
        config: TelelinkConfig,
        *,
        transport: Transport | None = None,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self._config = config
        self._owns_transport = transport is None
        self._transport: Transport = transport if transport is not None else HttpTransport(config)
        self._buffer = BufferStore(config.buffer_path, timeout=config.timeout) if config.buffer_path else None
        self._forwarder = (
            ObservationForwarder(
                config.mid,
                self._transport,
                self._buffer,
                upload_row_limit=config.upload_row_limit,
            )
            if self._buffer is not None
            else None
        )
        self._settings = SettingsCache(config.mid, self._transport, self._buffer)
        self._live = LiveDevice(config, self._transport, connection_factory=connection_factory)
        _logger.debug("Device client created config=%s", redact_for_log(config))

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> DeviceClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Disconnect the live session and release the HTTP transport."""
        self._live.disconnect()
        if self._owns_transport and isinstance(self._transport, HttpTransport):
            self._transport.close()

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def config(self) -> TelelinkConfig:
        return self._config

    @property
    def live(self) -> LiveDevice:
        return self._live

    @property
    def settings(self) -> SettingsCache:
        return self._settings

    @property
    def forwarder(self) -> ObservationForwarder:
        if self._forwarder is None:
            raise ConfigurationError("buffer_path is required for buffered logging")
        return self._forwarder

    # ------------------------------------------------------------------
    # Service tools
    # ------------------------------------------------------------------

    def can_ping_server(self) -> bool:
        return _tools_api.ping(self._transport)

    def get_server_time(self) -> datetime:
        """Return the service clock; raises :class:`TransportError` on failure."""
        return _tools_api.get_server_time(self._transport)

    def report_device_event(self, event: DeviceEvent) -> Outcome:
        return self._call(lambda: _tools_api.report_device_event(self._transport, self._config.mid, event))

    # ------------------------------------------------------------------
    # Commands over HTTP
    # ------------------------------------------------------------------

    def get_command_queue(self) -> list[Command]:
        """Return pending commands; an unreachable service yields an empty list."""
        try:
            return _commands_api.get_command_queue(self._transport, self._config.mid)
        except TransportError as exc:
            _logger.warning("Command queue fetch failed mid=%s: %s", self._config.mid, exc)
            return []

    def respond_to_command(self, command_id: int, response: CommandResponse) -> Outcome:
        return self._call(
            lambda: _commands_api.respond_to_command(self._transport, self._config.mid, command_id, response)
        )

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def upload_observations(self, batch: ObservationBatch, *, notify_listeners: bool = True) -> Outcome:
        """Upload *batch* directly, bypassing the buffer."""
        return self._call(
            lambda: _observations_api.upload_observations(
                self._transport,
                self._config.mid,
                batch,
                notify_listeners=notify_listeners,
            )
        )

    def log_observations(self, batch: ObservationBatch, *, attempt_upload: bool = True) -> LogOutcome:
        return self.forwarder.log_observations(batch, attempt_upload=attempt_upload)

    def log_observation(
        self,
        observation_id: int,
        observation: Observation,
        *,
        attempt_upload: bool = True,
    ) -> LogOutcome:
        return self.forwarder.log_observation(observation_id, observation, attempt_upload=attempt_upload)

    def log_series(
        self,
        observation_id: int,
        observations: Iterable[Observation],
        *,
        attempt_upload: bool = True,
    ) -> LogOutcome:
        return self.forwarder.log_series(observation_id, observations, attempt_upload=attempt_upload)

    def upload_buffer(self) -> Outcome:
        return self.forwarder.drain_buffer()

    def buffered_row_count(self) -> int:
        return self.forwarder.buffered_row_count()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def refresh_settings(self) -> Outcome:
        return self._settings.refresh()

    def load_buffered_settings(self) -> SettingsSnapshot | None:
        return self._settings.load_from_buffer()

    def get_setting(self, setting_id: int) -> SettingValue:
        return self._settings.get_value(setting_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _call(self, request: Callable[[], object]) -> Outcome:
        try:
            request()
        except TransportError as exc:
            _logger.warning("Request failed mid=%s: %s", self._config.mid, exc)
            return Outcome.failure(exc)
        return Outcome.success()
