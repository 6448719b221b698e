"""Live device: broker session, dispatch and publishing in one object."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from types import TracebackType

from pytelelink._constants import DEFAULT_PULSE_EXPIRY_MS
from pytelelink._transport import Transport
from pytelelink.config import TelelinkConfig
from pytelelink.exceptions import TransportError
from pytelelink.live.dispatch import CommandHandler, Dispatcher, PulseHandler
from pytelelink.live.publisher import Publisher
from pytelelink.live.session import BROKER_ERRORS, ConnectionFactory, LiveSession, SessionState
from pytelelink.models.commands import Command
from pytelelink.models.observations import Observation
from pytelelink.result import Outcome

_logger = logging.getLogger(__name__)


class LiveDevice:
    """Real-time messaging for one device.

    Usage::

        with LiveDevice(config, transport) as live:
            live.register_command_handler(7, on_reboot)
            if live.connect():
                live.send_pulse()

    With ``use_automatic_callbacks`` enabled, inbound frames are dispatched
    on a background receiver thread and handlers must tolerate running
    concurrently with foreground calls. Otherwise call :meth:`fetch` to
    drain the queue on the calling thread.
    """

    def __init__(
        self,
        config: TelelinkConfig,
        transport: Transport,
        *,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self._config = config
        self._session = LiveSession(config, transport, connection_factory=connection_factory)
        self._dispatcher = Dispatcher(config.mid, self._session.acknowledge)
        self._session.on_frame = self._dispatcher.dispatch
        self._publisher = Publisher(self._session)

    def __enter__(self) -> LiveDevice:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disconnect()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def session(self) -> LiveSession:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def heartbeat_interval(self) -> int:
        return self._session.heartbeat_interval

    @heartbeat_interval.setter
    def heartbeat_interval(self, value: int) -> None:
        self._session.heartbeat_interval = value

    @property
    def backoff_interval(self) -> timedelta:
        """Suggested wait before reconnecting, as negotiated by the service."""
        return self._session.backoff_interval

    def connect(self) -> Outcome:
        return self._session.connect()

    def disconnect(self) -> None:
        self._session.disconnect()

    def is_connected(self) -> bool:
        return self._session.is_connected()

    def pause_incoming(self) -> Outcome:
        return self._session.pause_incoming()

    def resume_incoming(self) -> Outcome:
        return self._session.resume_incoming()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def register_command_handler(self, command_id: int, handler: CommandHandler) -> None:
        self._dispatcher.register_command_handler(command_id, handler)

    def unregister_command_handler(self, command_id: int) -> None:
        self._dispatcher.unregister_command_handler(command_id)

    def register_pulse_handler(self, pulse_id: int, handler: PulseHandler) -> None:
        self._dispatcher.register_pulse_handler(pulse_id, handler)

    def unregister_pulse_handler(self, pulse_id: int) -> None:
        self._dispatcher.unregister_pulse_handler(pulse_id)

    def fetch(self) -> Outcome:
        """Pull and dispatch every frame currently queued, then return.

        Handler exceptions propagate to the caller; the frame being handled
        stays unacknowledged.
        """
        if not self._session.is_connected():
            return Outcome.failure(TransportError("Not connected to broker"))
        handled = 0
        while True:
            try:
                frame = self._session.get_frame()
            except BROKER_ERRORS as exc:
                _logger.warning("Fetching queued frames failed after %d: %s", handled, exc)
                return Outcome.failure(TransportError(f"Fetch failed: {exc}"))
            if frame is None:
                break
            self._dispatcher.dispatch(frame)
            handled += 1
        if handled:
            _logger.debug("Fetched %d queued frames mid=%s", handled, self._config.mid)
        return Outcome.success()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    @property
    def transaction_open(self) -> bool:
        return self._publisher.transaction_open

    def publish_observation(self, observation_id: int, observation: Observation | bytes) -> Outcome:
        return self._publisher.publish_observation(observation_id, observation)

    def publish_command_response(
        self,
        command: Command,
        was_accepted: bool = True,
        timestamp: datetime | None = None,
        result_code: int | None = None,
        comment: str | None = None,
    ) -> Outcome:
        return self._publisher.publish_command_response(
            command,
            was_accepted=was_accepted,
            timestamp=timestamp,
            result_code=result_code,
            comment=comment,
        )

    def send_pulse(self, timestamp: datetime | None = None, expiry_ms: int = DEFAULT_PULSE_EXPIRY_MS) -> Outcome:
        return self._publisher.send_pulse(timestamp, expiry_ms)

    def publish_begin(self) -> Outcome:
        return self._publisher.publish_begin()

    def publish_commit(self) -> Outcome:
        return self._publisher.publish_commit()

    def publish_rollback(self) -> Outcome:
        return self._publisher.publish_rollback()
