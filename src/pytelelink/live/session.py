"""AMQP session lifecycle and the background receiver thread."""

from __future__ import annotations

import enum
import logging
import queue
import ssl
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import pika
import pika.exceptions

from pytelelink._api import connect as _connect_api
from pytelelink._constants import DEFAULT_BACKOFF_INTERVAL, RECEIVER_POLL_INTERVAL, validate_heartbeat_interval
from pytelelink._routing import queue_name
from pytelelink._transport import Transport
from pytelelink.config import TelelinkConfig
from pytelelink.exceptions import TransportError
from pytelelink.models.connection import MessagingNode
from pytelelink.result import Outcome

_logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[pika.ConnectionParameters], Any]
FrameHandler = Callable[["Frame"], Any]

#: Exceptions raised by pika and the socket layer underneath it.
BROKER_ERRORS: tuple[type[BaseException], ...] = (pika.exceptions.AMQPError, OSError)


class SessionState(enum.StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class Frame:
    """One inbound broker delivery."""

    routing_key: str
    body: bytes
    delivery_tag: int
    headers: Mapping[str, Any] = field(default_factory=dict)
    channel: Any = field(default=None, compare=False, repr=False)


class LiveSession:
    """Owns the broker connection, channel and consumer for one device.

    All operations on the channel go through :attr:`lock`. The connection
    chain is torn down top-down by :meth:`disconnect` and never reused;
    reconnecting is always an explicit :meth:`connect` call.

    Parameters
    ----------
    config : TelelinkConfig
        Device configuration.
    transport : Transport
        Control-plane transport used to request broker connection details.
    connection_factory : callable, optional
        Builds a blocking connection from ``pika.ConnectionParameters``.
        Defaults to ``pika.BlockingConnection``.
    on_frame : callable, optional
        Invoked on the receiver thread for every consumed frame, outside the
        session lock.
    """

    def __init__(
        self,
        config: TelelinkConfig,
        transport: Transport,
        *,
        connection_factory: ConnectionFactory | None = None,
        on_frame: FrameHandler | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._connection_factory: ConnectionFactory = connection_factory or pika.BlockingConnection
        self.on_frame = on_frame

        self.lock = threading.RLock()
        self._state = SessionState.DISCONNECTED
        self._heartbeat_interval = validate_heartbeat_interval(config.heartbeat_interval)
        self.backoff_interval: timedelta = DEFAULT_BACKOFF_INTERVAL
        self.transaction_open = False

        self._parameters: pika.ConnectionParameters | None = None
        self._connection: Any = None
        self._channel: Any = None
        self._consumer_tag: str | None = None

        self._frames: queue.Queue[Frame] = queue.Queue()
        self._receiver: threading.Thread | None = None
        self._receiver_stop: threading.Event | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> TelelinkConfig:
        return self._config

    @property
    def mid(self) -> str:
        return self._config.mid

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def channel(self) -> Any:
        """The open channel, or ``None`` while disconnected."""
        return self._channel

    @property
    def is_consuming(self) -> bool:
        return self._consumer_tag is not None

    @property
    def heartbeat_interval(self) -> int:
        """Heartbeat in seconds; ``0`` disables heartbeats."""
        return self._heartbeat_interval

    @heartbeat_interval.setter
    def heartbeat_interval(self, value: int) -> None:
        self._heartbeat_interval = validate_heartbeat_interval(value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> Outcome:
        """Tear down any existing session and open a new one."""
        self.disconnect()
        self._state = SessionState.CONNECTING

        try:
            details = _connect_api.fetch_connection(self._transport, self.mid)
        except TransportError as exc:
            _logger.warning("Connection details unavailable mid=%s: %s", self.mid, exc)
            self._state = SessionState.DISCONNECTED
            return Outcome.failure(exc)

        if details.backoff_seconds > 0:
            self.backoff_interval = timedelta(seconds=details.backoff_seconds)

        assert details.node is not None  # noqa: S101
        parameters = self._build_parameters(details.node)
        _logger.debug(
            "Opening broker connection host=%s port=%s vhost=%s heartbeat=%s",
            parameters.host,
            parameters.port,
            parameters.virtual_host,
            parameters.heartbeat,
        )

        try:
            with self.lock:
                self._parameters = parameters
                self._connection = self._connection_factory(parameters)
                self._channel = self._connection.channel()
                self._channel.basic_qos(prefetch_count=self._config.prefetch_count)
                self.transaction_open = False
                if self._config.use_automatic_callbacks:
                    self._consumer_tag = self._start_consumer()
        except BROKER_ERRORS as exc:
            _logger.warning("Broker connection failed mid=%s: %s", self.mid, exc)
            self.disconnect()
            return Outcome.failure(TransportError(f"Broker connection failed: {exc}", endpoint=parameters.host))

        if self._config.use_automatic_callbacks:
            self._start_receiver()
        self._state = SessionState.CONNECTED
        _logger.debug("Broker session open mid=%s consuming=%s", self.mid, self.is_consuming)
        return Outcome.success()

    def disconnect(self) -> None:
        """Release consumer, channel, connection and parameters, in that order.

        Safe to call repeatedly and on a session that never connected.
        """
        self._stop_receiver()

        with self.lock:
            channel = self._channel
            connection = self._connection
            consumer_tag = self._consumer_tag
            self._consumer_tag = None
            self._channel = None
            self._connection = None
            self._parameters = None
            self.transaction_open = False

            if consumer_tag is not None and channel is not None:
                try:
                    if channel.is_open:
                        channel.basic_cancel(consumer_tag)
                except BROKER_ERRORS:
                    _logger.debug("Consumer cancel failed during disconnect", exc_info=True)
            if channel is not None:
                try:
                    if channel.is_open:
                        channel.close()
                except BROKER_ERRORS:
                    _logger.debug("Channel close failed during disconnect", exc_info=True)
            if connection is not None:
                try:
                    if connection.is_open:
                        connection.close()
                except BROKER_ERRORS:
                    _logger.debug("Connection close failed during disconnect", exc_info=True)

        self._drop_pending_frames()
        if self._state is not SessionState.DISCONNECTED:
            _logger.debug("Broker session closed mid=%s", self.mid)
        self._state = SessionState.DISCONNECTED

    def is_connected(self) -> bool:
        with self.lock:
            return (
                self._parameters is not None
                and self._connection is not None
                and bool(self._connection.is_open)
                and self._channel is not None
                and bool(self._channel.is_open)
            )

    # ------------------------------------------------------------------
    # Consumer control
    # ------------------------------------------------------------------

    def pause_incoming(self) -> Outcome:
        """Cancel the consumer without closing the connection."""
        if not self._config.use_automatic_callbacks:
            return Outcome.failure()
        with self.lock:
            if self._channel is None or self._consumer_tag is None:
                return Outcome.failure()
            try:
                self._channel.basic_cancel(self._consumer_tag)
            except BROKER_ERRORS as exc:
                return Outcome.failure(TransportError(f"Consumer cancel failed: {exc}"))
            self._consumer_tag = None
        _logger.debug("Incoming delivery paused mid=%s", self.mid)
        return Outcome.success()

    def resume_incoming(self) -> Outcome:
        """Register the consumer again after :meth:`pause_incoming`."""
        if not self._config.use_automatic_callbacks:
            return Outcome.failure()
        with self.lock:
            if self._channel is None or self._consumer_tag is not None:
                return Outcome.failure()
            try:
                self._consumer_tag = self._start_consumer()
            except BROKER_ERRORS as exc:
                return Outcome.failure(TransportError(f"Consumer registration failed: {exc}"))
        _logger.debug("Incoming delivery resumed mid=%s", self.mid)
        return Outcome.success()

    # ------------------------------------------------------------------
    # Acknowledgement and polling
    # ------------------------------------------------------------------

    def acknowledge(self, frame: Frame, accepted: bool) -> None:
        """Ack *frame*, or nack it without requeue."""
        with self.lock:
            channel = self._channel
            if channel is None or (frame.channel is not None and frame.channel is not channel):
                _logger.debug("Dropping ack for tag=%s, channel closed", frame.delivery_tag)
                return
            try:
                if accepted:
                    channel.basic_ack(delivery_tag=frame.delivery_tag)
                else:
                    channel.basic_nack(delivery_tag=frame.delivery_tag, requeue=False)
            except BROKER_ERRORS:
                _logger.warning("Acknowledgement failed for tag=%s", frame.delivery_tag, exc_info=True)

    def get_frame(self) -> Frame | None:
        """Pull one queued frame without registering a consumer.

        Returns ``None`` when the queue is empty or the session is closed.
        """
        with self.lock:
            channel = self._channel
            if channel is None:
                return None
            method, properties, body = channel.basic_get(queue=queue_name(self.mid), auto_ack=False)
        if method is None:
            return None
        return Frame(
            routing_key=method.routing_key,
            body=body or b"",
            delivery_tag=method.delivery_tag,
            headers=getattr(properties, "headers", None) or {},
            channel=channel,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_parameters(self, node: MessagingNode) -> pika.ConnectionParameters:
        credentials = pika.PlainCredentials(self._config.mid, self._config.pre_shared_key)
        common: dict[str, Any] = {
            "host": node.mq_host,
            "virtual_host": node.mq_virtual_host,
            "credentials": credentials,
            "heartbeat": self._heartbeat_interval,
            "socket_timeout": self._config.timeout,
            "blocked_connection_timeout": self._config.timeout,
        }
        if not self._config.use_https:
            return pika.ConnectionParameters(port=node.mq_port_unenc, **common)

        context = ssl.create_default_context()
        if self._config.ignore_ssl_certificate_errors:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return pika.ConnectionParameters(
            port=node.mq_port_enc,
            ssl_options=pika.SSLOptions(context, server_hostname=node.mq_host),
            **common,
        )

    def _start_consumer(self) -> str:
        return self._channel.basic_consume(
            queue=queue_name(self.mid),
            on_message_callback=self._on_message,
            auto_ack=False,
        )

    def _on_message(self, channel: Any, method: Any, properties: Any, body: bytes) -> None:
        self._frames.put(
            Frame(
                routing_key=method.routing_key,
                body=body or b"",
                delivery_tag=method.delivery_tag,
                headers=getattr(properties, "headers", None) or {},
                channel=channel,
            )
        )

    def _start_receiver(self) -> None:
        stop = threading.Event()
        frames: queue.Queue[Frame] = queue.Queue()
        thread = threading.Thread(
            target=self._receive_loop, args=(stop, frames), name=f"pytelelink-receiver-{self.mid}", daemon=True
        )
        self._frames = frames
        self._receiver = thread
        self._receiver_stop = stop
        thread.start()

    def _stop_receiver(self) -> None:
        thread, stop = self._receiver, self._receiver_stop
        self._receiver = None
        self._receiver_stop = None
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._config.timeout)
            if thread.is_alive():
                _logger.warning(
                    "Receiver thread still busy after %.1fs, detaching mid=%s", self._config.timeout, self.mid
                )

    def _drop_pending_frames(self) -> None:
        while True:
            try:
                self._frames.get_nowait()
            except queue.Empty:
                return

    def _receive_loop(self, stop: threading.Event, frames: queue.Queue[Frame]) -> None:
        _logger.debug("Receiver thread started mid=%s", self.mid)
        while not stop.is_set():
            with self.lock:
                connection = self._connection
                if connection is None:
                    break
                try:
                    connection.process_data_events(time_limit=0)
                except BROKER_ERRORS:
                    _logger.warning("Broker connection lost mid=%s", self.mid, exc_info=True)
                    break

            try:
                frame = frames.get(timeout=RECEIVER_POLL_INTERVAL)
            except queue.Empty:
                continue
            if stop.is_set():
                break

            handler = self.on_frame
            if handler is None:
                self.acknowledge(frame, accepted=False)
                continue
            try:
                handler(frame)
            except Exception:
                _logger.exception("Frame handler failed routing_key=%s", frame.routing_key)
                self.acknowledge(frame, accepted=False)
        _logger.debug("Receiver thread stopped mid=%s", self.mid)
