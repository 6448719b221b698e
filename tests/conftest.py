from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import pika
import pytest

from pytelelink._constants import JSON_CONTENT_TYPE
from pytelelink.config import TelelinkConfig
from pytelelink.exceptions import TransportError

MID = "DEV01"

CONNECT_ENDPOINT = f"/api/devices/{MID}/connect"
PING_ENDPOINT = "/api/tools/ping"

CONNECT_REPLY = json.dumps(
    {
        "MID": MID,
        "Node": {"MQHost": "mq.example.com", "MQPortEnc": 5671, "MQPortUEnc": 5672},
        "BackoffSeconds": 0,
    }
)


class FakeTransport:
    """Scripted control-plane transport.

    ``responses`` maps endpoint -> reply. A reply is a string, an exception
    instance (raised), or a list of either (consumed in order, last one
    repeats).
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, str, str | None]] = []
        self.accepted: list[tuple[str, str]] = []

    def _reply(self, endpoint: str) -> str:
        if endpoint not in self.responses:
            raise TransportError(f"HTTP 404 from {endpoint}", status_code=404, endpoint=endpoint)
        reply = self.responses[endpoint]
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get_text(self, endpoint: str) -> str:
        self.calls.append(("GET", endpoint, None))
        return self._reply(endpoint)

    def post_text(self, endpoint: str, body: str, *, content_type: str = JSON_CONTENT_TYPE) -> str:
        self.calls.append(("POST", endpoint, body))
        reply = self._reply(endpoint)
        self.accepted.append((endpoint, body))
        return reply

    def posted(self, endpoint: str) -> list[str]:
        """Bodies of POSTs to *endpoint* that were answered successfully."""
        return [body for ep, body in self.accepted if ep == endpoint]


@dataclass
class Published:
    exchange: str
    routing_key: str
    body: bytes
    properties: pika.BasicProperties
    mandatory: bool


@dataclass
class FakeChannel:
    is_open: bool = True
    prefetch_count: int | None = None
    consumers: dict[str, Callable[..., Any]] = field(default_factory=dict)
    cancelled: list[str] = field(default_factory=list)
    published: list[Published] = field(default_factory=list)
    acks: list[int] = field(default_factory=list)
    nacks: list[tuple[int, bool]] = field(default_factory=list)
    tx: list[str] = field(default_factory=list)
    queued: list[tuple[str, bytes]] = field(default_factory=list)
    fail_publish: bool = False
    _next_tag: int = 0

    def basic_qos(self, prefetch_count: int = 0, **_: Any) -> None:
        self.prefetch_count = prefetch_count

    def basic_consume(self, queue: str, on_message_callback: Callable[..., Any], auto_ack: bool = False) -> str:
        assert auto_ack is False
        tag = f"ctag-{len(self.consumers) + len(self.cancelled) + 1}"
        self.consumers[tag] = on_message_callback
        return tag

    def basic_cancel(self, consumer_tag: str) -> None:
        self.consumers.pop(consumer_tag, None)
        self.cancelled.append(consumer_tag)

    def basic_publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        properties: pika.BasicProperties | None = None,
        mandatory: bool = False,
    ) -> None:
        if self.fail_publish:
            raise pika.exceptions.AMQPChannelError("channel closed by broker")
        self.published.append(Published(exchange, routing_key, body, properties, mandatory))

    def basic_ack(self, delivery_tag: int = 0, multiple: bool = False) -> None:
        self.acks.append(delivery_tag)

    def basic_nack(self, delivery_tag: int = 0, multiple: bool = False, requeue: bool = True) -> None:
        self.nacks.append((delivery_tag, requeue))

    def basic_get(self, queue: str, auto_ack: bool = False) -> tuple[Any, Any, Any]:
        if not self.queued:
            return None, None, None
        routing_key, body = self.queued.pop(0)
        self._next_tag += 1
        method = SimpleNamespace(routing_key=routing_key, delivery_tag=self._next_tag)
        return method, pika.BasicProperties(headers={}), body

    def deliver(self, routing_key: str, body: bytes) -> int:
        """Push a frame through the registered consumer callback."""
        self._next_tag += 1
        method = SimpleNamespace(routing_key=routing_key, delivery_tag=self._next_tag)
        for callback in list(self.consumers.values()):
            callback(self, method, pika.BasicProperties(), body)
        return self._next_tag

    def tx_select(self) -> None:
        self.tx.append("select")

    def tx_commit(self) -> None:
        self.tx.append("commit")

    def tx_rollback(self) -> None:
        self.tx.append("rollback")

    def close(self) -> None:
        self.is_open = False


class FakeConnection:
    def __init__(self, parameters: pika.ConnectionParameters) -> None:
        self.parameters = parameters
        self.is_open = True
        self.channels: list[FakeChannel] = []

    def channel(self) -> FakeChannel:
        ch = FakeChannel()
        self.channels.append(ch)
        return ch

    def process_data_events(self, time_limit: float | None = 0) -> None:
        return None

    def close(self) -> None:
        self.is_open = False
        for ch in self.channels:
            ch.is_open = False


class FakeConnectionFactory:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.connections: list[FakeConnection] = []

    def __call__(self, parameters: pika.ConnectionParameters) -> FakeConnection:
        if self.error is not None:
            raise self.error
        conn = FakeConnection(parameters)
        self.connections.append(conn)
        return conn

    @property
    def channel(self) -> FakeChannel:
        return self.connections[-1].channels[-1]


def make_config(**overrides: Any) -> TelelinkConfig:
    values: dict[str, Any] = {
        "mid": MID,
        "pre_shared_key": "secret",
        "host": "telelink.example.com",
        "use_automatic_callbacks": False,
    }
    values.update(overrides)
    return TelelinkConfig(**values)


@pytest.fixture
def config() -> TelelinkConfig:
    return make_config()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport({CONNECT_ENDPOINT: CONNECT_REPLY, PING_ENDPOINT: '"PONG"'})


@pytest.fixture
def factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()
