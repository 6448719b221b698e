from __future__ import annotations

import json
import threading
from datetime import UTC, datetime

import pytest
from conftest import MID, FakeConnectionFactory, FakeTransport, make_config

from pytelelink.exceptions import ConfigurationError, TransportError
from pytelelink.live.device import LiveDevice
from pytelelink.models.commands import Command
from pytelelink.models.observations import DoubleObservation

TS = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _connected(transport: FakeTransport, factory: FakeConnectionFactory, **overrides: object) -> LiveDevice:
    device = LiveDevice(make_config(**overrides), transport, connection_factory=factory)
    assert device.connect()
    return device


def test_publish_observation_uses_transient_json_message(
    transport: FakeTransport, factory: FakeConnectionFactory
) -> None:
    device = _connected(transport, factory)

    assert device.publish_observation(17, DoubleObservation(timestamp=TS, value=3.25))

    message = factory.channel.published[0]
    assert message.exchange == f"{MID}.X"
    assert message.routing_key == f"{MID}.O.17"
    assert message.mandatory is True
    assert message.properties.delivery_mode == 1
    assert message.properties.content_type == "application/json"
    assert json.loads(message.body) == {"Timestamp": "2026-03-01T12:00:00Z", "Value": 3.25}


def test_publish_raw_bytes_observation(transport: FakeTransport, factory: FakeConnectionFactory) -> None:
    device = _connected(transport, factory)

    assert device.publish_observation(2, b"\x00\x01")
    assert factory.channel.published[0].body == b"\x00\x01"


def test_command_response_is_persistent_and_echoes_command_timestamp(
    transport: FakeTransport, factory: FakeConnectionFactory
) -> None:
    device = _connected(transport, factory)
    command = Command(id=9, timestamp=TS)
    delivered = datetime(2026, 3, 1, 12, 0, 5, tzinfo=UTC)

    assert device.publish_command_response(command, was_accepted=False, timestamp=delivered, result_code=4)

    message = factory.channel.published[0]
    ts_ms = int(TS.timestamp() * 1000)
    assert message.routing_key == f"{MID}.CR.9.{ts_ms}"
    assert message.properties.delivery_mode == 2
    body = json.loads(message.body)
    assert body["Id"] == 9
    assert body["WasAccepted"] is False
    assert body["ResultCode"] == 4
    assert body["Timestamp"].startswith("2026-03-01T12:00:00")
    assert body["DeliveredAt"].startswith("2026-03-01T12:00:05")


def test_pulse_has_device_id_zero_and_expiration(transport: FakeTransport, factory: FakeConnectionFactory) -> None:
    device = _connected(transport, factory)

    assert device.send_pulse(TS, expiry_ms=1500)
    assert device.send_pulse(TS, expiry_ms=0)

    first, second = factory.channel.published
    assert first.routing_key == f"{MID}.P.0"
    assert first.properties.expiration == "1500"
    assert first.properties.delivery_mode == 1
    assert second.properties.expiration is None
    body = json.loads(first.body)
    assert body["MID"] == MID
    assert body["PulseId"] == 0


def test_publish_without_connection_fails_without_side_effects(transport: FakeTransport) -> None:
    device = LiveDevice(make_config(), transport)

    outcome = device.send_pulse()

    assert not outcome
    assert isinstance(outcome.error, TransportError)
    assert not device.publish_observation(1, b"x")
    assert not device.publish_command_response(Command(id=1, timestamp=TS))


def test_broker_publish_error_becomes_failure(transport: FakeTransport, factory: FakeConnectionFactory) -> None:
    device = _connected(transport, factory)
    factory.channel.fail_publish = True

    outcome = device.publish_observation(1, b"x")

    assert not outcome
    assert isinstance(outcome.error, TransportError)


@pytest.mark.parametrize("connect", [False, True])
def test_transactions_rejected_with_automatic_callbacks(
    transport: FakeTransport, factory: FakeConnectionFactory, connect: bool
) -> None:
    device = LiveDevice(make_config(use_automatic_callbacks=True), transport, connection_factory=factory)
    try:
        if connect:
            assert device.connect()
        with pytest.raises(ConfigurationError):
            device.publish_begin()
        with pytest.raises(ConfigurationError):
            device.publish_commit()
        with pytest.raises(ConfigurationError):
            device.publish_rollback()
    finally:
        device.disconnect()


def test_atomic_mode_rejects_publish_inside_transaction(
    transport: FakeTransport, factory: FakeConnectionFactory
) -> None:
    device = _connected(transport, factory)

    assert device.publish_begin()
    assert device.transaction_open

    with pytest.raises(ConfigurationError):
        device.publish_observation(1, b"x")
    with pytest.raises(ConfigurationError):
        device.send_pulse()

    assert device.publish_rollback()
    assert not device.transaction_open
    assert device.publish_observation(1, b"x")


def test_atomic_check_sees_transaction_opened_under_lock(
    transport: FakeTransport, factory: FakeConnectionFactory
) -> None:
    device = _connected(transport, factory)
    session = device.session
    errors: list[Exception] = []

    def publish() -> None:
        try:
            device.publish_observation(1, b"x")
        except ConfigurationError as exc:
            errors.append(exc)

    with session.lock:
        worker = threading.Thread(target=publish)
        worker.start()
        worker.join(0.1)
        assert worker.is_alive()
        session.transaction_open = True
    worker.join(2.0)

    assert len(errors) == 1
    assert factory.channel.published == []


def test_batch_mode_brackets_publishes(transport: FakeTransport, factory: FakeConnectionFactory) -> None:
    device = _connected(transport, factory, use_atomic_transactions=False)

    assert device.publish_begin()
    assert device.publish_observation(1, b"a")
    assert device.publish_observation(2, b"b")
    assert device.publish_commit()

    assert factory.channel.tx == ["select", "commit"]
    assert [m.routing_key for m in factory.channel.published] == [f"{MID}.O.1", f"{MID}.O.2"]
    assert not device.transaction_open


def test_begin_without_connection_fails(transport: FakeTransport) -> None:
    device = LiveDevice(make_config(), transport)
    assert not device.publish_begin()
