from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from conftest import MID, PING_ENDPOINT, FakeTransport

from pytelelink.buffer import BufferStore
from pytelelink.exceptions import DataTypeError, TransportError
from pytelelink.forward import ObservationForwarder
from pytelelink.models.observations import DoubleObservation, IntegerObservation, Observation, ObservationBatch

IMPORT_ENDPOINT = f"/api/devices/{MID}/observations/import"
NOTIFY_ENDPOINT = f"/api/devices/{MID}/observations"


def _dt(second: int) -> datetime:
    return datetime(2026, 3, 1, 12, 0, second, tzinfo=UTC)


def _delivered(transport: FakeTransport, endpoint: str = IMPORT_ENDPOINT) -> list[tuple[int, float]]:
    pairs: list[tuple[int, float]] = []
    for body in transport.posted(endpoint):
        for group in json.loads(body):
            for observation in group["Observations"]:
                pairs.append((group["ObservationId"], observation["Value"]))
    return pairs


@pytest.fixture
def buffer(tmp_path: Path) -> BufferStore:
    return BufferStore(tmp_path / "buffer.db")


def test_offline_buffering_then_drain_delivers_in_order(buffer: BufferStore) -> None:
    transport = FakeTransport()
    forwarder = ObservationForwarder(MID, transport, buffer)

    observations = [DoubleObservation(timestamp=_dt(i), value=float(i) + 0.5) for i in range(3)]
    outcome = forwarder.log_series(42, observations)

    assert outcome
    assert outcome.uploaded is False
    assert isinstance(outcome.error, TransportError)
    assert forwarder.buffered_row_count() == 3

    transport.responses[PING_ENDPOINT] = '"PONG"'
    transport.responses[IMPORT_ENDPOINT] = ""

    assert forwarder.drain_buffer()
    assert forwarder.buffered_row_count() == 0
    assert _delivered(transport) == [(42, 0.5), (42, 1.5), (42, 2.5)]


def test_healthy_network_uploads_without_buffering(buffer: BufferStore) -> None:
    transport = FakeTransport({IMPORT_ENDPOINT: ""})
    forwarder = ObservationForwarder(MID, transport, buffer)

    outcome = forwarder.log_observation(5, IntegerObservation(timestamp=_dt(0), value=17))

    assert outcome
    assert outcome.uploaded is True
    assert buffer.count_pending() == 0
    # Empty backlog means no reachability check.
    assert all(endpoint != PING_ENDPOINT for _, endpoint, _ in transport.calls)


def test_attempt_upload_false_only_buffers(buffer: BufferStore) -> None:
    transport = FakeTransport({IMPORT_ENDPOINT: "", PING_ENDPOINT: "PONG"})
    forwarder = ObservationForwarder(MID, transport, buffer)

    outcome = forwarder.log_observation(5, IntegerObservation(timestamp=_dt(0), value=1), attempt_upload=False)

    assert outcome
    assert outcome.uploaded is False
    assert transport.calls == []
    assert buffer.count_pending() == 1


def test_backlog_is_drained_before_new_batch(buffer: BufferStore) -> None:
    transport = FakeTransport({IMPORT_ENDPOINT: "", PING_ENDPOINT: "PONG"})
    forwarder = ObservationForwarder(MID, transport, buffer)
    forwarder.log_observation(1, IntegerObservation(timestamp=_dt(0), value=10), attempt_upload=False)

    outcome = forwarder.log_observation(2, IntegerObservation(timestamp=_dt(1), value=20))

    assert outcome.uploaded is True
    assert _delivered(transport) == [(1, 10), (2, 20)]
    assert buffer.count_pending() == 0


def test_partial_failure_keeps_remaining_rows_pending(buffer: BufferStore) -> None:
    transport = FakeTransport(
        {
            PING_ENDPOINT: "PONG",
            IMPORT_ENDPOINT: ["", TransportError("HTTP 503", status_code=503, endpoint=IMPORT_ENDPOINT)],
        }
    )
    forwarder = ObservationForwarder(MID, transport, buffer, upload_row_limit=2)
    batch = ObservationBatch.build((7, IntegerObservation(timestamp=_dt(i), value=i)) for i in range(5))
    forwarder.log_observations(batch, attempt_upload=False)

    outcome = forwarder.drain_buffer()

    assert not outcome
    assert buffer.count_pending() == 3
    assert _delivered(transport) == [(7, 0), (7, 1)]

    transport.responses[IMPORT_ENDPOINT] = ""
    assert forwarder.drain_buffer()
    assert buffer.count_pending() == 0
    assert _delivered(transport) == [(7, i) for i in range(5)]


def test_unlimited_row_limit_drains_in_one_upload(buffer: BufferStore) -> None:
    transport = FakeTransport({PING_ENDPOINT: "PONG", IMPORT_ENDPOINT: ""})
    forwarder = ObservationForwarder(MID, transport, buffer, upload_row_limit=0)
    batch = ObservationBatch.build((7, IntegerObservation(timestamp=_dt(i), value=i)) for i in range(5))
    forwarder.log_observations(batch, attempt_upload=False)

    assert forwarder.drain_buffer()
    assert len(transport.posted(IMPORT_ENDPOINT)) == 1
    assert _delivered(transport) == [(7, i) for i in range(5)]
    assert buffer.count_pending() == 0


def test_unbufferable_observation_leaves_batch_unwritten(buffer: BufferStore) -> None:
    transport = FakeTransport()
    forwarder = ObservationForwarder(MID, transport, buffer)
    batch = ObservationBatch.build(
        [
            (1, IntegerObservation(timestamp=_dt(0), value=1)),
            (2, Observation(timestamp=_dt(1))),
            (3, IntegerObservation(timestamp=_dt(2), value=3)),
        ]
    )

    with pytest.raises(DataTypeError):
        forwarder.log_observations(batch, attempt_upload=False)

    assert buffer.count_pending() == 0


def test_unreachable_service_skips_drain(buffer: BufferStore) -> None:
    transport = FakeTransport({IMPORT_ENDPOINT: ""})
    forwarder = ObservationForwarder(MID, transport, buffer)
    forwarder.log_observation(1, IntegerObservation(timestamp=_dt(0), value=1), attempt_upload=False)

    outcome = forwarder.drain_buffer()

    assert not outcome
    assert transport.posted(IMPORT_ENDPOINT) == []
    assert buffer.count_pending() == 1


def test_empty_backlog_drain_succeeds_without_ping(buffer: BufferStore) -> None:
    transport = FakeTransport()
    forwarder = ObservationForwarder(MID, transport, buffer)

    assert forwarder.drain_buffer()
    assert transport.calls == []


def test_notify_listeners_uses_notifying_endpoint(buffer: BufferStore) -> None:
    transport = FakeTransport({NOTIFY_ENDPOINT: ""})
    forwarder = ObservationForwarder(MID, transport, buffer, notify_listeners=True)

    assert forwarder.log_observation(4, DoubleObservation(timestamp=_dt(0), value=2.0)).uploaded
    assert _delivered(transport, NOTIFY_ENDPOINT) == [(4, 2.0)]


def test_clear_buffer_variants(buffer: BufferStore) -> None:
    forwarder = ObservationForwarder(MID, FakeTransport(), buffer)
    ids = buffer.append_observations(1, [IntegerObservation(timestamp=_dt(i), value=i) for i in range(4)])

    forwarder.clear_buffer(ids[0])
    assert forwarder.buffered_row_count() == 3

    forwarder.clear_buffer_between(_dt(1), _dt(2))
    assert forwarder.buffered_row_count() == 1

    forwarder.clear_buffer()
    assert forwarder.buffered_row_count() == 0

    buffer.append_observations(1, [IntegerObservation(timestamp=_dt(9), value=9)])
    forwarder.empty_buffer()
    assert buffer.scan_pending() == []
