from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pytelelink._codec import coerce_data_type, decode_observation, encode_observation, format_value, parse_value
from pytelelink.exceptions import DataTypeError
from pytelelink.models.observations import (
    BooleanObservation,
    DataType,
    DescriptiveStatistics,
    DoubleObservation,
    Observation,
    Position,
    StatisticsObservation,
)

TS = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_boolean_text_forms() -> None:
    assert format_value(DataType.BOOLEAN, True) == "true"
    assert parse_value(DataType.BOOLEAN, "TRUE") is True
    assert parse_value(DataType.BOOLEAN, "0") is False
    with pytest.raises(DataTypeError):
        parse_value(DataType.BOOLEAN, "maybe")


def test_double_keeps_full_precision() -> None:
    text = format_value(DataType.DOUBLE, 0.1 + 0.2)
    assert parse_value(DataType.DOUBLE, text) == 0.1 + 0.2


def test_position_with_and_without_altitude() -> None:
    assert format_value(DataType.POSITION, Position(latitude=1.5, longitude=-2.25)) == "1.5,-2.25"
    parsed = parse_value(DataType.POSITION, "1.5,-2.25,100.0")
    assert parsed == Position(latitude=1.5, longitude=-2.25, altitude=100.0)
    with pytest.raises(DataTypeError):
        parse_value(DataType.POSITION, "1.5")


def test_statistics_observation_roundtrip() -> None:
    stats = DescriptiveStatistics(count=3, minimum=1.0, maximum=3.0, mean=2.0, from_timestamp=TS, to_timestamp=TS)
    data_type, payload = encode_observation(StatisticsObservation(timestamp=TS, value=stats))

    assert data_type == DataType.STATISTICS
    restored = decode_observation(data_type, TS, payload)
    assert isinstance(restored, StatisticsObservation)
    assert restored.value == stats


def test_encode_tags_concrete_types() -> None:
    assert encode_observation(BooleanObservation(timestamp=TS, value=False)) == (DataType.BOOLEAN, "false")
    assert encode_observation(DoubleObservation(timestamp=TS, value=2.0)) == (DataType.DOUBLE, "2.0")


def test_base_observation_cannot_be_encoded() -> None:
    with pytest.raises(DataTypeError):
        encode_observation(Observation(timestamp=TS))


@pytest.mark.parametrize("value", [DataType.UNDEFINED, DataType.BINARY, 42, "nope", None])
def test_unsupported_data_types_raise(value: object) -> None:
    with pytest.raises(DataTypeError):
        coerce_data_type(value)


def test_integer_decode_error_is_data_type_error() -> None:
    with pytest.raises(DataTypeError):
        decode_observation(DataType.INTEGER, TS, "1.5")
