"""String encoding of observation and setting values.

Buffered rows store every value as text tagged with its :class:`DataType`;
the tag selects the encoding on write and the decoder on read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ValidationError

from pytelelink.exceptions import DataTypeError
from pytelelink.models.observations import (
    BooleanObservation,
    DataType,
    DescriptiveStatistics,
    DoubleObservation,
    IntegerObservation,
    Observation,
    Position,
    PositionObservation,
    StatisticsObservation,
    StringObservation,
)

_OBSERVATION_TYPES: dict[DataType, type[Observation]] = {
    DataType.BOOLEAN: BooleanObservation,
    DataType.DOUBLE: DoubleObservation,
    DataType.INTEGER: IntegerObservation,
    DataType.POSITION: PositionObservation,
    DataType.STRING: StringObservation,
    DataType.STATISTICS: StatisticsObservation,
}

_TRUE_TEXT = frozenset({"true", "1"})
_FALSE_TEXT = frozenset({"false", "0"})


def coerce_data_type(value: Any) -> DataType:
    """Return *value* as a bufferable :class:`DataType` or raise :class:`DataTypeError`."""
    try:
        data_type = DataType(int(value))
    except (TypeError, ValueError) as exc:
        raise DataTypeError(f"Unknown data type: {value!r}") from exc
    if data_type not in _OBSERVATION_TYPES:
        raise DataTypeError(f"Unsupported data type: {data_type.name}")
    return data_type


def format_value(data_type: DataType, value: Any) -> str:
    """Encode *value* as text according to *data_type*."""
    data_type = coerce_data_type(data_type)
    if data_type == DataType.BOOLEAN:
        return "true" if value else "false"
    if data_type == DataType.DOUBLE:
        return repr(float(value))
    if data_type == DataType.INTEGER:
        return str(int(value))
    if data_type == DataType.POSITION:
        position = value if isinstance(value, Position) else Position.model_validate(value)
        parts = [repr(position.latitude), repr(position.longitude)]
        if position.altitude is not None:
            parts.append(repr(position.altitude))
        return ",".join(parts)
    if data_type == DataType.STRING:
        return str(value)
    stats = value if isinstance(value, DescriptiveStatistics) else DescriptiveStatistics.model_validate(value)
    return stats.to_json()


def parse_value(data_type: DataType, text: str) -> Any:
    """Decode *text* produced by :func:`format_value`."""
    data_type = coerce_data_type(data_type)
    try:
        if data_type == DataType.BOOLEAN:
            normalized = text.strip().lower()
            if normalized in _TRUE_TEXT:
                return True
            if normalized in _FALSE_TEXT:
                return False
            raise ValueError(f"not a boolean: {text!r}")
        if data_type == DataType.DOUBLE:
            return float(text)
        if data_type == DataType.INTEGER:
            return int(text)
        if data_type == DataType.POSITION:
            parts = [float(p) for p in text.split(",")]
            if len(parts) not in (2, 3):
                raise ValueError(f"position needs 2 or 3 components: {text!r}")
            altitude = parts[2] if len(parts) == 3 else None
            return Position(latitude=parts[0], longitude=parts[1], altitude=altitude)
        if data_type == DataType.STRING:
            return text
        return DescriptiveStatistics.model_validate_json(text)
    except (ValueError, ValidationError) as exc:
        raise DataTypeError(f"Cannot decode {data_type.name} value {text!r}: {exc}") from exc


def encode_observation(observation: Observation) -> tuple[DataType, str]:
    """Return the data type tag and text payload for *observation*."""
    for data_type, cls in _OBSERVATION_TYPES.items():
        if type(observation) is cls:
            return data_type, format_value(data_type, observation.value)  # type: ignore[attr-defined]
    raise DataTypeError(f"Unknown observation data type: {type(observation).__name__}")


def decode_observation(data_type: Any, timestamp: datetime, text: str) -> Observation:
    """Rebuild a typed observation from a buffered row."""
    resolved = coerce_data_type(data_type)
    cls = _OBSERVATION_TYPES[resolved]
    return cls(timestamp=timestamp, value=parse_value(resolved, text))
