"""Observation models and the immutable batch used for uploads."""

from __future__ import annotations

import enum
import json
from collections.abc import Iterable, Iterator
from typing import ClassVar

from pydantic import Field

from pytelelink.models._base import TelelinkBaseModel, UtcDateTime


class DataType(enum.IntEnum):
    """Data type tag shared by observations and settings."""

    UNDEFINED = 0
    BINARY = 1
    BOOLEAN = 2
    DOUBLE = 3
    INTEGER = 4
    POSITION = 5
    STRING = 6
    STATISTICS = 7


class Position(TelelinkBaseModel):
    """Geographic position in decimal degrees, altitude in meters."""

    latitude: float
    longitude: float
    altitude: float | None = None


class DescriptiveStatistics(TelelinkBaseModel):
    """Summary statistics over a sampling period."""

    count: int = 0
    minimum: float | None = None
    maximum: float | None = None
    mean: float | None = None
    median: float | None = None
    std_dev: float | None = None
    from_timestamp: UtcDateTime | None = None
    to_timestamp: UtcDateTime | None = None


class Observation(TelelinkBaseModel):
    """A single timestamped value. Use one of the typed subclasses."""

    data_type: ClassVar[DataType] = DataType.UNDEFINED

    timestamp: UtcDateTime


class BooleanObservation(Observation):
    data_type: ClassVar[DataType] = DataType.BOOLEAN

    value: bool


class DoubleObservation(Observation):
    data_type: ClassVar[DataType] = DataType.DOUBLE

    value: float


class IntegerObservation(Observation):
    data_type: ClassVar[DataType] = DataType.INTEGER

    value: int


class PositionObservation(Observation):
    data_type: ClassVar[DataType] = DataType.POSITION

    value: Position


class StringObservation(Observation):
    data_type: ClassVar[DataType] = DataType.STRING

    value: str


class StatisticsObservation(Observation):
    data_type: ClassVar[DataType] = DataType.STATISTICS

    value: DescriptiveStatistics


class IdentifiedObservations(TelelinkBaseModel):
    """Observations belonging to one observation id, in insertion order."""

    observation_id: int
    observations: tuple[Observation, ...] = Field(default_factory=tuple)


class ObservationBatch(TelelinkBaseModel):
    """Ordered, immutable collection of observation groups.

    Consecutive observations for the same id share a group, so iterating
    :meth:`flatten` always yields observations in the order they were
    added.
    """

    groups: tuple[IdentifiedObservations, ...] = Field(default_factory=tuple)

    @classmethod
    def build(cls, items: Iterable[tuple[int, Observation]]) -> ObservationBatch:
        """Build a batch from ``(observation_id, observation)`` pairs."""
        groups: list[tuple[int, list[Observation]]] = []
        for observation_id, observation in items:
            if groups and groups[-1][0] == observation_id:
                groups[-1][1].append(observation)
            else:
                groups.append((observation_id, [observation]))
        return cls(
            groups=tuple(
                IdentifiedObservations(observation_id=oid, observations=tuple(obs)) for oid, obs in groups
            )
        )

    @classmethod
    def of(cls, observation_id: int, observations: Iterable[Observation]) -> ObservationBatch:
        """Build a batch holding observations for a single id."""
        return cls.build((observation_id, o) for o in observations)

    def flatten(self) -> Iterator[tuple[int, Observation]]:
        """Yield ``(observation_id, observation)`` pairs in batch order."""
        for group in self.groups:
            for observation in group.observations:
                yield group.observation_id, observation

    def __len__(self) -> int:
        return sum(len(group.observations) for group in self.groups)

    @property
    def is_empty(self) -> bool:
        return not self.groups

    def to_json(self) -> str:
        """Serialize as a JSON array of ``{ObservationId, Observations}`` groups.

        Observation subclasses are dumped with their concrete fields and a
        ``DataType`` tag.
        """
        payload = [
            {
                "ObservationId": group.observation_id,
                "Observations": [
                    {"DataType": int(o.data_type), **o.model_dump(mode="json", by_alias=True, exclude_none=True)}
                    for o in group.observations
                ],
            }
            for group in self.groups
        ]
        return json.dumps(payload, separators=(",", ":"))
