"""Data models for control-plane and broker payloads."""

from pytelelink.models._base import TelelinkBaseModel, UtcDateTime, ensure_utc
from pytelelink.models.commands import Command, CommandArgument, CommandResponse
from pytelelink.models.connection import DeviceConnection, MessagingNode
from pytelelink.models.events import DeviceEvent, EventCategory
from pytelelink.models.observations import (
    BooleanObservation,
    DataType,
    DescriptiveStatistics,
    DoubleObservation,
    IdentifiedObservations,
    IntegerObservation,
    Observation,
    ObservationBatch,
    Position,
    PositionObservation,
    StatisticsObservation,
    StringObservation,
)
from pytelelink.models.pulse import DEVICE_PULSE_ID, Pulse
from pytelelink.models.settings import SettingsSnapshot, SettingValue

__all__ = [
    "BooleanObservation",
    "Command",
    "CommandArgument",
    "CommandResponse",
    "DataType",
    "DescriptiveStatistics",
    "DEVICE_PULSE_ID",
    "DeviceConnection",
    "DeviceEvent",
    "DoubleObservation",
    "EventCategory",
    "IdentifiedObservations",
    "IntegerObservation",
    "MessagingNode",
    "Observation",
    "ObservationBatch",
    "Position",
    "PositionObservation",
    "Pulse",
    "SettingValue",
    "SettingsSnapshot",
    "StatisticsObservation",
    "StringObservation",
    "TelelinkBaseModel",
    "UtcDateTime",
    "ensure_utc",
]
