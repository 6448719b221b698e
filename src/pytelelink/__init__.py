"""pytelelink - Store-and-forward telemetry and live messaging for devices."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pytelelink")
except PackageNotFoundError:
    __version__ = "0+local"
from pytelelink.buffer import BufferedRecord, BufferStore
from pytelelink.client import DeviceClient
from pytelelink.config import TelelinkConfig
from pytelelink.exceptions import (
    BufferStoreError,
    ConfigurationError,
    DataTypeError,
    NotFoundError,
    NotInitializedError,
    TelelinkError,
    TransportError,
)
from pytelelink.forward import ObservationForwarder
from pytelelink.live import Dispatcher, Frame, LiveDevice, LiveSession, Publisher, SessionState
from pytelelink.models import (
    BooleanObservation,
    Command,
    CommandArgument,
    CommandResponse,
    DataType,
    DescriptiveStatistics,
    DeviceConnection,
    DeviceEvent,
    DoubleObservation,
    EventCategory,
    IdentifiedObservations,
    IntegerObservation,
    MessagingNode,
    Observation,
    ObservationBatch,
    Position,
    PositionObservation,
    Pulse,
    SettingsSnapshot,
    SettingValue,
    StatisticsObservation,
    StringObservation,
)
from pytelelink.result import LogOutcome, Outcome
from pytelelink.settings_cache import SettingsCache

__all__ = [
    "__version__",
    "BooleanObservation",
    "BufferedRecord",
    "BufferStore",
    "BufferStoreError",
    "Command",
    "CommandArgument",
    "CommandResponse",
    "ConfigurationError",
    "DataType",
    "DataTypeError",
    "DescriptiveStatistics",
    "DeviceClient",
    "DeviceConnection",
    "DeviceEvent",
    "Dispatcher",
    "DoubleObservation",
    "EventCategory",
    "Frame",
    "IdentifiedObservations",
    "IntegerObservation",
    "LiveDevice",
    "LiveSession",
    "LogOutcome",
    "MessagingNode",
    "NotFoundError",
    "NotInitializedError",
    "Observation",
    "ObservationBatch",
    "ObservationForwarder",
    "Outcome",
    "Position",
    "PositionObservation",
    "Publisher",
    "Pulse",
    "SessionState",
    "SettingsCache",
    "SettingsSnapshot",
    "SettingValue",
    "StatisticsObservation",
    "StringObservation",
    "TelelinkConfig",
    "TelelinkError",
    "TransportError",
]
