"""Device event log models."""

from __future__ import annotations

import enum

from pytelelink.models._base import TelelinkBaseModel, UtcDateTime


class EventCategory(enum.IntEnum):
    INFORMATION = 0
    WARNING = 1
    ERROR = 2
    FAILURE = 3


class DeviceEvent(TelelinkBaseModel):
    """An event reported by the device to the service's event log."""

    timestamp: UtcDateTime
    category: EventCategory = EventCategory.INFORMATION
    title: str
    body: str | None = None
