"""Pulse (liveness) message model."""

from __future__ import annotations

from pydantic import Field

from pytelelink.models._base import TelelinkBaseModel, UtcDateTime

#: Devices always publish their own pulses with id 0.
DEVICE_PULSE_ID = 0


class Pulse(TelelinkBaseModel):
    mid: str = Field(alias="MID")
    pulse_id: int = DEVICE_PULSE_ID
    timestamp: UtcDateTime
