"""Device settings snapshot models."""

from __future__ import annotations

from pydantic import Field

from pytelelink.models._base import TelelinkBaseModel, UtcDateTime, utcnow
from pytelelink.models.observations import DataType


class SettingValue(TelelinkBaseModel):
    """One expanded setting value as delivered by the service."""

    id: int
    name: str = ""
    data_type: DataType = DataType.UNDEFINED
    is_default_value: bool = False
    value: str | None = None
    """Raw string-encoded value; interpretation depends on ``data_type``."""


class SettingsSnapshot(TelelinkBaseModel):
    """Complete settings package for a device.

    Snapshots are replaced wholesale on every successful fetch or buffer
    reload; they are never partially updated.
    """

    mid: str = Field(default="", alias="MID")
    last_updated_on: UtcDateTime = Field(default_factory=utcnow)
    values: tuple[SettingValue, ...] = Field(default_factory=tuple)

    def find(self, setting_id: int) -> SettingValue | None:
        for value in self.values:
            if value.id == setting_id:
                return value
        return None
