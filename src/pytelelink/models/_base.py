"""Base model for control-plane and broker payloads.

Every wire model inherits from :class:`TelelinkBaseModel`, which provides:

* ``alias_generator=to_pascal`` so the service's PascalCase JSON keys map
  automatically to snake_case fields.
* ``populate_by_name`` so models can be constructed with field names.
* Frozen instances: payloads are replaced, never patched.

Timestamps use :data:`UtcDateTime`, which normalises naive datetimes and
ISO strings without an offset to UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDateTime = Annotated[datetime, AfterValidator(ensure_utc)]
"""Annotated type that coerces datetimes to aware UTC."""


def utcnow() -> datetime:
    return datetime.now(UTC)


class TelelinkBaseModel(BaseModel):
    """Base for wire payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_pascal,
    )

    def to_json(self) -> str:
        """Serialize with the service's PascalCase keys."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
