"""Command and command-response models."""

from __future__ import annotations

from pydantic import Field

from pytelelink.models._base import TelelinkBaseModel, UtcDateTime


class CommandArgument(TelelinkBaseModel):
    id: int
    value: str | None = None


class Command(TelelinkBaseModel):
    """A command addressed to this device."""

    id: int
    timestamp: UtcDateTime
    expires_at: UtcDateTime | None = None
    arguments: tuple[CommandArgument, ...] = Field(default_factory=tuple)

    def argument(self, argument_id: int) -> CommandArgument | None:
        for arg in self.arguments:
            if arg.id == argument_id:
                return arg
        return None


class CommandResponse(TelelinkBaseModel):
    """Device reply to a command.

    ``timestamp`` echoes the originating command's timestamp so the service
    can correlate the response; ``delivered_at`` is when the device
    handled it.
    """

    id: int
    timestamp: UtcDateTime
    delivered_at: UtcDateTime | None = None
    was_accepted: bool = True
    result_code: int | None = None
    comment: str | None = None
