"""Explicit result values for network-facing operations.

Network failures are reported as values rather than raised: an
:class:`Outcome` is truthy on success and carries the error that caused a
failure, so callers can branch on the result without exception handling.
"""

from __future__ import annotations

from dataclasses import dataclass

from pytelelink.exceptions import TelelinkError


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of an operation that may fail for network reasons."""

    ok: bool
    error: TelelinkError | None = None

    def __bool__(self) -> bool:
        return self.ok

    @property
    def error_message(self) -> str | None:
        """Human-readable error text, or ``None`` on success."""
        return str(self.error) if self.error is not None else None

    @classmethod
    def success(cls) -> Outcome:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: TelelinkError | None = None) -> Outcome:
        return cls(ok=False, error=error)


@dataclass(frozen=True, slots=True)
class LogOutcome(Outcome):
    """Result of a buffered logging call.

    ``uploaded`` is ``True`` when the data was delivered directly and
    nothing was written to the buffer.
    """

    uploaded: bool = False
