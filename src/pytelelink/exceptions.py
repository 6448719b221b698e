"""Custom exception hierarchy for pytelelink."""

from __future__ import annotations


class TelelinkError(Exception):
    """Base exception for all pytelelink errors."""


class ConfigurationError(TelelinkError):
    """Invalid configuration or illegal combination of publish modes.

    Raised immediately to the caller and never retried.
    """


class TransportError(TelelinkError):
    """Network-level failure (HTTP request, broker connection, publish, fetch)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class DataTypeError(TelelinkError):
    """Unknown observation or setting data type on encode or decode."""


class NotInitializedError(TelelinkError):
    """Settings were accessed before any snapshot was loaded."""


class NotFoundError(TelelinkError):
    """A setting id is absent from the active snapshot."""


class BufferStoreError(TelelinkError):
    """The local buffer file could not be read or written."""
