"""Client configuration for pytelelink."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pytelelink._constants import (
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_PREFETCH_COUNT,
    DEFAULT_TIMEOUT,
    DEFAULT_UPLOAD_ROW_LIMIT,
    validate_heartbeat_interval,
)
from pytelelink.exceptions import ConfigurationError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class TelelinkConfig:
    """Device client configuration.

    Parameters
    ----------
    mid : str
        Device identifier. Also used as the broker user name and as the
        prefix of the device's exchange (``"{mid}.X"``) and queue
        (``"{mid}.Q"``).
    pre_shared_key : str
        Pre-shared key for the device (HTTP Basic auth and broker password).
    host : str
        Control-plane host, e.g. ``"myserver.example.com"`` or ``"10.0.0.2"``.
    use_https : bool
        Use HTTPS for the control plane and TLS for the broker connection.
    port : int or None
        Optional override of the HTTP(S) port.
    timeout : float
        Network timeout in seconds for control-plane and broker calls.
    buffer_path : str or None
        Path of the local buffer file. Required for buffered observations
        and the settings cache.
    upload_row_limit : int
        Maximum number of buffered rows per upload slice. ``0`` or a
        negative value means unlimited.
    heartbeat_interval : int
        Requested broker heartbeat in seconds, within ``[60, 3600]``, or
        ``0`` to disable heartbeats.
    prefetch_count : int
        Maximum number of unacknowledged inbound messages.
    use_automatic_callbacks : bool
        Dispatch inbound messages on a background receiver thread as they
        arrive. Mutually exclusive with batch (transactional) publishing.
    use_atomic_transactions : bool
        Treat every publish as an independent, immediately-committed send;
        publishing while a transaction is open is then a configuration error.
    ignore_ssl_certificate_errors : bool
        Accept broker and control-plane certificates that fail verification.
    """

    mid: str
    pre_shared_key: str
    host: str
    use_https: bool = True
    port: int | None = None
    timeout: float = DEFAULT_TIMEOUT
    buffer_path: str | None = None
    upload_row_limit: int = DEFAULT_UPLOAD_ROW_LIMIT
    heartbeat_interval: int = DEFAULT_HEARTBEAT_INTERVAL
    prefetch_count: int = DEFAULT_PREFETCH_COUNT
    use_automatic_callbacks: bool = True
    use_atomic_transactions: bool = True
    ignore_ssl_certificate_errors: bool = False

    def __post_init__(self) -> None:
        if not self.mid.strip():
            raise ConfigurationError("mid must be non-empty")
        if not self.host.strip():
            raise ConfigurationError("host must be non-empty")
        validate_heartbeat_interval(self.heartbeat_interval)
        if self.prefetch_count <= 0:
            raise ConfigurationError(f"prefetch_count must be positive, got {self.prefetch_count}")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")

    @property
    def base_url(self) -> str:
        """Control-plane base URL composed from scheme, host and optional port."""
        scheme = "https" if self.use_https else "http"
        url = f"{scheme}://{self.host}"
        if self.port is not None:
            url += f":{self.port}"
        return url

    @classmethod
    def from_env(cls, **overrides: Any) -> TelelinkConfig:
        """Create configuration from environment variables.

        Reads ``TELELINK_MID``, ``TELELINK_PSK``, ``TELELINK_HOST`` and the
        optional ``TELELINK_*`` variables below. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TelelinkConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "TELELINK_MID": "mid",
            "TELELINK_PSK": "pre_shared_key",
            "TELELINK_HOST": "host",
            "TELELINK_BUFFER_PATH": "buffer_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "TELELINK_PORT": "port",
            "TELELINK_UPLOAD_ROW_LIMIT": "upload_row_limit",
            "TELELINK_HEARTBEAT_INTERVAL": "heartbeat_interval",
            "TELELINK_PREFETCH_COUNT": "prefetch_count",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = int(val)

        timeout_env = env.get("TELELINK_TIMEOUT")
        if timeout_env is not None and "timeout" not in overrides:
            config_kwargs["timeout"] = float(timeout_env)

        _ENV_BOOL_MAP = {
            "TELELINK_USE_HTTPS": ("use_https", True),
            "TELELINK_AUTOMATIC_CALLBACKS": ("use_automatic_callbacks", True),
            "TELELINK_ATOMIC_TRANSACTIONS": ("use_atomic_transactions", True),
            "TELELINK_IGNORE_SSL_ERRORS": ("ignore_ssl_certificate_errors", False),
        }
        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
