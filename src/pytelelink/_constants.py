"""Internal constants shared across the library."""

from datetime import timedelta

from pytelelink.exceptions import ConfigurationError

USER_AGENT = "pytelelink/0.1"

# ------------------------------------------------------------------
# Control-plane endpoints
# ------------------------------------------------------------------

PING_ENDPOINT = "/api/tools/ping"
SERVER_TIME_ENDPOINT = "/api/tools/servertime"
DEVICE_EVENTS_ENDPOINT = "/api/devices/{mid}/events"
DEVICE_CONNECT_ENDPOINT = "/api/devices/{mid}/connect"
OBSERVATIONS_ENDPOINT = "/api/devices/{mid}/observations"
OBSERVATIONS_IMPORT_ENDPOINT = "/api/devices/{mid}/observations/import"
EXPANDED_SETTINGS_ENDPOINT = "/api/devices/{mid}/settings/expanded"
COMMAND_QUEUE_ENDPOINT = "/api/devices/{mid}/commands/queue"
COMMAND_RESPONSE_ENDPOINT = "/api/devices/{mid}/commands/{command_id}/response"

PING_REPLY = "PONG"

# ------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------

DEFAULT_TIMEOUT: float = 30.0
DEFAULT_UPLOAD_ROW_LIMIT = 1000
DEFAULT_HEARTBEAT_INTERVAL = 60
DEFAULT_PREFETCH_COUNT = 20
DEFAULT_BACKOFF_INTERVAL = timedelta(minutes=1)
DEFAULT_PULSE_EXPIRY_MS = 300_000

#: Accepted heartbeat range in seconds; ``0`` disables heartbeats.
HEARTBEAT_MIN = 60
HEARTBEAT_MAX = 3600

# AMQP delivery modes.
DELIVERY_MODE_TRANSIENT = 1
DELIVERY_MODE_PERSISTENT = 2

JSON_CONTENT_TYPE = "application/json"

#: Seconds the receiver thread waits on its inbox before pumping I/O again.
RECEIVER_POLL_INTERVAL: float = 0.05


def validate_heartbeat_interval(value: int) -> int:
    """Return *value* if it is a legal heartbeat interval.

    Raises :class:`~pytelelink.exceptions.ConfigurationError` otherwise.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"heartbeat interval must be a whole number of seconds, got {value!r}")
    if value == 0 or HEARTBEAT_MIN <= value <= HEARTBEAT_MAX:
        return value
    raise ConfigurationError(
        f"heartbeat interval must be between {HEARTBEAT_MIN} and {HEARTBEAT_MAX} seconds "
        f"(or 0 for disabled), got {value}"
    )
