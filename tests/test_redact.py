from __future__ import annotations

from conftest import make_config

from pytelelink._redact import redact_for_log
from pytelelink.models import Position


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "mid": "DEV01",
        "pre_shared_key": "secret",
        "nested": {"Authorization": "Basic abc", "psk": "k"},
        "values": [{"password": "pw", "id": 3}],
    }

    redacted = redact_for_log(payload)
    assert redacted["mid"] == "DEV01"
    assert redacted["pre_shared_key"] == "<redacted>"
    assert redacted["nested"]["Authorization"] == "<redacted>"
    assert redacted["nested"]["psk"] == "<redacted>"
    assert redacted["values"][0] == {"password": "<redacted>", "id": 3}


def test_redact_for_log_walks_config_dataclass() -> None:
    redacted = redact_for_log(make_config())
    assert redacted["pre_shared_key"] == "<redacted>"
    assert redacted["host"] == "telelink.example.com"
    assert redacted["heartbeat_interval"] == 60


def test_redact_for_log_dumps_models() -> None:
    assert redact_for_log(Position(latitude=1.0, longitude=2.0)) == {
        "latitude": 1.0,
        "longitude": 2.0,
        "altitude": None,
    }


def test_redact_for_log_truncates_long_strings_and_bytes() -> None:
    redacted = redact_for_log({"value": "x" * 600, "blob": b"\x00" * 4}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
    assert redacted["blob"] == "<bytes:4b>"
