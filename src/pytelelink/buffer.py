"""Durable SQLite-backed buffer for observations and settings.

Every operation opens its own short-lived connection, commits, and closes
it again; no handle is held between calls. Each append call is one
committed transaction, so a crash never leaves part of a batch
behind. Threads within one process are serialised by an in-process lock;
separate processes rely on SQLite's file locking.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pytelelink._codec import coerce_data_type, decode_observation, encode_observation
from pytelelink.exceptions import BufferStoreError, DataTypeError
from pytelelink.models._base import ensure_utc
from pytelelink.models.observations import DataType, Observation
from pytelelink.models.settings import SettingsSnapshot, SettingValue

_logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MICROSECOND = timedelta(microseconds=1)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS observations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  observation_id INTEGER NOT NULL,
  data_type INTEGER NOT NULL,
  timestamp_us INTEGER NOT NULL,
  value TEXT NOT NULL,
  uploaded INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_observations_pending
ON observations(uploaded, id);

CREATE TABLE IF NOT EXISTS settings (
  row_id INTEGER PRIMARY KEY AUTOINCREMENT,
  setting_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  data_type INTEGER NOT NULL,
  is_default INTEGER NOT NULL,
  value TEXT
);

CREATE TABLE IF NOT EXISTS settings_meta (
  singleton INTEGER PRIMARY KEY CHECK (singleton = 1),
  mid TEXT NOT NULL,
  last_updated_us INTEGER NOT NULL
);
"""


def _to_us(value: datetime) -> int:
    return (ensure_utc(value) - _EPOCH) // _MICROSECOND


def _from_us(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=int(value))


def encode_rows(items: Iterable[tuple[int, Observation]]) -> list[tuple[int, DataType, datetime, str]]:
    """Encode ``(observation_id, observation)`` pairs into buffer rows.

    Raises :class:`DataTypeError` for an unbufferable observation before any
    row is produced.
    """
    rows: list[tuple[int, DataType, datetime, str]] = []
    for observation_id, observation in items:
        data_type, payload = encode_observation(observation)
        rows.append((observation_id, data_type, observation.timestamp, payload))
    return rows


@dataclass(frozen=True, slots=True)
class BufferedRecord:
    """One buffered observation row.

    ``id`` is assigned by the store and strictly increasing; it is the only
    delivery order guarantee.
    """

    id: int
    subject_id: int
    data_type: DataType
    timestamp: datetime
    payload: str
    uploaded: bool

    def to_observation(self) -> Observation:
        return decode_observation(self.data_type, self.timestamp, self.payload)


class BufferStore:
    """Ordered, crash-tolerant record store in a single local file."""

    def __init__(self, path: str | Path, *, timeout: float = 30.0) -> None:
        self._path = Path(path)
        self._timeout = timeout
        self._lock = threading.RLock()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.executescript(_SCHEMA)

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection for one operation, commit on success, always close."""
        with self._lock:
            try:
                conn = sqlite3.connect(str(self._path), timeout=self._timeout)
            except sqlite3.Error as exc:
                raise BufferStoreError(f"Cannot open buffer {self._path}: {exc}") from exc
            try:
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA synchronous=FULL;")
                with conn:
                    yield conn
            except sqlite3.Error as exc:
                raise BufferStoreError(f"Buffer operation failed on {self._path}: {exc}") from exc
            finally:
                conn.close()

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def append(self, subject_id: int, data_type: DataType | int, timestamp: datetime, payload: str) -> int:
        """Durably append one record and return its id."""
        return self.append_many([(subject_id, data_type, timestamp, payload)])[0]

    def append_many(self, rows: Iterable[tuple[int, DataType | int, datetime, str]]) -> list[int]:
        """Append ``(subject_id, data_type, timestamp, payload)`` rows in one transaction.

        Either every row is committed or none is. Returns the new ids in
        input order.
        """
        values = [
            (int(subject_id), int(coerce_data_type(data_type)), _to_us(timestamp), payload)
            for subject_id, data_type, timestamp, payload in rows
        ]
        ids: list[int] = []
        if not values:
            return ids
        with self._connect() as conn:
            for params in values:
                cur = conn.execute(
                    """
                    INSERT INTO observations(observation_id, data_type, timestamp_us, value, uploaded)
                    VALUES(?, ?, ?, ?, 0)
                    """,
                    params,
                )
                if cur.lastrowid is None:
                    raise BufferStoreError(f"Append to {self._path} returned no row id")
                ids.append(int(cur.lastrowid))
        return ids

    def append_observations(self, observation_id: int, observations: Iterable[Observation]) -> list[int]:
        """Append every observation for one id in a single transaction."""
        return self.append_many(encode_rows((observation_id, observation) for observation in observations))

    def scan_pending(self, limit: int | None = None) -> list[BufferedRecord]:
        """Return records not yet uploaded, ascending by id.

        ``limit`` of ``None``, ``0`` or a negative value means unlimited.
        """
        query = "SELECT * FROM observations WHERE uploaded = 0 ORDER BY id ASC"
        params: tuple[int, ...] = ()
        if limit is not None and limit > 0:
            query += " LIMIT ?"
            params = (int(limit),)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._record_from_row(row) for row in rows]

    @staticmethod
    def _record_from_row(row: sqlite3.Row) -> BufferedRecord:
        return BufferedRecord(
            id=int(row["id"]),
            subject_id=int(row["observation_id"]),
            data_type=coerce_data_type(row["data_type"]),
            timestamp=_from_us(row["timestamp_us"]),
            payload=str(row["value"]),
            uploaded=bool(row["uploaded"]),
        )

    def mark_uploaded_up_to(self, max_id: int) -> int:
        """Mark every pending record with ``id <= max_id`` as uploaded."""
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE observations SET uploaded = 1 WHERE uploaded = 0 AND id <= ?",
                (int(max_id),),
            )
            return cur.rowcount

    def mark_uploaded_in_range(self, start: datetime, end: datetime) -> int:
        """Mark pending records timestamped within ``[start, end]`` as uploaded."""
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE observations SET uploaded = 1
                WHERE uploaded = 0 AND timestamp_us >= ? AND timestamp_us <= ?
                """,
                (_to_us(start), _to_us(end)),
            )
            return cur.rowcount

    def mark_all_uploaded(self) -> int:
        with self._connect() as conn:
            return conn.execute("UPDATE observations SET uploaded = 1 WHERE uploaded = 0").rowcount

    def purge(self) -> None:
        """Physically delete every observation record."""
        with self._connect() as conn:
            conn.execute("DELETE FROM observations")
        _logger.debug("Buffer purged path=%s", self._path)

    def count_pending(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM observations WHERE uploaded = 0").fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def replace_settings(self, snapshot: SettingsSnapshot) -> None:
        """Drop the stored settings and insert *snapshot* in one transaction."""
        rows = []
        for value in snapshot.values:
            rows.append(
                (
                    int(value.id),
                    value.name,
                    int(value.data_type),
                    1 if value.is_default_value else 0,
                    value.value,
                )
            )
        with self._connect() as conn:
            conn.execute("DELETE FROM settings")
            conn.executemany(
                "INSERT INTO settings(setting_id, name, data_type, is_default, value) VALUES(?, ?, ?, ?, ?)",
                rows,
            )
            conn.execute(
                """
                INSERT INTO settings_meta(singleton, mid, last_updated_us) VALUES(1, ?, ?)
                ON CONFLICT(singleton) DO UPDATE SET mid = excluded.mid, last_updated_us = excluded.last_updated_us
                """,
                (snapshot.mid, _to_us(snapshot.last_updated_on)),
            )
        _logger.debug("Buffered %d settings mid=%s", len(rows), snapshot.mid)

    def load_settings(self) -> SettingsSnapshot | None:
        """Return the last persisted snapshot, or ``None`` if none was ever stored."""
        with self._connect() as conn:
            meta = conn.execute("SELECT mid, last_updated_us FROM settings_meta WHERE singleton = 1").fetchone()
            if meta is None:
                return None
            rows = conn.execute("SELECT * FROM settings ORDER BY row_id ASC").fetchall()

        values: list[SettingValue] = []
        for row in rows:
            try:
                data_type = DataType(int(row["data_type"]))
            except ValueError as exc:
                raise DataTypeError(f"Unknown setting data type: {row['data_type']!r}") from exc
            values.append(
                SettingValue(
                    id=int(row["setting_id"]),
                    name=str(row["name"]),
                    data_type=data_type,
                    is_default_value=bool(row["is_default"]),
                    value=row["value"],
                )
            )
        return SettingsSnapshot(
            mid=str(meta["mid"]),
            last_updated_on=_from_us(meta["last_updated_us"]),
            values=tuple(values),
        )
