"""SQLite database layer for focus records and engine settings."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from .models import FocusRecord


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp for storage. Aware values are stored as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(DATETIME_FMT)


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS focus_records (
            id INTEGER PRIMARY KEY,
            timestamp TEXT NOT NULL,
            duration_ms INTEGER NOT NULL CHECK (duration_ms >= 0),
            productive INTEGER NOT NULL DEFAULT 0
        );

        CREATE INDEX IF NOT EXISTS idx_records_timestamp
            ON focus_records(timestamp);

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT
        );
        """
    )


def insert_records(conn: sqlite3.Connection, records: Iterable[FocusRecord]) -> None:
    conn.executemany(
        """
        INSERT INTO focus_records (
            timestamp,
            duration_ms,
            productive
        ) VALUES (?, ?, ?)
        """,
        [
            (
                format_timestamp(record.timestamp),
                record.duration_ms,
                1 if record.productive else 0,
            )
            for record in records
        ],
    )


def fetch_records_since(
    conn: sqlite3.Connection, since: datetime
) -> list[FocusRecord]:
    """Return records with ``timestamp >= since`` in insertion order."""
    rows = conn.execute(
        """
        SELECT timestamp, duration_ms, productive
        FROM focus_records
        WHERE timestamp >= ?
        ORDER BY id;
        """,
        (format_timestamp(since),),
    )
    return [_row_to_record(row) for row in rows]


def delete_all_records(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM focus_records;")


def get_setting(conn: sqlite3.Connection, key: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def set_setting(conn: sqlite3.Connection, key: str, value: Optional[str]) -> None:
    conn.execute(
        "INSERT INTO settings (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
        (key, value),
    )


def _row_to_record(row: sqlite3.Row) -> FocusRecord:
    return FocusRecord(
        timestamp=datetime.strptime(row["timestamp"], DATETIME_FMT),
        duration_ms=int(row["duration_ms"]),
        productive=bool(row["productive"]),
    )
