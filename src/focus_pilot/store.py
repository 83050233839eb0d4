"""Async stores for the focus event log and engine bookkeeping keys.

SQLite calls are blocking, so every operation runs in a worker thread behind a
connection lock. The awaited call is where engine handlers suspend.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from .db import (
    DATETIME_FMT,
    delete_all_records,
    fetch_records_since,
    format_timestamp,
    get_setting,
    insert_records,
    open_database,
    set_setting,
)
from .errors import StoreError
from .models import FocusRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_KEY = "config"
LAST_REMINDER_KEY = "last_reminder_at"
FOCUS_SESSION_END_KEY = "focus_session_end"
SNOOZE_UNTIL_KEY = "snooze_until"
OPTIONS_TAB_KEY = "options_tab"


class Database:
    """A shared SQLite connection that is safe to use from worker threads."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        try:
            self._conn = open_database(self.db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open {self.db_path}: {exc}") from exc

    async def run(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self._run_locked, operation)

    def _run_locked(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        with self._lock:
            try:
                return operation(self._conn)
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class EventLogStore:
    """Append-only log of focus records."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def append(self, record: FocusRecord) -> None:
        await self._db.run(lambda conn: insert_records(conn, [record]))
        logger.debug(
            "Appended record: duration_ms=%d productive=%s",
            record.duration_ms,
            record.productive,
        )

    async def query(self, since: datetime) -> list[FocusRecord]:
        return await self._db.run(lambda conn: fetch_records_since(conn, since))

    async def reset_all(self) -> None:
        await self._db.run(delete_all_records)
        logger.info("Focus log cleared.")


class SettingsStore:
    """Key/value bookkeeping surfaced to the UI."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, key: str) -> Optional[str]:
        return await self._db.run(lambda conn: get_setting(conn, key))

    async def set(self, key: str, value: Optional[str]) -> None:
        await self._db.run(lambda conn: set_setting(conn, key, value))

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed JSON stored under %s", key)
            return None

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value))

    async def get_timestamp(self, key: str) -> Optional[datetime]:
        raw = await self.get(key)
        if not raw:
            return None
        try:
            return datetime.strptime(raw, DATETIME_FMT)
        except ValueError:
            logger.warning("Discarding malformed timestamp stored under %s", key)
            return None

    async def set_timestamp(self, key: str, value: Optional[datetime]) -> None:
        await self.set(key, format_timestamp(value) if value else None)
