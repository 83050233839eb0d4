"""Wiring of the focus engine and its command interface."""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from .assessor import PeriodicAssessor
from .channels import DesktopReminder, ListenerHub, TabRegistry
from .config import EngineSettings
from .db import utc_now
from .dispatcher import FallbackChannel, NotificationDispatcher
from .errors import StoreError
from .stats import StatsAggregator
from .store import (
    CONFIG_KEY,
    FOCUS_SESSION_END_KEY,
    LAST_REMINDER_KEY,
    OPTIONS_TAB_KEY,
    SNOOZE_UNTIL_KEY,
    Database,
    EventLogStore,
    SettingsStore,
)
from .tracker import ActivityTracker

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE = timedelta(minutes=5)
IN_MEMORY_DB = Path(":memory:")


class Command(str, Enum):
    GET_STATS = "GET_STATS"
    RESET_DATA = "RESET_DATA"
    OPEN_DASHBOARD = "OPEN_DASHBOARD"
    OPEN_SETTINGS = "OPEN_SETTINGS"
    START_FOCUS_SESSION = "START_FOCUS_SESSION"
    SNOOZE = "SNOOZE"


class FocusEngine:
    """Owns the engine state and every component that reads or mutates it."""

    def __init__(
        self,
        db_path: Path,
        settings: Optional[EngineSettings] = None,
        *,
        fallback: Optional[FallbackChannel] = None,
        opener: Callable[[str], Any] = webbrowser.open,
        dashboard_url: str = "http://127.0.0.1:8765",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.dashboard_url = dashboard_url
        self._opener = opener
        self._clock = clock

        try:
            self.database = Database(db_path)
        except StoreError as exc:
            logger.warning("Keeping focus data in memory only: %s", exc)
            self.database = Database(IN_MEMORY_DB)
        self.log = EventLogStore(self.database)
        self.bookkeeping = SettingsStore(self.database)
        self.tabs = TabRegistry()
        self.listeners = ListenerHub()
        self.dispatcher = NotificationDispatcher(
            self.tabs,
            self.listeners,
            fallback or DesktopReminder(),
            lambda: self.settings.productive_domains,
            timeout=self.settings.dispatch_timeout,
        )
        self.tracker = ActivityTracker(
            self.log,
            self.dispatcher,
            self._current_settings,
            tabs=self.tabs,
            bookkeeping=self.bookkeeping,
            clock=clock,
        )
        self.assessor = PeriodicAssessor(
            self.log, self.tracker, self.dispatcher, self._current_settings
        )
        self.stats = StatsAggregator(self.log, clock=clock)

    @property
    def db_path(self) -> Path:
        return self.database.db_path

    def _current_settings(self) -> EngineSettings:
        return self.settings

    async def start(self) -> None:
        await self.load_config()
        self.assessor.start()
        logger.info("Focus engine started; writing to %s", self.db_path)

    async def stop(self) -> None:
        await self.assessor.stop()
        self.database.close()
        logger.info("Focus engine stopped.")

    async def load_config(self) -> None:
        try:
            stored = await self.bookkeeping.get_json(CONFIG_KEY)
        except StoreError as exc:
            logger.warning("Using default configuration, store unavailable: %s", exc)
            return
        if isinstance(stored, dict):
            self.settings = EngineSettings.from_mapping(stored, base=self.settings)

    async def update_config(self, overrides: Mapping[str, Any]) -> EngineSettings:
        """Apply and persist config overrides. Raises ValueError or StoreError."""
        updated = self.settings.merged(overrides)
        await self.bookkeeping.set_json(CONFIG_KEY, updated.to_payload())
        self.settings = updated
        logger.info("Configuration updated: %s", updated.to_payload())
        return updated

    async def handle(
        self, command: Command | str, payload: Optional[Mapping[str, Any]] = None
    ) -> dict[str, Any]:
        """Answer one UI command. Raises ValueError for unknown commands or bad input."""
        command = Command(command)
        payload = payload or {}
        if command is Command.GET_STATS:
            return (await self.stats.get_stats()).to_payload()
        if command is Command.RESET_DATA:
            await self.log.reset_all()
            return {"ok": True}
        if command is Command.OPEN_DASHBOARD:
            await self._open(self.dashboard_url)
            return {"ok": True}
        if command is Command.OPEN_SETTINGS:
            tab = payload.get("tab")
            if tab:
                await self.bookkeeping.set(OPTIONS_TAB_KEY, str(tab))
            await self._open(f"{self.dashboard_url}/#settings")
            return {"ok": True}
        if command is Command.START_FOCUS_SESSION:
            return await self._start_focus_session(payload.get("minutes"))
        return await self._snooze(payload.get("durationMs"))

    async def status(self) -> dict[str, Any]:
        state = self.tracker.snapshot()
        try:
            last_reminder = await self.bookkeeping.get_timestamp(LAST_REMINDER_KEY)
        except StoreError as exc:
            logger.warning("Could not read last reminder time: %s", exc)
            last_reminder = state.last_reminder_timestamp
        return {
            "assessor_running": self.assessor.is_running(),
            "database_path": str(self.db_path),
            "current_tab_id": state.current_tab_id,
            "current_url": state.current_url,
            "quick_switch_count": state.quick_switch_count,
            "last_reminder_at": last_reminder.isoformat() if last_reminder else None,
        }

    async def _start_focus_session(self, minutes: Any) -> dict[str, Any]:
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 1:
            raise ValueError("minutes must be a positive integer")
        ends_at = self._clock() + timedelta(minutes=minutes)
        await self.bookkeeping.set_timestamp(FOCUS_SESSION_END_KEY, ends_at)
        logger.info("Focus session started for %d minutes", minutes)
        return {"ok": True, "endsAt": ends_at.isoformat()}

    async def _snooze(self, duration_ms: Any) -> dict[str, Any]:
        if duration_ms is None:
            duration = DEFAULT_SNOOZE
        elif isinstance(duration_ms, bool) or not isinstance(duration_ms, int) or duration_ms <= 0:
            raise ValueError("durationMs must be a positive integer")
        else:
            duration = timedelta(milliseconds=duration_ms)
        until = self._clock() + duration
        await self.bookkeeping.set_timestamp(SNOOZE_UNTIL_KEY, until)
        return {"ok": True, "snoozeUntil": until.isoformat()}

    async def _open(self, url: str) -> None:
        try:
            await asyncio.to_thread(self._opener, url)
        except Exception:
            logger.exception("Failed to open %s", url)
