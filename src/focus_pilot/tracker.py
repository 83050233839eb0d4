"""Activity tracker: turns browser activity events into focus records."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from .channels import TabRegistry
from .classifier import classify
from .config import EngineSettings
from .db import utc_now
from .dispatcher import NotificationDispatcher
from .errors import StoreError
from .models import (
    ActivityState,
    DispatchResult,
    FocusRecord,
    NotificationEvent,
    ReminderReason,
)
from .store import LAST_REMINDER_KEY, EventLogStore, SettingsStore

logger = logging.getLogger(__name__)

DISTRACTION_SITE_SCORE = 99


class ActivityTracker:
    """State machine over the current activity.

    Every handler runs under one lock for its whole duration, including the
    awaited store writes and reminder dispatch, so activity events are applied
    one at a time in arrival order.
    """

    def __init__(
        self,
        log: EventLogStore,
        dispatcher: NotificationDispatcher,
        settings: Callable[[], EngineSettings],
        *,
        tabs: Optional[TabRegistry] = None,
        bookkeeping: Optional[SettingsStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._log = log
        self._dispatcher = dispatcher
        self._settings = settings
        self._tabs = tabs if tabs is not None else TabRegistry()
        self._bookkeeping = bookkeeping
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = ActivityState(last_focus_timestamp=clock())

    @property
    def state(self) -> ActivityState:
        return self._state

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    def snapshot(self) -> ActivityState:
        return replace(self._state)

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[ActivityState]:
        """Hold the tracker lock; used by the assessor for its read-then-reset."""
        async with self._lock:
            yield self._state

    async def activity_switched(
        self, tab_id: int, window_id: Optional[int], url: Optional[str]
    ) -> Optional[DispatchResult]:
        async with self._lock:
            now = self._clock()
            state = self._state
            self._tabs.update(tab_id, url)
            if state.current_tab_id is not None and state.current_tab_id != tab_id:
                state.quick_switch_count += 1
            await self._close_interval(now)
            state.idle = False
            state.current_tab_id = tab_id
            state.current_window_id = window_id
            state.current_url = url
            state.last_focus_timestamp = now
            return await self._nudge_if_distracting(tab_id, url, now)

    async def url_navigated(
        self, tab_id: int, url: Optional[str]
    ) -> Optional[DispatchResult]:
        async with self._lock:
            self._tabs.update(tab_id, url)
            state = self._state
            if state.current_tab_id is not None and state.current_tab_id != tab_id:
                logger.debug("Ignoring navigation in background tab %s", tab_id)
                return None
            now = self._clock()
            await self._close_interval(now)
            state.idle = False
            state.current_tab_id = tab_id
            state.current_url = url
            state.last_focus_timestamp = now
            return await self._nudge_if_distracting(tab_id, url, now)

    async def went_idle(self) -> None:
        async with self._lock:
            now = self._clock()
            await self._close_interval(now)
            self._state.idle = True
            self._state.last_focus_timestamp = now
            logger.debug("User went idle")

    async def resumed(self) -> None:
        async with self._lock:
            self._state.quick_switch_count = 0
            self._state.idle = False
            self._state.last_focus_timestamp = self._clock()
            logger.debug("User is active again")

    def tab_closed(self, tab_id: int) -> None:
        self._tabs.forget(tab_id)

    async def record_reminder(self, now: datetime) -> None:
        """Reminder bookkeeping; the caller must hold the tracker lock."""
        self._state.last_reminder_timestamp = now
        self._state.quick_switch_count = 0
        if self._bookkeeping is None:
            return
        try:
            await self._bookkeeping.set_timestamp(LAST_REMINDER_KEY, now)
        except StoreError as exc:
            logger.warning("Could not persist last reminder time: %s", exc)

    async def _close_interval(self, now: datetime) -> None:
        state = self._state
        delta_ms = int((now - state.last_focus_timestamp).total_seconds() * 1000)
        if state.idle or delta_ms <= 0 or not state.current_url:
            return
        productive = classify(state.current_url, self._settings().productive_domains).productive
        record = FocusRecord(timestamp=now, duration_ms=delta_ms, productive=productive)
        try:
            await self._log.append(record)
        except StoreError as exc:
            logger.warning("Dropped %d ms of activity: %s", delta_ms, exc)

    async def _nudge_if_distracting(
        self, tab_id: int, url: Optional[str], now: datetime
    ) -> Optional[DispatchResult]:
        if not classify(url, self._settings().productive_domains).distraction:
            return None
        logger.info("Distraction site opened in tab %s", tab_id)
        event = NotificationEvent(
            reason=ReminderReason.DISTRACTION_SITE,
            score=DISTRACTION_SITE_SCORE,
            target_tab_id=tab_id,
        )
        result = await self._dispatcher.dispatch(event)
        if result.delivered:
            await self.record_reminder(now)
        return result
