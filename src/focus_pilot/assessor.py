"""Periodic assessment of recent activity for distraction patterns."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from .classifier import classify
from .config import (
    ASSESSMENT_WINDOW,
    REMIND_SCORE_THRESHOLD,
    SHORT_EVENT_MS,
    EngineSettings,
)
from .dispatcher import NotificationDispatcher
from .errors import StoreError
from .models import (
    ActivityState,
    DispatchResult,
    FocusRecord,
    NotificationEvent,
    ReminderReason,
)
from .store import EventLogStore
from .tracker import ActivityTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Assessment:
    short_events: int
    non_productive: int
    quick_switch_signal: int
    score: int
    should_remind: bool


def score_activity(
    recent: Iterable[FocusRecord],
    quick_switch_count: int,
    switch_threshold: int,
) -> tuple[int, int, int]:
    """Return (short events, non-productive events, quick switch signal)."""
    records = list(recent)
    short_events = sum(1 for record in records if record.duration_ms < SHORT_EVENT_MS)
    non_productive = sum(1 for record in records if not record.productive)
    quick_switch_signal = 1 if quick_switch_count >= switch_threshold else 0
    return short_events, non_productive, quick_switch_signal


def cooldown_elapsed(
    last_reminder: Optional[datetime], now: datetime, settings: EngineSettings
) -> bool:
    if last_reminder is None:
        return True
    return (now - last_reminder) > settings.reminder_cooldown


class PeriodicAssessor:
    """Scores the last two minutes of activity on a fixed cadence."""

    def __init__(
        self,
        log: EventLogStore,
        tracker: ActivityTracker,
        dispatcher: NotificationDispatcher,
        settings: Callable[[], EngineSettings],
    ) -> None:
        self._log = log
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._settings = settings
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.last_assessment: Optional[Assessment] = None

    def assess(
        self, recent: Iterable[FocusRecord], state: ActivityState, now: datetime
    ) -> Assessment:
        settings = self._settings()
        short_events, non_productive, signal = score_activity(
            recent, state.quick_switch_count, settings.distraction_switch_threshold
        )
        score = short_events + non_productive + signal
        should_remind = score >= REMIND_SCORE_THRESHOLD and cooldown_elapsed(
            state.last_reminder_timestamp, now, settings
        )
        return Assessment(short_events, non_productive, signal, score, should_remind)

    async def tick(self) -> Optional[DispatchResult]:
        """Run one assessment and send a pattern reminder when warranted."""
        async with self._tracker.locked() as state:
            now = self._tracker.clock()
            try:
                recent = await self._log.query(now - ASSESSMENT_WINDOW)
            except StoreError as exc:
                logger.warning("Skipping assessment, log unavailable: %s", exc)
                return None

            assessment = self.assess(recent, state, now)
            self.last_assessment = assessment
            logger.debug("Assessment: %s", assessment)
            if not assessment.should_remind or state.current_tab_id is None:
                return None
            productive_domains = self._settings().productive_domains
            if classify(state.current_url, productive_domains).productive:
                return None

            logger.info(
                "Distraction pattern detected (score %d), reminding tab %s",
                assessment.score,
                state.current_tab_id,
            )
            event = NotificationEvent(
                reason=ReminderReason.DISTRACTION_PATTERN,
                score=assessment.score,
                target_tab_id=state.current_tab_id,
            )
            result = await self._dispatcher.dispatch(event)
            if result.delivered:
                await self._tracker.record_reminder(now)
            return result

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("Assessor running every %s", self._settings().assess_interval)
        while not stop_event.is_set():
            interval = self._settings().assess_interval.total_seconds()
            try:
                await asyncio.wait_for(stop_event.wait(), interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.tick()
            except Exception:
                logger.exception("Assessment tick failed")

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))

    async def stop(self) -> None:
        if self._task is None or self._stop_event is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Assessor stopped.")

    def is_running(self) -> bool:
        return bool(self._task and not self._task.done())
