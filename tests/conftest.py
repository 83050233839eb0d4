"""Shared pytest fixtures and fakes."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import pytest

from focus_pilot.assessor import PeriodicAssessor
from focus_pilot.channels import TabRegistry
from focus_pilot.config import EngineSettings
from focus_pilot.dispatcher import NotificationDispatcher
from focus_pilot.errors import DeliveryError
from focus_pilot.models import ReminderReason
from focus_pilot.store import Database, EventLogStore, SettingsStore
from focus_pilot.tracker import ActivityTracker

START = datetime(2024, 5, 1, 9, 0, 0)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class TickingClock(FakeClock):
    """Moves forward one second every time it is read."""

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class RecordingChannel:
    name = "listener"

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.sent: list[tuple[int, dict[str, Any]]] = []

    async def send(self, tab_id: int, message: dict[str, Any]) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DeliveryError(f"no listener for tab {tab_id}")
        self.sent.append((tab_id, message))


class RecordingFallback:
    name = "desktop"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.delivered: list[tuple[int, ReminderReason, int]] = []

    async def deliver(self, tab_id: int, reason: ReminderReason, score: int) -> None:
        if self.fail:
            raise DeliveryError("injection failed")
        self.delivered.append((tab_id, reason, score))


@dataclass
class Rig:
    clock: FakeClock
    settings: EngineSettings
    log: EventLogStore
    bookkeeping: SettingsStore
    tabs: TabRegistry
    primary: RecordingChannel
    fallback: RecordingFallback
    dispatcher: NotificationDispatcher
    tracker: ActivityTracker
    assessor: PeriodicAssessor


def build_rig(
    database: Database,
    clock: Optional[FakeClock] = None,
    settings: Optional[EngineSettings] = None,
) -> Rig:
    clock = clock or FakeClock()
    settings = settings or EngineSettings()
    log = EventLogStore(database)
    bookkeeping = SettingsStore(database)
    tabs = TabRegistry()
    primary = RecordingChannel()
    fallback = RecordingFallback()
    dispatcher = NotificationDispatcher(
        tabs,
        primary,
        fallback,
        lambda: settings.productive_domains,
        timeout=timedelta(seconds=0.2),
    )
    tracker = ActivityTracker(
        log,
        dispatcher,
        lambda: settings,
        tabs=tabs,
        bookkeeping=bookkeeping,
        clock=clock,
    )
    assessor = PeriodicAssessor(log, tracker, dispatcher, lambda: settings)
    return Rig(
        clock=clock,
        settings=settings,
        log=log,
        bookkeeping=bookkeeping,
        tabs=tabs,
        primary=primary,
        fallback=fallback,
        dispatcher=dispatcher,
        tracker=tracker,
        assessor=assessor,
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "focus.sqlite3"


@pytest.fixture
def database(db_path: Path):
    db = Database(db_path)
    yield db
    db.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rig(database: Database, clock: FakeClock) -> Rig:
    return build_rig(database, clock)
