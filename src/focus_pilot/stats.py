"""Read-only statistics over the focus log."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

from .config import STATS_WINDOW
from .db import utc_now
from .models import FocusRecord, FocusStats
from .store import EventLogStore


def summarize(records: Iterable[FocusRecord]) -> FocusStats:
    total_focused_ms = 0
    distraction_count = 0
    samples = 0
    for record in records:
        samples += 1
        if record.productive:
            total_focused_ms += record.duration_ms
        else:
            distraction_count += 1
    return FocusStats(total_focused_ms, distraction_count, samples)


class StatsAggregator:
    def __init__(
        self, log: EventLogStore, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._log = log
        self._clock = clock

    async def get_stats(self) -> FocusStats:
        """Totals over the last 24 hours. Raises StoreError if the log is unreadable."""
        since = self._clock() - STATS_WINDOW
        return summarize(await self._log.query(since))
