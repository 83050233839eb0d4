"""Domain models for tracked focus activity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass(frozen=True, slots=True)
class FocusRecord:
    """One closed-out interval of attention."""

    timestamp: datetime
    duration_ms: int
    productive: bool

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be non-negative")


@dataclass(slots=True)
class ActivityState:
    """What the engine believes the user is looking at right now."""

    current_tab_id: Optional[int] = None
    current_window_id: Optional[int] = None
    current_url: Optional[str] = None
    last_focus_timestamp: datetime = datetime.min
    last_reminder_timestamp: Optional[datetime] = None
    quick_switch_count: int = 0
    idle: bool = False


@dataclass(frozen=True, slots=True)
class Classification:
    productive: bool = False
    distraction: bool = False


NEUTRAL = Classification()


class ReminderReason(str, Enum):
    DISTRACTION_SITE = "distraction-site"
    DISTRACTION_PATTERN = "distraction-pattern"


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    reason: ReminderReason
    score: int
    target_tab_id: int


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of one dispatch attempt.

    ``suppressed`` marks a deliberate skip by the stale-target guard, which is
    not a failure even though nothing was delivered.
    """

    delivered: bool
    channel: Optional[str] = None
    suppressed: bool = False


@dataclass(frozen=True, slots=True)
class FocusStats:
    total_focused_ms: int = 0
    distraction_count: int = 0
    samples: int = 0

    def to_payload(self) -> dict[str, int]:
        return {
            "totalFocusedMs": self.total_focused_ms,
            "distractionCount": self.distraction_count,
            "samples": self.samples,
        }
