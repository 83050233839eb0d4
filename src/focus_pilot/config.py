"""Configuration models and helpers for the focus engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# Fixed heuristic constants of the distraction assessment.
ASSESSMENT_WINDOW = timedelta(minutes=2)
SHORT_EVENT_MS = 30_000
REMIND_SCORE_THRESHOLD = 3
STATS_WINDOW = timedelta(hours=24)

DEFAULT_PRODUCTIVE_DOMAINS = ("github.com", "wikipedia.org", "stackoverflow.com")

# Keys used by the persisted config object of the browser extension.
_CAMEL_CASE_KEYS = {
    "idleThresholdSeconds": "idle_threshold_seconds",
    "distractionSwitchThreshold": "distraction_switch_threshold",
    "productiveDomains": "productive_domains",
    "reminderCooldownMs": "reminder_cooldown_ms",
}


@dataclass(slots=True)
class EngineSettings:
    """Runtime configuration for the focus engine."""

    idle_threshold_seconds: int = 60
    distraction_switch_threshold: int = 3
    productive_domains: tuple[str, ...] = field(
        default_factory=lambda: DEFAULT_PRODUCTIVE_DOMAINS
    )
    reminder_cooldown: timedelta = timedelta(minutes=1)
    assess_interval: timedelta = timedelta(seconds=30)
    dispatch_timeout: timedelta = timedelta(seconds=2)

    @property
    def reminder_cooldown_ms(self) -> int:
        return int(self.reminder_cooldown.total_seconds() * 1000)

    @classmethod
    def from_intervals(
        cls,
        assess_seconds: float,
        dispatch_timeout_seconds: float | None = None,
    ) -> "EngineSettings":
        timeout = dispatch_timeout_seconds if dispatch_timeout_seconds is not None else 2.0
        return cls(
            assess_interval=timedelta(seconds=assess_seconds),
            dispatch_timeout=timedelta(seconds=timeout),
        )

    def merged(self, overrides: Mapping[str, Any]) -> "EngineSettings":
        """Return a copy with ``overrides`` applied; raises ValueError on bad input."""
        changes: dict[str, Any] = {}
        for raw_key, value in overrides.items():
            key = _CAMEL_CASE_KEYS.get(raw_key, raw_key)
            if value is None:
                continue
            if key == "idle_threshold_seconds":
                changes[key] = _int_at_least(key, value, minimum=0)
            elif key == "distraction_switch_threshold":
                changes[key] = _int_at_least(key, value, minimum=1)
            elif key == "productive_domains":
                changes[key] = _domains(value)
            elif key == "reminder_cooldown_ms":
                ms = _int_at_least(key, value, minimum=0)
                changes["reminder_cooldown"] = timedelta(milliseconds=ms)
            else:
                raise ValueError(f"Unknown setting: {raw_key}")
        return replace(self, **changes)

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], base: "EngineSettings | None" = None
    ) -> "EngineSettings":
        """Merge a stored config over ``base`` (or the defaults), skipping bad keys."""
        settings = base or cls()
        for key, value in mapping.items():
            try:
                settings = settings.merged({key: value})
            except ValueError as exc:
                logger.warning("Ignoring stored setting %s: %s", key, exc)
        return settings

    def to_payload(self) -> dict[str, Any]:
        return {
            "idleThresholdSeconds": self.idle_threshold_seconds,
            "distractionSwitchThreshold": self.distraction_switch_threshold,
            "productiveDomains": list(self.productive_domains),
            "reminderCooldownMs": self.reminder_cooldown_ms,
        }


def _int_at_least(key: str, value: Any, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer") from exc
    if number < minimum:
        raise ValueError(f"{key} must be >= {minimum}")
    return number


def _domains(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(",")
    try:
        items = [str(item).strip().lower() for item in value]
    except TypeError as exc:
        raise ValueError("productive_domains must be a list of hostnames") from exc
    # Keep the configured order, drop blanks and repeats.
    return tuple(dict.fromkeys(item for item in items if item))
