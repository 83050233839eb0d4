"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from typing import Any, Mapping

from .models import FocusStats


class StatsPrinter:
    """Render human-readable focus statistics in the console."""

    def print_stats(self, stats: FocusStats) -> None:
        if not stats.samples:
            print("No activity recorded in the last 24 hours.")
            return

        print("Last 24 hours")
        print("-" * 40)
        print(f"Focused time:  {format_duration(stats.total_focused_ms / 1000)}")
        print(f"Distractions:  {stats.distraction_count}")
        print(f"Samples:       {stats.samples}")
        print(f"Focus ratio:   {focus_ratio(stats):.0%}")

    def print_config(self, payload: Mapping[str, Any]) -> None:
        for key, value in payload.items():
            if isinstance(value, list):
                value = ", ".join(value) or "(none)"
            print(f"{key:<28} {value}")


def focus_ratio(stats: FocusStats) -> float:
    if not stats.samples:
        return 0.0
    return (stats.samples - stats.distraction_count) / stats.samples


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
