"""Error types raised at the engine's component boundaries."""

from __future__ import annotations


class FocusPilotError(Exception):
    """Base class for recoverable engine errors."""


class ClassificationError(FocusPilotError):
    """A URL could not be parsed into a hostname."""


class StoreError(FocusPilotError):
    """Reading from or writing to the persistent store failed."""


class DeliveryError(FocusPilotError):
    """A reminder channel could not reach its target tab."""


class TabLookupError(FocusPilotError):
    """The current URL of a tab could not be resolved."""
