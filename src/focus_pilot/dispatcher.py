"""Two-tier delivery of reminders to a browser tab."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Callable, Iterable, Optional, Protocol

from .classifier import classify
from .errors import DeliveryError, TabLookupError
from .models import DispatchResult, NotificationEvent, ReminderReason

logger = logging.getLogger(__name__)


class TabDirectory(Protocol):
    async def resolve_url(self, tab_id: int) -> Optional[str]: ...


class PrimaryChannel(Protocol):
    name: str

    async def send(self, tab_id: int, message: dict[str, Any]) -> None: ...


class FallbackChannel(Protocol):
    name: str

    async def deliver(self, tab_id: int, reason: ReminderReason, score: int) -> None: ...


def reminder_message(event: NotificationEvent) -> dict[str, Any]:
    return {
        "type": "SHOW_REMINDER",
        "payload": {"reason": event.reason.value, "score": event.score},
    }


class NotificationDispatcher:
    """Deliver a reminder through the primary channel, falling back once.

    Before a distraction-site reminder is delivered the target tab's URL is
    looked up again; if it no longer classifies as a distraction site the
    reminder is suppressed. Pattern reminders are not re-checked. Each channel
    gets one attempt bounded by ``timeout``.
    """

    def __init__(
        self,
        tabs: TabDirectory,
        primary: PrimaryChannel,
        fallback: FallbackChannel,
        productive_domains: Callable[[], Iterable[str]],
        timeout: timedelta = timedelta(seconds=2),
    ) -> None:
        self._tabs = tabs
        self._primary = primary
        self._fallback = fallback
        self._productive_domains = productive_domains
        self.timeout = timeout

    async def dispatch(self, event: NotificationEvent) -> DispatchResult:
        tab_id = event.target_tab_id
        guarded = event.reason is ReminderReason.DISTRACTION_SITE
        if guarded and await self._is_stale_target(tab_id):
            return DispatchResult(delivered=False, suppressed=True)

        seconds = self.timeout.total_seconds()
        try:
            await asyncio.wait_for(
                self._primary.send(tab_id, reminder_message(event)), seconds
            )
            logger.info("Reminder %s sent to tab %s", event.reason.value, tab_id)
            return DispatchResult(delivered=True, channel=self._primary.name)
        except (DeliveryError, asyncio.TimeoutError) as exc:
            logger.debug("Primary delivery to tab %s failed: %r", tab_id, exc)

        try:
            await asyncio.wait_for(
                self._fallback.deliver(tab_id, event.reason, event.score), seconds
            )
            logger.info(
                "Reminder %s delivered to tab %s via fallback", event.reason.value, tab_id
            )
            return DispatchResult(delivered=True, channel=self._fallback.name)
        except (DeliveryError, asyncio.TimeoutError) as exc:
            logger.warning("Reminder for tab %s not delivered: %r", tab_id, exc)
            return DispatchResult(delivered=False)

    async def _is_stale_target(self, tab_id: int) -> bool:
        try:
            url = await asyncio.wait_for(
                self._tabs.resolve_url(tab_id), self.timeout.total_seconds()
            )
        except (TabLookupError, asyncio.TimeoutError) as exc:
            logger.debug("Could not resolve tab %s, delivering anyway: %r", tab_id, exc)
            return False
        if classify(url, self._productive_domains()).distraction:
            return False
        logger.debug("Suppressed reminder: tab %s is no longer a distraction site (%s)", tab_id, url)
        return True
