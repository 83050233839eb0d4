"""Delivery channels and tab lookup used by the notification dispatcher."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Optional, Protocol

from plyer import notification as plyer_notification

from .errors import DeliveryError, TabLookupError
from .models import ReminderReason

logger = logging.getLogger(__name__)

APP_NAME = "FocusPilot"

FALLBACK_TEXT = {
    ReminderReason.DISTRACTION_SITE: "You're on a distracting site. Refocus!",
    ReminderReason.DISTRACTION_PATTERN: "Rapid tab switching detected. Take a breath.",
}


class JsonSocket(Protocol):
    async def send_json(self, data: Any) -> None: ...


class TabRegistry:
    """Last known URL of every tab the browser has told us about."""

    def __init__(self) -> None:
        self._urls: dict[int, Optional[str]] = {}

    def update(self, tab_id: int, url: Optional[str]) -> None:
        self._urls[tab_id] = url

    def forget(self, tab_id: int) -> None:
        self._urls.pop(tab_id, None)

    async def resolve_url(self, tab_id: int) -> Optional[str]:
        try:
            return self._urls[tab_id]
        except KeyError:
            raise TabLookupError(f"tab {tab_id} is unknown") from None


class ListenerHub:
    """WebSocket listeners registered by content scripts, keyed by tab."""

    name = "listener"

    def __init__(self) -> None:
        self._listeners: defaultdict[int, list[JsonSocket]] = defaultdict(list)

    def register(self, tab_id: int, socket: JsonSocket) -> None:
        self._listeners[tab_id].append(socket)
        logger.debug("Listener registered for tab %s", tab_id)

    def unregister(self, tab_id: int, socket: JsonSocket) -> None:
        sockets = self._listeners.get(tab_id)
        if not sockets:
            return
        if socket in sockets:
            sockets.remove(socket)
        if not sockets:
            del self._listeners[tab_id]
        logger.debug("Listener removed for tab %s", tab_id)

    def listener_count(self, tab_id: int) -> int:
        return len(self._listeners.get(tab_id, ()))

    async def send(self, tab_id: int, message: dict[str, Any]) -> None:
        sockets = list(self._listeners.get(tab_id, ()))
        if not sockets:
            raise DeliveryError(f"no listener for tab {tab_id}")
        delivered = False
        for socket in sockets:
            try:
                await socket.send_json(message)
                delivered = True
            except Exception as exc:
                logger.debug("Dropping unreachable listener for tab %s: %s", tab_id, exc)
                self.unregister(tab_id, socket)
        if not delivered:
            raise DeliveryError(f"tab {tab_id} is unreachable")


class DesktopReminder:
    """Shows a minimal desktop notification carrying only reason and score."""

    name = "desktop"

    def __init__(self, timeout_seconds: int = 30) -> None:
        self.timeout_seconds = timeout_seconds

    async def deliver(self, tab_id: int, reason: ReminderReason, score: int) -> None:
        message = f"{FALLBACK_TEXT.get(reason, 'Stay focused!')} (score {score})"
        try:
            await asyncio.to_thread(self._notify, message)
        except Exception as exc:
            raise DeliveryError(f"desktop notification failed: {exc}") from exc

    def _notify(self, message: str) -> None:
        notify_func = getattr(plyer_notification, "notify", None)
        if not callable(notify_func):
            raise DeliveryError("plyer notification backend unavailable")
        notify_func(
            title=APP_NAME,
            message=message,
            timeout=self.timeout_seconds,
            app_name=APP_NAME,
        )
