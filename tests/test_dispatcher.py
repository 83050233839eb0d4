from datetime import timedelta
from types import SimpleNamespace

import pytest

from focus_pilot import channels
from focus_pilot.channels import DesktopReminder, ListenerHub, TabRegistry
from focus_pilot.dispatcher import NotificationDispatcher
from focus_pilot.errors import DeliveryError, TabLookupError
from focus_pilot.models import NotificationEvent, ReminderReason

from conftest import RecordingChannel, RecordingFallback

SITE = NotificationEvent(ReminderReason.DISTRACTION_SITE, 99, 5)
PATTERN = NotificationEvent(ReminderReason.DISTRACTION_PATTERN, 4, 5)


def make_dispatcher(url="https://youtube.com/watch", primary=None, fallback=None):
    tabs = TabRegistry()
    if url is not None:
        tabs.update(5, url)
    primary = primary or RecordingChannel()
    fallback = fallback or RecordingFallback()
    dispatcher = NotificationDispatcher(
        tabs,
        primary,
        fallback,
        lambda: ("github.com",),
        timeout=timedelta(seconds=0.05),
    )
    return dispatcher, primary, fallback


@pytest.mark.asyncio
async def test_primary_channel_delivers():
    dispatcher, primary, fallback = make_dispatcher()
    result = await dispatcher.dispatch(SITE)
    assert result.delivered
    assert result.channel == "listener"
    assert primary.sent == [
        (5, {"type": "SHOW_REMINDER", "payload": {"reason": "distraction-site", "score": 99}})
    ]
    assert fallback.delivered == []


@pytest.mark.asyncio
async def test_falls_back_when_primary_fails():
    dispatcher, _, fallback = make_dispatcher(primary=RecordingChannel(fail=True))
    result = await dispatcher.dispatch(SITE)
    assert result.delivered
    assert result.channel == "desktop"
    assert fallback.delivered == [(5, ReminderReason.DISTRACTION_SITE, 99)]


@pytest.mark.asyncio
async def test_falls_back_when_primary_times_out():
    dispatcher, primary, fallback = make_dispatcher(primary=RecordingChannel(delay=1.0))
    result = await dispatcher.dispatch(SITE)
    assert result.channel == "desktop"
    assert primary.sent == []
    assert len(fallback.delivered) == 1


@pytest.mark.asyncio
async def test_both_channels_failing_is_not_fatal():
    dispatcher, _, _ = make_dispatcher(
        primary=RecordingChannel(fail=True), fallback=RecordingFallback(fail=True)
    )
    result = await dispatcher.dispatch(SITE)
    assert not result.delivered
    assert not result.suppressed


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["https://github.com/", "https://example.org/", None])
async def test_stale_site_reminder_is_suppressed(url):
    dispatcher, primary, fallback = make_dispatcher(url=None)
    dispatcher._tabs.update(5, url)
    result = await dispatcher.dispatch(SITE)
    assert result.suppressed
    assert not result.delivered
    assert primary.sent == [] and fallback.delivered == []


@pytest.mark.asyncio
async def test_unknown_tab_is_delivered_best_effort():
    dispatcher, primary, _ = make_dispatcher(url=None)
    result = await dispatcher.dispatch(SITE)
    assert result.delivered
    assert len(primary.sent) == 1


@pytest.mark.asyncio
async def test_pattern_reminder_is_not_rechecked():
    dispatcher, primary, _ = make_dispatcher(url="https://example.org/")
    result = await dispatcher.dispatch(PATTERN)
    assert result.delivered
    assert primary.sent[0][1]["payload"] == {"reason": "distraction-pattern", "score": 4}


@pytest.mark.asyncio
async def test_tab_registry_lookup():
    tabs = TabRegistry()
    tabs.update(1, "https://a.example/")
    assert await tabs.resolve_url(1) == "https://a.example/"
    tabs.forget(1)
    with pytest.raises(TabLookupError):
        await tabs.resolve_url(1)


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(data)


@pytest.mark.asyncio
async def test_listener_hub_sends_to_registered_tabs():
    hub = ListenerHub()
    socket = FakeSocket()
    hub.register(3, socket)
    await hub.send(3, {"type": "SHOW_REMINDER"})
    assert socket.messages == [{"type": "SHOW_REMINDER"}]

    with pytest.raises(DeliveryError):
        await hub.send(4, {"type": "SHOW_REMINDER"})


@pytest.mark.asyncio
async def test_listener_hub_drops_unreachable_sockets():
    hub = ListenerHub()
    hub.register(3, FakeSocket(fail=True))
    with pytest.raises(DeliveryError):
        await hub.send(3, {"type": "SHOW_REMINDER"})
    assert hub.listener_count(3) == 0


@pytest.mark.asyncio
async def test_desktop_reminder_carries_reason_and_score(monkeypatch):
    calls = []
    monkeypatch.setattr(
        channels, "plyer_notification", SimpleNamespace(notify=lambda **kw: calls.append(kw))
    )
    await DesktopReminder().deliver(5, ReminderReason.DISTRACTION_PATTERN, 4)
    assert calls[0]["title"] == "FocusPilot"
    assert calls[0]["message"] == "Rapid tab switching detected. Take a breath. (score 4)"


@pytest.mark.asyncio
async def test_desktop_reminder_failure_is_a_delivery_error(monkeypatch):
    def unavailable(**kwargs):
        raise NotImplementedError("no notification backend")

    monkeypatch.setattr(channels, "plyer_notification", SimpleNamespace(notify=unavailable))
    with pytest.raises(DeliveryError):
        await DesktopReminder().deliver(5, ReminderReason.DISTRACTION_SITE, 99)
