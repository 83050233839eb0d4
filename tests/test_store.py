from datetime import datetime, timedelta, timezone

import pytest

from focus_pilot.errors import StoreError
from focus_pilot.models import FocusRecord
from focus_pilot.store import Database, EventLogStore, SettingsStore

from conftest import START


@pytest.mark.asyncio
async def test_query_returns_records_since_in_insertion_order(database):
    log = EventLogStore(database)
    late = FocusRecord(START + timedelta(minutes=5), 1000, True)
    early = FocusRecord(START, 2000, False)
    old = FocusRecord(START - timedelta(hours=1), 3000, True)
    for record in (late, early, old, late):
        await log.append(record)

    assert await log.query(START) == [late, early, late]
    assert await log.query(START - timedelta(days=1)) == [late, early, old, late]


@pytest.mark.asyncio
async def test_reset_all_clears_log(database):
    log = EventLogStore(database)
    await log.append(FocusRecord(START, 1000, True))
    await log.reset_all()
    assert await log.query(START - timedelta(days=1)) == []


@pytest.mark.asyncio
async def test_records_survive_reopen(db_path):
    first = Database(db_path)
    await EventLogStore(first).append(FocusRecord(START, 1500, True))
    first.close()

    second = Database(db_path)
    try:
        records = await EventLogStore(second).query(START)
    finally:
        second.close()
    assert records == [FocusRecord(START, 1500, True)]


@pytest.mark.asyncio
async def test_append_failure_raises_store_error(db_path):
    db = Database(db_path)
    db.close()
    with pytest.raises(StoreError):
        await EventLogStore(db).append(FocusRecord(START, 1000, True))


def test_negative_duration_is_rejected():
    with pytest.raises(ValueError):
        FocusRecord(START, -1, True)


@pytest.mark.asyncio
async def test_settings_store_values(database):
    store = SettingsStore(database)
    assert await store.get("missing") is None

    await store.set_json("config", {"distractionSwitchThreshold": 4})
    assert await store.get_json("config") == {"distractionSwitchThreshold": 4}

    await store.set_timestamp("last_reminder_at", START)
    assert await store.get_timestamp("last_reminder_at") == START

    await store.set("config", "{not json")
    assert await store.get_json("config") is None


@pytest.mark.asyncio
async def test_aware_timestamps_are_windowed_in_utc(database):
    log = EventLogStore(database)
    # 01:30 EDT, then 01:10 EST an hour later once clocks fall back.
    before = FocusRecord(datetime(2024, 11, 3, 1, 30, tzinfo=timezone(timedelta(hours=-4))), 1000, True)
    after = FocusRecord(datetime(2024, 11, 3, 1, 10, tzinfo=timezone(timedelta(hours=-5))), 2000, False)
    await log.append(before)
    await log.append(after)

    since = datetime(2024, 11, 3, 6, 0, tzinfo=timezone.utc)
    records = await log.query(since)

    assert [record.duration_ms for record in records] == [2000]
    assert records[0].timestamp == datetime(2024, 11, 3, 6, 10)


@pytest.mark.asyncio
async def test_settings_timestamps_are_stored_in_utc(database):
    store = SettingsStore(database)
    await store.set_timestamp("snooze_until", datetime(2024, 5, 1, 11, 0, tzinfo=timezone(timedelta(hours=2))))
    assert await store.get_timestamp("snooze_until") == START
