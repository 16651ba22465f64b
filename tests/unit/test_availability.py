from datetime import date, datetime, time, timezone

import pytest

from app.db import crud
from app.models import HandymanStatus, TimeOffStatus
from app.services import availability
from app.services.availability import DaySchedule
from app.services.errors import InvalidSchedule, NotFound, TimeOffAlreadyDecided


@pytest.fixture
def week():
    return availability.default_week()


async def test_out_of_order_week_is_saved_sorted(db, world, week):
    shuffled = [week[i] for i in (6, 2, 0, 5, 1, 4, 3)]
    rows = await availability.replace_weekly_schedule(db, world["alice"].id, shuffled)
    assert [r.day_of_week for r in rows] == list(range(7))
    assert rows[0].start_time == time(9, 0)
    assert rows[6].is_available is False


async def test_saving_again_replaces_previous_week(db, world, week):
    await availability.replace_weekly_schedule(db, world["alice"].id, week)
    late = [DaySchedule(d, time(12, 0), time(20, 0)) for d in range(7)]
    await availability.replace_weekly_schedule(db, world["alice"].id, late)
    rows = await crud.list_weekly_availability(db, world["alice"].id)
    assert len(rows) == 7
    assert all(r.start_time == time(12, 0) for r in rows)


@pytest.mark.parametrize("days", [
    list(range(6)),
    [0, 1, 2, 3, 4, 5, 5],
    [0, 1, 2, 3, 4, 5, 7],
])
async def test_week_must_have_each_day_once(db, world, days):
    rows = [DaySchedule(d, time(9, 0), time(17, 0)) for d in days]
    with pytest.raises(InvalidSchedule):
        await availability.replace_weekly_schedule(db, world["alice"].id, rows)


async def test_rejected_week_keeps_old_rows(db, world, week):
    await availability.replace_weekly_schedule(db, world["alice"].id, week)
    bad = [DaySchedule(d, time(17, 0), time(9, 0)) for d in range(7)]
    with pytest.raises(InvalidSchedule):
        await availability.replace_weekly_schedule(db, world["alice"].id, bad)
    rows = await crud.list_weekly_availability(db, world["alice"].id)
    assert [r.start_time for r in rows] == [time(9, 0)] * 7


async def test_schedule_for_unknown_handyman(db, week):
    with pytest.raises(NotFound):
        await availability.replace_weekly_schedule(db, "nope", week)


async def test_only_approved_time_off_counts(db, world):
    hid = world["alice"].id
    entry = await availability.request_time_off(db, hid, date(2024, 3, 4), date(2024, 3, 6), "Trip")
    assert entry.status == TimeOffStatus.REQUESTED
    assert not await availability.is_time_off_day(db, hid, date(2024, 3, 5))

    await availability.decide_time_off(db, entry.id, approve=True)
    assert await availability.is_time_off_day(db, hid, date(2024, 3, 4))
    assert await availability.is_time_off_day(db, hid, date(2024, 3, 6))
    assert not await availability.is_time_off_day(db, hid, date(2024, 3, 7))


async def test_time_off_decision_is_final(db, world):
    entry = await availability.request_time_off(db, world["alice"].id, date(2024, 3, 4), date(2024, 3, 4))
    await availability.decide_time_off(db, entry.id, approve=False)
    with pytest.raises(TimeOffAlreadyDecided):
        await availability.decide_time_off(db, entry.id, approve=True)


async def test_time_off_end_before_start(db, world):
    with pytest.raises(InvalidSchedule):
        await availability.request_time_off(db, world["alice"].id, date(2024, 3, 5), date(2024, 3, 4))


async def test_is_working_at(db, world, week):
    hid = world["alice"].id
    await availability.replace_weekly_schedule(db, hid, week)
    monday_10 = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)
    assert await availability.is_working_at(db, hid, monday_10)
    assert not await availability.is_working_at(db, hid, monday_10.replace(hour=17))
    assert not await availability.is_working_at(db, hid, datetime(2024, 3, 9, 10, 0, tzinfo=timezone.utc))

    entry = await availability.request_time_off(db, hid, date(2024, 3, 4), date(2024, 3, 4))
    await availability.decide_time_off(db, entry.id, approve=True)
    assert not await availability.is_working_at(db, hid, monday_10)


async def test_accepts_offers_requires_active_and_available(db, world):
    alice = world["alice"]
    assert availability.accepts_offers(alice)
    alice = await crud.update_handyman(db, alice, availability=HandymanStatus.ON_VACATION)
    assert not availability.accepts_offers(alice)
    alice = await crud.update_handyman(db, alice, availability=HandymanStatus.AVAILABLE, is_active=False)
    assert not availability.accepts_offers(alice)
