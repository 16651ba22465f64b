"""Weekly schedules and time-off for handymen."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.models import Handyman, HandymanStatus, TimeOff, TimeOffStatus, WeeklyAvailability
from app.models.availability import DEFAULT_END, DEFAULT_START, DEFAULT_WORKDAYS
from app.services.errors import InvalidSchedule, NotFound, TimeOffAlreadyDecided

logger = logging.getLogger(__name__)

DAYS_IN_WEEK = 7


@dataclass
class DaySchedule:
    day_of_week: int  # 0 = Monday
    start_time: time
    end_time: time
    is_available: bool = True


def default_week() -> list[DaySchedule]:
    """Mon-Fri 09:00-17:00, weekend off."""
    return [
        DaySchedule(day, DEFAULT_START, DEFAULT_END, is_available=day in DEFAULT_WORKDAYS)
        for day in range(DAYS_IN_WEEK)
    ]


def _validate_week(rows: list[DaySchedule]) -> list[DaySchedule]:
    if len(rows) != DAYS_IN_WEEK:
        raise InvalidSchedule(f"Expected {DAYS_IN_WEEK} days, got {len(rows)}")
    days = sorted(r.day_of_week for r in rows)
    if days != list(range(DAYS_IN_WEEK)):
        raise InvalidSchedule(f"Days must be 0-6 exactly once, got {days}")
    for r in rows:
        if r.is_available and r.end_time <= r.start_time:
            raise InvalidSchedule(f"Day {r.day_of_week}: end_time must be after start_time")
    return sorted(rows, key=lambda r: r.day_of_week)


async def replace_weekly_schedule(
    db: AsyncSession, handyman_id: str, rows: list[DaySchedule]
) -> list[WeeklyAvailability]:
    """Swap the handyman's seven day rows for ``rows`` in one transaction.

    Either all seven new rows are committed or the old set stays untouched.
    """
    ordered = _validate_week(rows)
    handyman = await db.get(Handyman, handyman_id)
    if handyman is None:
        raise NotFound("Handyman not found")

    try:
        await db.execute(delete(WeeklyAvailability).where(WeeklyAvailability.handyman_id == handyman_id))
        new_rows = [
            WeeklyAvailability(
                handyman_id=handyman_id,
                day_of_week=r.day_of_week,
                start_time=r.start_time,
                end_time=r.end_time,
                is_available=r.is_available,
            )
            for r in ordered
        ]
        db.add_all(new_rows)
        await db.commit()
        await db.refresh(handyman, ["weekly_availability"])
    except Exception:
        await db.rollback()
        logger.exception("Weekly schedule save failed for handyman %s", handyman_id)
        raise

    result = await db.execute(
        select(WeeklyAvailability)
        .where(WeeklyAvailability.handyman_id == handyman_id)
        .order_by(WeeklyAvailability.day_of_week)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def request_time_off(
    db: AsyncSession, handyman_id: str, start_date: date, end_date: date, reason: str = ""
) -> TimeOff:
    if end_date < start_date:
        raise InvalidSchedule("end_date must not be before start_date")
    if await db.get(Handyman, handyman_id) is None:
        raise NotFound("Handyman not found")
    return await crud.create_time_off(db, handyman_id, start_date, end_date, reason)


async def decide_time_off(db: AsyncSession, time_off_id: str, approve: bool) -> TimeOff:
    """Move a requested entry to approved or denied. Decisions are final."""
    entry = await db.get(TimeOff, time_off_id)
    if entry is None:
        raise NotFound("Time-off request not found")
    if TimeOffStatus(entry.status) is not TimeOffStatus.REQUESTED:
        raise TimeOffAlreadyDecided(f"Time-off request already {TimeOffStatus(entry.status).value}")
    entry.status = TimeOffStatus.APPROVED if approve else TimeOffStatus.DENIED
    await db.commit()
    await db.refresh(entry)
    return entry


async def is_time_off_day(db: AsyncSession, handyman_id: str, day: date) -> bool:
    """True only when an approved interval covers ``day`` (both ends inclusive)."""
    result = await db.execute(
        select(TimeOff.id).where(
            TimeOff.handyman_id == handyman_id,
            TimeOff.status == TimeOffStatus.APPROVED,
            TimeOff.start_date <= day,
            TimeOff.end_date >= day,
        )
    )
    return result.first() is not None


async def is_working_at(db: AsyncSession, handyman_id: str, when: datetime) -> bool:
    """Scheduled for ``when``'s weekday and hour, and not on approved time off."""
    result = await db.execute(
        select(WeeklyAvailability).where(
            WeeklyAvailability.handyman_id == handyman_id,
            WeeklyAvailability.day_of_week == when.weekday(),
        )
    )
    row = result.scalars().first()
    if row is None or not row.is_available:
        return False
    now_time = when.time().replace(tzinfo=None)
    if not (row.start_time <= now_time < row.end_time):
        return False
    return not await is_time_off_day(db, handyman_id, when.date())


def accepts_offers(handyman: Handyman) -> bool:
    """Status filter for auto-matching; schedule checks are separate."""
    return bool(handyman.is_active) and HandymanStatus(handyman.availability) is HandymanStatus.AVAILABLE
