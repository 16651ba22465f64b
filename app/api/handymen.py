"""Handyman roster, coverage areas, weekly schedule and time-off."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.dependencies import get_db, http_error
from app.schemas import (
    CoverageAreaCreate, CoverageAreaRead, DayScheduleRead, HandymanCreate,
    HandymanRead, HandymanUpdate, MatchScoreRead, TimeOffCreate, TimeOffDecision,
    TimeOffRead, WeeklyScheduleUpdate,
)
from app.services import availability
from app.services.errors import DispatchError
from app.services.matching import HandymanProfile, rank_properties
from app.services.phone import is_valid_phone

router = APIRouter(prefix="/api/handymen", tags=["handymen"])


async def _get_handyman_or_404(db: AsyncSession, handyman_id: str):
    handyman = await crud.get_handyman(db, handyman_id)
    if not handyman:
        raise HTTPException(404, "Handyman not found")
    return handyman


@router.get("", response_model=list[HandymanRead])
async def list_handymen(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_handymen(db, active_only=not include_inactive)


@router.post("", response_model=HandymanRead, status_code=201)
async def create_handyman(
    body: HandymanCreate,
    db: AsyncSession = Depends(get_db),
):
    if body.phone and not is_valid_phone(body.phone):
        raise HTTPException(422, "Phone number must have at least 10 digits")
    return await crud.create_handyman(db, **body.model_dump())


@router.get("/{handyman_id}", response_model=HandymanRead)
async def get_handyman(
    handyman_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await _get_handyman_or_404(db, handyman_id)


@router.put("/{handyman_id}", response_model=HandymanRead)
async def update_handyman(
    handyman_id: str,
    body: HandymanUpdate,
    db: AsyncSession = Depends(get_db),
):
    handyman = await _get_handyman_or_404(db, handyman_id)
    updates = body.model_dump(exclude_none=True)
    if updates.get("phone") and not is_valid_phone(updates["phone"]):
        raise HTTPException(422, "Phone number must have at least 10 digits")
    if updates:
        handyman = await crud.update_handyman(db, handyman, **updates)
    return handyman


@router.delete("/{handyman_id}")
async def delete_handyman(
    handyman_id: str,
    db: AsyncSession = Depends(get_db),
):
    handyman = await _get_handyman_or_404(db, handyman_id)
    handyman = await crud.update_handyman(db, handyman, is_active=False)
    return {"ok": True, "id": handyman.id}


# ── Coverage ─────────────────────────────────────────────

@router.get("/{handyman_id}/coverage", response_model=list[CoverageAreaRead])
async def list_coverage(
    handyman_id: str,
    db: AsyncSession = Depends(get_db),
):
    await _get_handyman_or_404(db, handyman_id)
    return await crud.list_coverage_areas(db, handyman_id)


@router.post("/{handyman_id}/coverage", response_model=CoverageAreaRead, status_code=201)
async def add_coverage(
    handyman_id: str,
    body: CoverageAreaCreate,
    db: AsyncSession = Depends(get_db),
):
    await _get_handyman_or_404(db, handyman_id)
    return await crud.add_coverage_area(db, handyman_id, **body.model_dump())


@router.put("/{handyman_id}/coverage/{area_id}", response_model=CoverageAreaRead)
async def update_coverage(
    handyman_id: str,
    area_id: str,
    body: CoverageAreaCreate,
    db: AsyncSession = Depends(get_db),
):
    area = await crud.get_coverage_area(db, area_id)
    if not area or area.handyman_id != handyman_id:
        raise HTTPException(404, "Coverage area not found")
    return await crud.update_coverage_area(db, area, **body.model_dump())


@router.delete("/{handyman_id}/coverage/{area_id}", status_code=204)
async def delete_coverage(
    handyman_id: str,
    area_id: str,
    db: AsyncSession = Depends(get_db),
):
    area = await crud.get_coverage_area(db, area_id)
    if not area or area.handyman_id != handyman_id:
        raise HTTPException(404, "Coverage area not found")
    await crud.delete_coverage_area(db, area)


# ── Weekly availability ──────────────────────────────────

@router.get("/{handyman_id}/availability", response_model=list[DayScheduleRead])
async def get_availability(
    handyman_id: str,
    db: AsyncSession = Depends(get_db),
):
    await _get_handyman_or_404(db, handyman_id)
    return await crud.list_weekly_availability(db, handyman_id)


@router.put("/{handyman_id}/availability", response_model=list[DayScheduleRead])
async def put_availability(
    handyman_id: str,
    body: WeeklyScheduleUpdate,
    db: AsyncSession = Depends(get_db),
):
    rows = [availability.DaySchedule(**day.model_dump()) for day in body.days]
    try:
        return await availability.replace_weekly_schedule(db, handyman_id, rows)
    except DispatchError as e:
        raise http_error(e)


# ── Time off ─────────────────────────────────────────────

@router.get("/{handyman_id}/time-off", response_model=list[TimeOffRead])
async def list_time_off(
    handyman_id: str,
    db: AsyncSession = Depends(get_db),
):
    await _get_handyman_or_404(db, handyman_id)
    return await crud.list_time_off(db, handyman_id)


@router.post("/{handyman_id}/time-off", response_model=TimeOffRead, status_code=201)
async def request_time_off(
    handyman_id: str,
    body: TimeOffCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await availability.request_time_off(
            db, handyman_id, body.start_date, body.end_date, body.reason,
        )
    except DispatchError as e:
        raise http_error(e)


@router.post("/{handyman_id}/time-off/{time_off_id}/decision", response_model=TimeOffRead)
async def decide_time_off(
    handyman_id: str,
    time_off_id: str,
    body: TimeOffDecision,
    db: AsyncSession = Depends(get_db),
):
    entry = await crud.get_time_off(db, time_off_id)
    if not entry or entry.handyman_id != handyman_id:
        raise HTTPException(404, "Time-off request not found")
    try:
        return await availability.decide_time_off(db, time_off_id, body.approve)
    except DispatchError as e:
        raise http_error(e)


# ── Matching ─────────────────────────────────────────────

@router.get("/{handyman_id}/matches", response_model=list[MatchScoreRead])
async def list_matches(
    handyman_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Properties this handyman is not yet assigned to, best match first."""
    handyman = await _get_handyman_or_404(db, handyman_id)
    profile = HandymanProfile(
        handyman_id=handyman.id,
        name=handyman.name,
        specialties=handyman.specialties or [],
        coverage_areas=await crud.list_coverage_areas(db, handyman.id),
        completed_jobs=await crud.count_completed_jobs_by_property(db, handyman.id),
    )
    properties = await crud.list_unassigned_properties(db, handyman.id)
    return [score.as_dict() for score in rank_properties(profile, properties)]
