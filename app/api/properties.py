from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.dependencies import get_db
from app.schemas import HandymanRead, PropertyCreate, PropertyHandymanLink, PropertyRead

router = APIRouter(prefix="/api/properties", tags=["properties"])


@router.post("", response_model=PropertyRead, status_code=201)
async def create_property(
    body: PropertyCreate,
    db: AsyncSession = Depends(get_db),
):
    return await crud.create_property(db, **body.model_dump())


@router.get("", response_model=list[PropertyRead])
async def list_properties(db: AsyncSession = Depends(get_db)):
    return await crud.list_properties(db)


@router.get("/{property_id}", response_model=PropertyRead)
async def get_property(
    property_id: str,
    db: AsyncSession = Depends(get_db),
):
    prop = await crud.get_property(db, property_id)
    if not prop:
        raise HTTPException(404, "Property not found")
    return prop


@router.get("/{property_id}/handymen", response_model=list[HandymanRead])
async def list_property_handymen(
    property_id: str,
    db: AsyncSession = Depends(get_db),
):
    if not await crud.get_property(db, property_id):
        raise HTTPException(404, "Property not found")
    return await crud.list_property_handymen(db, property_id)


@router.post("/{property_id}/handymen", status_code=204)
async def assign_handyman(
    property_id: str,
    body: PropertyHandymanLink,
    db: AsyncSession = Depends(get_db),
):
    if not await crud.get_property(db, property_id):
        raise HTTPException(404, "Property not found")
    if not await crud.get_handyman(db, body.handyman_id):
        raise HTTPException(404, "Handyman not found")
    await crud.assign_handyman_to_property(db, property_id, body.handyman_id)


@router.delete("/{property_id}/handymen/{handyman_id}", status_code=204)
async def unassign_handyman(
    property_id: str,
    handyman_id: str,
    db: AsyncSession = Depends(get_db),
):
    await crud.unassign_handyman_from_property(db, property_id, handyman_id)
