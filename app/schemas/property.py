from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel


class PropertyCreate(BaseModel):
    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    type: str = "residential"
    owner_name: str | None = None
    owner_phone: str | None = None
    owner_email: str | None = None


class PropertyRead(BaseModel):
    id: str
    name: str
    address: str
    city: str
    state: str
    zip_code: str
    type: str
    owner_name: str | None = None
    owner_phone: str | None = None
    owner_email: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PropertyHandymanLink(BaseModel):
    handyman_id: str
