from __future__ import annotations
from datetime import date, datetime, time
from pydantic import BaseModel, Field, model_validator
from app.models.enums import CoverageType, HandymanStatus, TimeOffStatus


class HandymanCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = ""
    phone: str | None = None
    specialties: list[str] = []
    availability: HandymanStatus = HandymanStatus.AVAILABLE
    rating: float | None = None


class HandymanUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    specialties: list[str] | None = None
    availability: HandymanStatus | None = None
    rating: float | None = None
    is_active: bool | None = None


class CoverageAreaCreate(BaseModel):
    coverage_type: CoverageType
    value: str = Field(min_length=1)
    radius_miles: float | None = None
    priority: int = Field(default=1, ge=1)
    is_primary: bool = False

    @model_validator(mode="after")
    def radius_needs_miles(self):
        if self.coverage_type is CoverageType.RADIUS and not self.radius_miles:
            raise ValueError("radius coverage requires radius_miles")
        return self


class CoverageAreaRead(BaseModel):
    id: str
    handyman_id: str
    coverage_type: CoverageType
    value: str
    radius_miles: float | None = None
    priority: int
    is_primary: bool

    model_config = {"from_attributes": True}


class HandymanRead(BaseModel):
    id: str
    name: str
    email: str
    phone: str | None = None
    specialties: list[str] = []
    availability: HandymanStatus
    rating: float | None = None
    is_active: bool
    created_at: datetime
    coverage_areas: list[CoverageAreaRead] = []

    model_config = {"from_attributes": True}


class DayScheduleIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6)  # 0 = Monday
    start_time: time
    end_time: time
    is_available: bool = True


class WeeklyScheduleUpdate(BaseModel):
    days: list[DayScheduleIn]


class DayScheduleRead(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool

    model_config = {"from_attributes": True}


class TimeOffCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str = ""


class TimeOffDecision(BaseModel):
    approve: bool


class TimeOffRead(BaseModel):
    id: str
    handyman_id: str
    start_date: date
    end_date: date
    reason: str
    status: TimeOffStatus
    created_at: datetime

    model_config = {"from_attributes": True}
