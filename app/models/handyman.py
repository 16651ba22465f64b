"""Handyman model: receives dispatch offers for maintenance issues."""

from __future__ import annotations

from sqlalchemy import String, Boolean, Float, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, ULIDMixin, enum_column_type
from app.models.enums import HandymanStatus
from app.models.property import property_handymen


class Handyman(Base, ULIDMixin):
    __tablename__ = "handymen"

    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(255), default="")
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True, default=None)
    specialties: Mapped[list] = mapped_column(JSON, default=list)
    availability: Mapped[HandymanStatus] = mapped_column(
        enum_column_type(HandymanStatus), default=HandymanStatus.AVAILABLE
    )
    rating: Mapped[float | None] = mapped_column(Float, nullable=True, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    coverage_areas = relationship(
        "CoverageArea", back_populates="handyman", lazy="selectin",
        order_by="CoverageArea.priority", cascade="all, delete-orphan",
    )
    weekly_availability = relationship(
        "WeeklyAvailability", back_populates="handyman", lazy="selectin",
        order_by="WeeklyAvailability.day_of_week", cascade="all, delete-orphan",
    )
    properties = relationship(
        "Property", secondary=property_handymen, back_populates="handymen", lazy="selectin",
    )
