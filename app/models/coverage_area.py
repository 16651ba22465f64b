"""Declared service areas for a handyman."""

from __future__ import annotations

from sqlalchemy import String, Boolean, Float, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, ULIDMixin, enum_column_type
from app.models.enums import CoverageType


class CoverageArea(Base, ULIDMixin):
    __tablename__ = "handyman_locations"

    handyman_id: Mapped[str] = mapped_column(String(26), ForeignKey("handymen.id", ondelete="CASCADE"), index=True)
    coverage_type: Mapped[CoverageType] = mapped_column(enum_column_type(CoverageType))
    value: Mapped[str] = mapped_column(String(255))  # zip | "City, State" | center point label
    radius_miles: Mapped[float | None] = mapped_column(Float, nullable=True, default=None)
    priority: Mapped[int] = mapped_column(Integer, default=1)  # lower is preferred
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)

    handyman = relationship("Handyman", back_populates="coverage_areas")
