"""Weekly working hours and time-off requests."""

from __future__ import annotations

from datetime import date, time

from sqlalchemy import String, Boolean, Date, Integer, Time, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, ULIDMixin, enum_column_type
from app.models.enums import TimeOffStatus

# Mon-Fri 09:00-17:00, weekend off
DEFAULT_START = time(9, 0)
DEFAULT_END = time(17, 0)
DEFAULT_WORKDAYS = range(5)


class WeeklyAvailability(Base, ULIDMixin):
    __tablename__ = "handyman_availability"
    __table_args__ = (
        UniqueConstraint("handyman_id", "day_of_week", name="uq_availability_day"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day_range"),
    )

    handyman_id: Mapped[str] = mapped_column(String(26), ForeignKey("handymen.id", ondelete="CASCADE"), index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0 = Monday
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

    handyman = relationship("Handyman", back_populates="weekly_availability")

    @classmethod
    def default_week(cls, handyman_id: str) -> list["WeeklyAvailability"]:
        return [
            cls(
                handyman_id=handyman_id, day_of_week=day, start_time=DEFAULT_START,
                end_time=DEFAULT_END, is_available=day in DEFAULT_WORKDAYS,
            )
            for day in range(7)
        ]


class TimeOff(Base, ULIDMixin):
    __tablename__ = "handyman_time_off"

    handyman_id: Mapped[str] = mapped_column(String(26), ForeignKey("handymen.id", ondelete="CASCADE"), index=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)  # inclusive
    reason: Mapped[str] = mapped_column(String(500), default="")
    status: Mapped[TimeOffStatus] = mapped_column(
        enum_column_type(TimeOffStatus), default=TimeOffStatus.REQUESTED
    )
