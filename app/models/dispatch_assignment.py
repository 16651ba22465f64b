"""Dispatch assignment: one offer of an issue to one handyman."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, ForeignKey, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, ULIDMixin, enum_column_type, utcnow
from app.models.enums import DispatchStatus, MessageChannel


class DispatchAssignment(Base, ULIDMixin):
    __tablename__ = "dispatch_assignments"
    __table_args__ = (
        # At most one live offer per (issue, handyman).
        Index(
            "uq_dispatch_pending_pair",
            "issue_id", "handyman_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    issue_id: Mapped[str] = mapped_column(String(26), ForeignKey("issues.id"), index=True)
    handyman_id: Mapped[str] = mapped_column(String(26), ForeignKey("handymen.id"), index=True)
    status: Mapped[DispatchStatus] = mapped_column(
        enum_column_type(DispatchStatus), default=DispatchStatus.PENDING, index=True
    )
    channel: Mapped[MessageChannel] = mapped_column(
        enum_column_type(MessageChannel), default=MessageChannel.WHATSAPP
    )
    dispatch_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    response_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    last_follow_up_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    message_id: Mapped[str | None] = mapped_column(String(100), nullable=True, default=None)

    issue = relationship("Issue", lazy="selectin")
    handyman = relationship("Handyman", lazy="selectin")
