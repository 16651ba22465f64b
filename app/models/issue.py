"""Maintenance issues with their timeline and message log."""

from __future__ import annotations

from sqlalchemy import String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, ULIDMixin, enum_column_type
from app.models.enums import (
    IssuePriority, IssueStatus, IssueSource, MessageChannel, MessageDirection,
)


class Issue(Base, ULIDMixin):
    __tablename__ = "issues"

    property_id: Mapped[str] = mapped_column(String(26), ForeignKey("properties.id"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    priority: Mapped[IssuePriority] = mapped_column(
        enum_column_type(IssuePriority), default=IssuePriority.MEDIUM
    )
    status: Mapped[IssueStatus] = mapped_column(
        enum_column_type(IssueStatus), default=IssueStatus.OPEN
    )
    source: Mapped[IssueSource] = mapped_column(
        enum_column_type(IssueSource), default=IssueSource.MANUAL
    )
    handyman_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("handymen.id"), nullable=True, default=None
    )

    property = relationship("Property", back_populates="issues", lazy="selectin")
    handyman = relationship("Handyman", lazy="selectin")
    timeline = relationship(
        "IssueTimeline", back_populates="issue", lazy="selectin",
        order_by="IssueTimeline.created_at",
    )


class IssueTimeline(Base, ULIDMixin):
    __tablename__ = "issue_timeline"

    issue_id: Mapped[str] = mapped_column(String(26), ForeignKey("issues.id"), index=True)
    status: Mapped[str] = mapped_column(String(30))  # dispatched | accepted | declined | canceled | escalated | ...
    note: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True, default=None)

    issue = relationship("Issue", back_populates="timeline")


class IssueMessage(Base, ULIDMixin):
    __tablename__ = "issue_messages"

    issue_id: Mapped[str] = mapped_column(String(26), ForeignKey("issues.id"), index=True)
    channel: Mapped[MessageChannel] = mapped_column(enum_column_type(MessageChannel))
    direction: Mapped[MessageDirection] = mapped_column(enum_column_type(MessageDirection))
    recipient: Mapped[str] = mapped_column(String(50), default="")
    message: Mapped[str] = mapped_column(Text)
    external_id: Mapped[str | None] = mapped_column(String(100), nullable=True, default=None, index=True)
