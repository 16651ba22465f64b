from __future__ import annotations

from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, ULIDMixin


property_handymen = Table(
    "property_handymen",
    Base.metadata,
    Column("property_id", String(26), ForeignKey("properties.id", ondelete="CASCADE"), primary_key=True),
    Column("handyman_id", String(26), ForeignKey("handymen.id", ondelete="CASCADE"), primary_key=True),
)


class Property(Base, ULIDMixin):
    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(255))
    address: Mapped[str] = mapped_column(String(500), default="")
    city: Mapped[str] = mapped_column(String(120), default="")
    state: Mapped[str] = mapped_column(String(60), default="")
    zip_code: Mapped[str] = mapped_column(String(20), default="")
    type: Mapped[str] = mapped_column(String(40), default="residential")
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True, default=None)
    owner_phone: Mapped[str | None] = mapped_column(String(50), nullable=True, default=None)
    owner_email: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)

    issues = relationship("Issue", back_populates="property", lazy="selectin")
    handymen = relationship("Handyman", secondary=property_handymen, back_populates="properties", lazy="selectin")

    @property
    def full_address(self) -> str:
        """Street, City, State ZIP, skipping empty parts."""
        locality = ", ".join(p for p in (self.city, self.state) if p)
        if self.zip_code:
            locality = f"{locality} {self.zip_code}".strip()
        return ", ".join(p for p in (self.address, locality) if p)
