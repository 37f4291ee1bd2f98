"""
Listing Models

Database models for the opportunities students browse and apply to.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apply4me.modules.shared import BaseModel


class ListingType(str, enum.Enum):
    """The three listing collections."""

    INSTITUTIONS = "institutions"
    PROGRAMS = "programs"
    BURSARIES = "bursaries"


class Institution(BaseModel):
    """A university, university of technology or TVET college."""

    __tablename__ = "institutions"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    province: Mapped[str | None] = mapped_column(String(100), nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    application_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    application_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_featured: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    programs: Mapped[list["Program"]] = relationship(
        "Program", back_populates="institution", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_institutions_application_deadline", "application_deadline"),)


class Program(BaseModel):
    """A qualification offered by an institution."""

    __tablename__ = "programs"

    institution_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("institutions.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    qualification_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    application_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    institution: Mapped["Institution"] = relationship("Institution", back_populates="programs")

    __table_args__ = (
        Index("ix_programs_application_deadline", "application_deadline"),
        Index("ix_programs_institution_id", "institution_id"),
    )


class Bursary(BaseModel):
    """A funding opportunity."""

    __tablename__ = "bursaries"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    provider: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    application_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_bursaries_application_deadline", "application_deadline"),)
