"""
Application Models

A student's application to an institution, together with the payment that
unlocks submission. ``status`` and ``payment_status`` move in pairs; see
``repository.VALID_STATUS_TRANSITIONS`` and ``service.GATEWAY_STATUS_MAP``.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apply4me.modules.listings.models import Institution, Program
from apply4me.modules.shared import BaseModel
from apply4me.modules.users.models import User


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ApplicationStatus(str, enum.Enum):
    """Lifecycle of an application."""

    DRAFT = "draft"
    PAYMENT_PENDING = "payment_pending"
    SUBMITTED = "submitted"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CANCELLED = "payment_cancelled"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PaymentStatus(str, enum.Enum):
    """State of the application fee payment."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Statuses a gateway callback may no longer move an application out of
SETTLED_STATUSES = frozenset(
    {
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.PROCESSING,
        ApplicationStatus.COMPLETED,
        ApplicationStatus.REJECTED,
    }
)


class Application(BaseModel):
    """Application of one student to one institution (optionally one program)."""

    __tablename__ = "applications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    institution_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("institutions.id"), nullable=False
    )
    program_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("programs.id"), nullable=True
    )

    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status", values_callable=_enum_values),
        nullable=False,
        default=ApplicationStatus.DRAFT,
    )

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    yoco_charge_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_verified_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    payment_verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Reminder tracking
    deadline_reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    user: Mapped[User] = relationship(User, foreign_keys=[user_id], lazy="joined")
    institution: Mapped[Institution] = relationship(Institution, lazy="joined")
    program: Mapped[Program | None] = relationship(Program)

    __table_args__ = (
        Index("ix_applications_user_id", "user_id"),
        Index("ix_applications_status", "status"),
        Index("ix_applications_yoco_charge_id", "yoco_charge_id", unique=True),
        Index("ix_applications_payment_reference", "payment_reference"),
    )

    def __repr__(self) -> str:
        return (
            f"<Application(id={self.id}, status={self.status.value}, "
            f"payment_status={self.payment_status.value})>"
        )
