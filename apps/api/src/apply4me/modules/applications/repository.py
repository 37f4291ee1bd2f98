"""
Applications Repository

Database operations for applications and their payment state.

Design Principles:
- Payment callbacks look applications up by the gateway charge id, never by
  primary key
- Payment writes target the single application that was validated (id plus
  expected status), never every row sharing a charge id
- ``status`` changes are validated against the state machine below
- Timezone-aware datetime handling (UTC)
"""

from typing import Any
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Application, ApplicationStatus, PaymentStatus

# Valid status transitions. A failed or cancelled payment re-enters the
# payment loop; submitted and beyond only move forward.
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: {
        ApplicationStatus.PAYMENT_PENDING,
    },
    ApplicationStatus.PAYMENT_PENDING: {
        ApplicationStatus.SUBMITTED,  # Payment cleared
        ApplicationStatus.PAYMENT_FAILED,
        ApplicationStatus.PAYMENT_CANCELLED,
    },
    ApplicationStatus.PAYMENT_FAILED: {
        ApplicationStatus.PAYMENT_PENDING,  # Retry
        ApplicationStatus.SUBMITTED,  # Late success or manual verification
        ApplicationStatus.PAYMENT_CANCELLED,
    },
    ApplicationStatus.PAYMENT_CANCELLED: {
        ApplicationStatus.PAYMENT_PENDING,
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.PAYMENT_FAILED,
    },
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.PROCESSING,
    },
    ApplicationStatus.PROCESSING: {
        ApplicationStatus.COMPLETED,
        ApplicationStatus.REJECTED,
    },
    # Terminal states - no transitions allowed
    ApplicationStatus.COMPLETED: set(),
    ApplicationStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


def validate_transition(current_status: ApplicationStatus, new_status: ApplicationStatus) -> None:
    """
    Staying in the same status is always allowed.

    Raises:
        InvalidStatusTransitionError: If the move is not in the state machine
    """
    valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
    if new_status != current_status and new_status not in valid_transitions:
        raise InvalidStatusTransitionError(current_status, new_status)


def _charge_id_clause(charge_id: str):
    return or_(
        Application.yoco_charge_id == charge_id,
        Application.payment_reference == charge_id,
    )


async def get_by_id(db: AsyncSession, id: UUID) -> Application | None:
    """Get application by ID."""
    return await db.get(Application, id)


async def get_by_charge_id(db: AsyncSession, charge_id: str) -> Application | None:
    """Get the application a gateway charge belongs to (most recently updated wins)."""
    result = await db.execute(
        select(Application)
        .where(_charge_id_clause(charge_id))
        .order_by(Application.updated_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def charge_id_in_use(db: AsyncSession, charge_id: str, exclude_id: UUID) -> bool:
    """Whether an application other than ``exclude_id`` already carries the charge id."""
    result = await db.execute(
        select(Application.id)
        .where(_charge_id_clause(charge_id), Application.id != exclude_id)
        .limit(1)
    )
    return result.scalar() is not None


async def update_payment_state(
    db: AsyncSession,
    application_id: UUID,
    expected_status: ApplicationStatus,
    payment_status: PaymentStatus,
    status: ApplicationStatus,
    **kwargs: Any,
) -> int:
    """
    Write a payment outcome to one application in a single UPDATE.

    The row is matched on its id and on the status the caller validated the
    transition from, so a concurrent change makes this a 0-row update.

    Returns:
        Number of rows updated (0 or 1)
    """
    result = await db.execute(
        update(Application)
        .where(Application.id == application_id, Application.status == expected_status)
        .values(payment_status=payment_status, status=status, **kwargs)
    )
    await db.commit()

    return result.rowcount or 0


async def update_status(
    db: AsyncSession,
    id: UUID,
    status: ApplicationStatus,
    **kwargs: Any,
) -> Application:
    """
    Update application status and optional fields.

    Args:
        db: Database session
        id: Application UUID
        status: New status to set
        **kwargs: Additional fields to update (e.g., payment_status, payment_date)

    Returns:
        Updated Application

    Raises:
        ValueError: If application not found
        InvalidStatusTransitionError: If status transition is not allowed
    """
    application = await get_by_id(db, id)
    if not application:
        raise ValueError(f"Application {id} not found")

    validate_transition(application.status, status)

    application.status = status

    for key, value in kwargs.items():
        if hasattr(application, key):
            setattr(application, key, value)

    await db.commit()
    await db.refresh(application)

    return application
