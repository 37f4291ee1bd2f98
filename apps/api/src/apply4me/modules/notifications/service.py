"""
Notifications Service Layer

Builds the student-facing notification texts and wraps the repository.

The payment and deadline helpers are called as side effects of other
workflows (reconciliation, manual verification, reminders). Callers treat
them as best-effort: a failure here must never undo the status change that
triggered it.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.modules.notifications import repository
from apply4me.modules.notifications.models import Notification, NotificationType

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


class NotificationServiceError(Exception):
    """Base exception for notification service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class NotificationNotFoundError(NotificationServiceError):
    def __init__(self, notification_id: UUID):
        super().__init__(
            message=f"Notification {notification_id} not found.",
            error_code="NOTIFICATION_NOT_FOUND",
            status_code=404,
        )


def format_amount(amount: Decimal | float | int | None) -> str:
    """Rand amount with two decimals, e.g. ``250.00``."""
    return f"{Decimal(str(amount or 0)):.2f}"


async def create_notification(
    db: AsyncSession,
    user_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    notification = await repository.create(db, user_id, type, title, message, metadata)
    logger.info(f"Created {type.value} notification {notification.id} for user {user_id}")
    return notification


async def create_payment_verification_notification(
    db: AsyncSession,
    user_id: UUID,
    verified: bool,
    application_id: UUID,
    institution_name: str,
    payment_reference: str | None,
    amount: Decimal | float | None,
    admin_notes: str | None = None,
) -> Notification:
    """
    Tell a student the outcome of their payment.

    Used for gateway callbacks (failed and cancelled payments count as
    rejected) and for manual admin verification.
    """
    reference = payment_reference or "N/A"
    rand = format_amount(amount)

    if verified:
        notification_type = NotificationType.PAYMENT_VERIFIED
        title = "✅ Payment Verified - Application Submitted!"
        message = (
            f"Your payment of R{rand} (Ref: {reference}) has been verified. "
            f"Your application to {institution_name} has been successfully submitted "
            "and is now being processed."
        )
    else:
        notification_type = NotificationType.PAYMENT_REJECTED
        title = "❌ Payment Verification Failed"
        reason = (
            f"Reason: {admin_notes}"
            if admin_notes
            else "Please check your payment details and try again."
        )
        message = f"Your payment of R{rand} (Ref: {reference}) could not be verified. {reason}"

    metadata = {
        "application_id": str(application_id),
        "institution_name": institution_name,
        "payment_reference": reference,
        "amount": rand,
        "verification_status": "verified" if verified else "rejected",
    }
    if admin_notes:
        metadata["admin_notes"] = admin_notes

    return await create_notification(db, user_id, notification_type, title, message, metadata)


async def create_deadline_reminder_notification(
    db: AsyncSession,
    user_id: UUID,
    institution_name: str,
    deadline: datetime,
    days_remaining: int,
    application_id: UUID | None = None,
) -> Notification:
    deadline_text = deadline.date().isoformat()
    message = (
        f"Reminder: The application deadline for {institution_name} is in "
        f"{days_remaining} days ({deadline_text}). Don't miss out!"
    )
    metadata: dict[str, Any] = {
        "institution_name": institution_name,
        "deadline": deadline.isoformat(),
        "days_remaining": days_remaining,
    }
    if application_id is not None:
        metadata["application_id"] = str(application_id)

    return await create_notification(
        db,
        user_id,
        NotificationType.DEADLINE_REMINDER,
        "⏰ Application Deadline Reminder",
        message,
        metadata,
    )


async def list_notifications(
    db: AsyncSession,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = DEFAULT_LIST_LIMIT,
) -> tuple[list[Notification], int]:
    """
    Returns:
        The newest ``limit`` notifications and the user's total unread count
    """
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    notifications = await repository.list_for_user(db, user_id, unread_only, limit)
    unread_count = await repository.count_unread(db, user_id)
    return notifications, unread_count


async def mark_notifications_read(
    db: AsyncSession, notification_ids: list[UUID], user_id: UUID
) -> int:
    updated = await repository.mark_read(db, notification_ids, user_id)
    logger.info(f"Marked {updated} notifications read for user {user_id}")
    return updated


async def delete_notification(db: AsyncSession, notification_id: UUID, user_id: UUID) -> None:
    """
    Raises:
        NotificationNotFoundError: If the user has no such notification
    """
    if not await repository.delete_for_user(db, notification_id, user_id):
        raise NotificationNotFoundError(notification_id)

    logger.info(f"Deleted notification {notification_id} for user {user_id}")
