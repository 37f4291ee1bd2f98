"""
Notifications Repository

Database operations for in-app notifications. Every read and write is
scoped by ``user_id`` so callers can only touch their own rows.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Notification, NotificationType


async def create(
    db: AsyncSession,
    user_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    """Insert a notification and return it refreshed."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        meta=metadata or {},
        read=False,
    )

    db.add(notification)
    await db.commit()
    await db.refresh(notification)

    return notification


async def get_by_id(db: AsyncSession, id: UUID) -> Notification | None:
    return await db.get(Notification, id)


async def list_for_user(
    db: AsyncSession,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    """Newest first."""
    query = select(Notification).where(Notification.user_id == user_id)

    if unread_only:
        query = query.where(Notification.read.is_(False))

    query = query.order_by(Notification.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def count_unread(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
    )
    return result.scalar() or 0


async def mark_read(db: AsyncSession, notification_ids: list[UUID], user_id: UUID) -> int:
    """
    Mark the given notifications read.

    Ids belonging to another user are silently skipped.

    Returns:
        Number of rows updated
    """
    if not notification_ids:
        return 0

    result = await db.execute(
        update(Notification)
        .where(
            Notification.id.in_(notification_ids),
            Notification.user_id == user_id,
        )
        .values(read=True, read_at=datetime.now(UTC))
    )
    await db.commit()

    return result.rowcount or 0


async def delete_for_user(db: AsyncSession, notification_id: UUID, user_id: UUID) -> bool:
    """Delete one of the user's notifications. Returns False if nothing matched."""
    result = await db.execute(
        delete(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    await db.commit()

    return bool(result.rowcount)
