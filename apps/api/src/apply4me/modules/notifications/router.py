"""
Notifications Router

Endpoints:
- GET /notifications - List the caller's notifications (newest first)
- PATCH /notifications - Mark a batch of notifications read
- POST /notifications - Create a notification for a user (admin)
- DELETE /notifications/{id} - Delete one notification

Students may only read and change their own notifications; admins may act
on behalf of any user by passing ``userId``.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.core.auth import (
    CurrentUser,
    ensure_owner_or_admin,
    get_current_admin_user,
    get_current_user,
)
from apply4me.core.database import get_db
from apply4me.modules.notifications import service
from apply4me.modules.notifications.schemas import (
    MarkReadRequest,
    NotificationActionResponse,
    NotificationCreate,
    NotificationCreateResponse,
    NotificationListResponse,
    NotificationResponse,
)
from apply4me.modules.notifications.service import NotificationServiceError
from apply4me.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List Notifications",
)
async def list_notifications(
    user_id: UUID | None = Query(None, alias="userId"),
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(service.DEFAULT_LIST_LIMIT, ge=1, le=service.MAX_LIST_LIMIT),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationListResponse:
    target_user_id = user_id or current_user.id
    ensure_owner_or_admin(current_user, target_user_id)

    notifications, unread_count = await service.list_notifications(
        db, target_user_id, unread_only=unread_only, limit=limit
    )

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread_count,
    )


@router.patch(
    "",
    response_model=NotificationActionResponse,
    summary="Mark Notifications Read",
)
async def mark_notifications_read(
    data: MarkReadRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationActionResponse:
    ensure_owner_or_admin(current_user, data.user_id)

    updated = await service.mark_notifications_read(db, data.notification_ids, data.user_id)

    return NotificationActionResponse(message=f"{updated} notifications marked as read")


@router.post(
    "",
    response_model=NotificationCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Notification (admin)",
)
async def create_notification(
    data: NotificationCreate,
    admin: CurrentUser = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationCreateResponse:
    if await UserRepository.get_by_id(db, data.user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "USER_NOT_FOUND", "message": f"User {data.user_id} not found."},
        )

    notification = await service.create_notification(
        db,
        user_id=data.user_id,
        type=data.type,
        title=data.title,
        message=data.message,
        metadata=data.metadata,
    )
    logger.info(f"Admin {admin.id} created notification {notification.id} for {data.user_id}")

    return NotificationCreateResponse(
        notification=NotificationResponse.model_validate(notification),
    )


@router.delete(
    "/{notification_id}",
    response_model=NotificationActionResponse,
    summary="Delete Notification",
)
async def delete_notification(
    notification_id: UUID,
    user_id: UUID | None = Query(None, alias="userId"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationActionResponse:
    target_user_id = user_id or current_user.id
    ensure_owner_or_admin(current_user, target_user_id)

    try:
        await service.delete_notification(db, notification_id, target_user_id)
    except NotificationServiceError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": e.error_code, "message": e.message},
        ) from e

    return NotificationActionResponse(message="Notification deleted")
