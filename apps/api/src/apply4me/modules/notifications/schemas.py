"""
Notification Schemas
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from apply4me.modules.notifications.models import NotificationType
from apply4me.modules.shared.schemas import CamelModel


class NotificationResponse(CamelModel):
    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    # Read from the ORM attribute ``meta``
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    read: bool
    read_at: datetime | None = None
    created_at: datetime


class NotificationListResponse(CamelModel):
    success: bool = True
    notifications: list[NotificationResponse]
    unread_count: int


class NotificationCreate(CamelModel):
    user_id: UUID
    type: NotificationType = NotificationType.GENERAL
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class NotificationCreateResponse(CamelModel):
    success: bool = True
    notification: NotificationResponse


class MarkReadRequest(CamelModel):
    notification_ids: list[UUID] = Field(..., min_length=1)
    user_id: UUID


class NotificationActionResponse(CamelModel):
    success: bool = True
    message: str
