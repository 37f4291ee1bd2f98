"""
Deadlines Schemas

Public JSON uses camelCase keys (``isOpen``, ``daysRemaining`` ...).
"""

from dataclasses import asdict
from datetime import datetime
from typing import Any
from uuid import UUID

from apply4me.modules.deadlines.evaluator import (
    ApplicationWindow,
    DeadlineStatus,
    UrgencyLevel,
    WindowStatus,
)
from apply4me.modules.listings.models import ListingType
from apply4me.modules.shared.schemas import CamelModel


class DeadlineStatusResponse(CamelModel):
    is_open: bool
    is_expired: bool
    days_remaining: int
    urgency_level: UrgencyLevel
    message: str

    @classmethod
    def from_status(cls, status: DeadlineStatus) -> "DeadlineStatusResponse":
        return cls(**asdict(status))


class ApplicationWindowResponse(CamelModel):
    is_currently_open: bool
    status: WindowStatus
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    next_opening_date: datetime | None = None

    @classmethod
    def from_window(cls, window: ApplicationWindow) -> "ApplicationWindowResponse":
        return cls(**asdict(window))


class DeadlineActionRequest(CamelModel):
    action: str


class DeadlineActionResponse(CamelModel):
    success: bool = True
    action: str
    result: dict[str, Any]
    timestamp: datetime


class StatusSummary(CamelModel):
    open_institutions: int
    closed_institutions: int
    open_programs: int
    closed_programs: int
    active_bursaries: int
    expired_bursaries: int
    upcoming_deadlines: int


class StatusSummaryResponse(CamelModel):
    success: bool = True
    timestamp: datetime
    summary: StatusSummary


class ListingResponse(CamelModel):
    id: UUID
    listing_type: ListingType
    name: str
    application_deadline: datetime | None = None
    deadline_status: DeadlineStatusResponse | None = None


class ListingListResponse(CamelModel):
    success: bool = True
    listing_type: ListingType | None = None
    count: int
    items: list[ListingResponse]
