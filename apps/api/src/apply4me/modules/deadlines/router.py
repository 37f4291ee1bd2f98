"""
Deadlines Router

Endpoints:
- POST /deadlines/actions - Run a deadline management action (admin)
- GET /deadlines/status - Listing counts for the admin dashboard (admin)
- GET /deadlines/check - Classify a single deadline
- GET /deadlines/window - Application window for an institution
- GET /deadlines/open/{listing_type} - Listings currently accepting applications
- GET /deadlines/upcoming - Deadlines closing soon, most urgent first
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.core.auth import CurrentUser, get_current_admin_user
from apply4me.core.database import get_db
from apply4me.core.rate_limit import enforce_admin_rate_limit
from apply4me.modules.deadlines import service
from apply4me.modules.deadlines.evaluator import (
    check_deadline_status,
    determine_application_window,
    get_deadline,
)
from apply4me.modules.deadlines.schemas import (
    ApplicationWindowResponse,
    DeadlineActionRequest,
    DeadlineActionResponse,
    DeadlineStatusResponse,
    ListingListResponse,
    ListingResponse,
    StatusSummary,
    StatusSummaryResponse,
)
from apply4me.modules.listings.models import ListingType

logger = logging.getLogger(__name__)

router = APIRouter()

ACTION_MARK_EXPIRED = "mark_expired"
ACTION_CHECK_DEADLINES = "check_deadlines"

# Admin action budget per admin
ACTION_RATE_LIMIT = 10
ACTION_RATE_WINDOW_SECONDS = 60 * 60


def _bad_deadline(value: str, error: ValueError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "error": "INVALID_DEADLINE",
            "message": f"Could not parse deadline '{value}': {error}",
        },
    )


def _to_listing_response(listing_type: ListingType, listing: Any, now: datetime) -> ListingResponse:
    deadline = get_deadline(listing)
    return ListingResponse(
        id=listing.id,
        listing_type=listing_type,
        name=listing.name,
        application_deadline=deadline,
        deadline_status=(
            DeadlineStatusResponse.from_status(check_deadline_status(deadline, now=now))
            if deadline is not None
            else None
        ),
    )


@router.post(
    "/actions",
    response_model=DeadlineActionResponse,
    summary="Run Deadline Action (admin)",
    description="""
Run a deadline management action on demand.

- `mark_expired`: switch off every listing whose deadline has passed
- `check_deadlines`: count listings closing within the upcoming window
""",
)
async def run_deadline_action(
    data: DeadlineActionRequest,
    admin: CurrentUser = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
) -> DeadlineActionResponse:
    await enforce_admin_rate_limit(
        admin.id, f"deadlines:{data.action}", ACTION_RATE_LIMIT, ACTION_RATE_WINDOW_SECONDS
    )
    logger.info(f"Admin {admin.id} running deadline action: {data.action}")

    if data.action == ACTION_MARK_EXPIRED:
        counts = await service.mark_expired_items_inactive()
        result = {
            "institutionsUpdated": counts["institutions_updated"],
            "programsUpdated": counts["programs_updated"],
            "bursariesUpdated": counts["bursaries_updated"],
            "message": (
                f"Marked expired items as inactive: {counts['institutions_updated']} institutions, "
                f"{counts['programs_updated']} programs, {counts['bursaries_updated']} bursaries"
            ),
        }
    elif data.action == ACTION_CHECK_DEADLINES:
        summary = await service.get_application_status_summary(db)
        result = {
            "upcomingDeadlines": summary["upcoming_deadlines"],
            "message": f"Found {summary['upcoming_deadlines']} upcoming deadlines",
        }
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "UNKNOWN_ACTION",
                "message": f"Unknown action: {data.action}. "
                f"Valid actions: {ACTION_MARK_EXPIRED}, {ACTION_CHECK_DEADLINES}",
            },
        )

    return DeadlineActionResponse(
        action=data.action,
        result=result,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/status",
    response_model=StatusSummaryResponse,
    summary="Listing Status Summary (admin)",
)
async def get_status_summary(
    admin: CurrentUser = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
) -> StatusSummaryResponse:
    summary = await service.get_application_status_summary(db)
    return StatusSummaryResponse(
        timestamp=datetime.now(UTC),
        summary=StatusSummary(**summary),
    )


@router.get(
    "/check",
    response_model=DeadlineStatusResponse,
    summary="Check Deadline",
)
async def check_deadline(deadline: str = Query(..., min_length=1)) -> DeadlineStatusResponse:
    try:
        return DeadlineStatusResponse.from_status(check_deadline_status(deadline))
    except ValueError as e:
        raise _bad_deadline(deadline, e) from e


@router.get(
    "/window",
    response_model=ApplicationWindowResponse,
    summary="Institution Application Window",
)
async def get_application_window(
    institution_name: str = Query(..., alias="institutionName", min_length=1),
    deadline: str | None = Query(None),
) -> ApplicationWindowResponse:
    try:
        window = determine_application_window(institution_name, deadline)
    except ValueError as e:
        raise _bad_deadline(deadline or "", e) from e
    return ApplicationWindowResponse.from_window(window)


@router.get(
    "/open/{listing_type}",
    response_model=ListingListResponse,
    summary="Open Listings",
)
async def list_open_listings(
    listing_type: ListingType,
    db: AsyncSession = Depends(get_db),
) -> ListingListResponse:
    now = datetime.now(UTC)
    listings = await service.list_open_listings(db, listing_type, now=now)
    items = [_to_listing_response(listing_type, listing, now) for listing in listings]
    return ListingListResponse(listing_type=listing_type, count=len(items), items=items)


@router.get(
    "/upcoming",
    response_model=ListingListResponse,
    summary="Upcoming Deadlines",
)
async def list_upcoming_deadlines(
    days_ahead: int | None = Query(None, alias="daysAhead", ge=0, le=365),
    db: AsyncSession = Depends(get_db),
) -> ListingListResponse:
    now = datetime.now(UTC)
    pairs = await service.list_upcoming_deadlines(db, days_ahead=days_ahead, now=now)
    items = [_to_listing_response(listing_type, listing, now) for listing_type, listing in pairs]
    return ListingListResponse(count=len(items), items=items)
