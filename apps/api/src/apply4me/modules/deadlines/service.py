"""
Deadlines Service Layer

Orchestrates the evaluator and the repository:

1. Expiry sweep:
   - One session per listing collection
   - Count-then-update with the same predicate
   - A failing collection reports 0 and the sweep moves on

2. Status summary:
   - Direct COUNT queries built from the shared open predicate

3. Deadline reminders:
   - Unfinished applications whose institution closes within the
     reminder window get one in-app notification and one email
   - The application is stamped before anything is sent, so delivery is
     at most once per application

4. Listing queries:
   - Open listings through the in-memory filters
   - Upcoming deadlines across all listings, most urgent first
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.core.config import settings
from apply4me.core.database import async_session_maker
from apply4me.core.email import send_deadline_reminder
from apply4me.modules.applications.models import Application
from apply4me.modules.deadlines import repository
from apply4me.modules.deadlines.evaluator import (
    check_deadline_status,
    filter_active_bursaries,
    filter_open_institutions,
    filter_open_programs,
    get_deadline,
    get_upcoming_deadlines,
    sort_by_urgency,
    to_utc_datetime,
)
from apply4me.modules.listings.models import ListingType
from apply4me.modules.notifications import service as notification_service

logger = logging.getLogger(__name__)

OPEN_FILTERS = {
    ListingType.INSTITUTIONS: filter_open_institutions,
    ListingType.PROGRAMS: filter_open_programs,
    ListingType.BURSARIES: filter_active_bursaries,
}

SWEEP_RESULT_KEYS = {
    ListingType.INSTITUTIONS: "institutions_updated",
    ListingType.PROGRAMS: "programs_updated",
    ListingType.BURSARIES: "bursaries_updated",
}

EMPTY_SUMMARY = {
    "open_institutions": 0,
    "closed_institutions": 0,
    "open_programs": 0,
    "closed_programs": 0,
    "active_bursaries": 0,
    "expired_bursaries": 0,
    "upcoming_deadlines": 0,
}


def _resolve_now(now: datetime | None) -> datetime:
    return datetime.now(UTC) if now is None else to_utc_datetime(now)


# ============================================
# Expiry sweep
# ============================================


async def _sweep_collection(listing_type: ListingType, now: datetime) -> int:
    async with async_session_maker() as db:
        expired = await repository.count_expired(db, listing_type, now)
        if expired > 0:
            await repository.deactivate_expired(db, listing_type, now)
        return expired


async def mark_expired_items_inactive(now: datetime | None = None) -> dict[str, int]:
    """
    Switch off every listing whose deadline has passed.

    Idempotent: a second run with no newly expired rows reports zeros.

    Returns:
        Dict with institutions_updated, programs_updated, bursaries_updated
    """
    current = _resolve_now(now)
    result: dict[str, int] = {}

    for listing_type, key in SWEEP_RESULT_KEYS.items():
        try:
            result[key] = await _sweep_collection(listing_type, current)
        except Exception as e:
            logger.error(f"Error marking expired {listing_type.value} inactive: {e}", exc_info=True)
            result[key] = 0

    logger.info(
        f"Marked expired items as inactive: {result['institutions_updated']} institutions, "
        f"{result['programs_updated']} programs, {result['bursaries_updated']} bursaries"
    )
    return result


# ============================================
# Status summary
# ============================================


async def get_application_status_summary(
    db: AsyncSession, now: datetime | None = None
) -> dict[str, int]:
    """
    Listing counts for the admin dashboard.

    Returns all zeros (and logs) if any query fails.
    """
    current = _resolve_now(now)
    upcoming_until = current + timedelta(days=settings.upcoming_deadline_days)

    try:
        return {
            "open_institutions": await repository.count_open(db, ListingType.INSTITUTIONS, current),
            "closed_institutions": await repository.count_closed(
                db, ListingType.INSTITUTIONS, current
            ),
            "open_programs": await repository.count_open(db, ListingType.PROGRAMS, current),
            "closed_programs": await repository.count_closed(db, ListingType.PROGRAMS, current),
            "active_bursaries": await repository.count_open(db, ListingType.BURSARIES, current),
            "expired_bursaries": await repository.count_closed(db, ListingType.BURSARIES, current),
            "upcoming_deadlines": await repository.count_upcoming(db, current, upcoming_until),
        }
    except Exception as e:
        logger.error(f"Error getting application status summary: {e}", exc_info=True)
        return dict(EMPTY_SUMMARY)


# ============================================
# Deadline reminders
# ============================================


async def _remind_application(application: Application, now: datetime) -> dict[str, Any]:
    institution = application.institution
    deadline = get_deadline(institution)
    days_remaining = check_deadline_status(deadline, now=now).days_remaining

    async with async_session_maker() as db:
        # Stamped first so a failure further on never repeats the reminder
        await repository.mark_deadline_reminder_sent(db, application.id, now)

        await notification_service.create_deadline_reminder_notification(
            db,
            user_id=application.user_id,
            institution_name=institution.name,
            deadline=deadline,
            days_remaining=days_remaining,
            application_id=application.id,
        )

        user = application.user
        email_sent = await send_deadline_reminder(
            to_email=user.email,
            student_name=user.full_name,
            institution_name=institution.name,
            deadline=deadline.date().isoformat(),
            days_remaining=days_remaining,
        )
        if not email_sent:
            logger.error(f"Failed to send deadline reminder email for application {application.id}")

    return {
        "application_id": str(application.id),
        "status": "sent" if email_sent else "notified_email_failed",
        "days_remaining": days_remaining,
    }


async def send_deadline_reminders(now: datetime | None = None) -> dict[str, Any]:
    """
    Remind students whose unfinished applications are about to close.

    Returns:
        Dict with processed, succeeded, failed counts and per-application results
    """
    current = _resolve_now(now)
    window_end = current + timedelta(days=settings.deadline_reminder_window_days)

    async with async_session_maker() as db:
        applications = await repository.get_applications_needing_deadline_reminder(
            db, current, window_end
        )

    logger.info(f"Found {len(applications)} applications needing a deadline reminder")

    results = []
    succeeded = 0
    failed = 0

    for application in applications:
        try:
            results.append(await _remind_application(application, current))
            succeeded += 1
        except Exception as e:
            failed += 1
            logger.error(
                f"Error sending deadline reminder for application {application.id}: {e}",
                exc_info=True,
            )
            results.append(
                {"application_id": str(application.id), "status": "error", "error": str(e)}
            )

    return {
        "processed": len(applications),
        "succeeded": succeeded,
        "failed": failed,
        "results": results,
    }


# ============================================
# Listing queries
# ============================================


async def list_open_listings(
    db: AsyncSession, listing_type: ListingType, now: datetime | None = None
) -> list[Any]:
    """Listings of one type that are currently accepting applications."""
    listings = await repository.list_listings(db, listing_type)
    return OPEN_FILTERS[listing_type](listings, now=_resolve_now(now))


async def list_upcoming_deadlines(
    db: AsyncSession,
    days_ahead: int | None = None,
    now: datetime | None = None,
) -> list[tuple[ListingType, Any]]:
    """
    Listings of every type closing within ``days_ahead`` days, most urgent first.

    Returns:
        (listing type, listing) pairs
    """
    current = _resolve_now(now)
    days = settings.upcoming_deadline_days if days_ahead is None else days_ahead

    tagged: list[tuple[ListingType, Any]] = []
    for listing_type in ListingType:
        listings = await repository.list_listings(db, listing_type)
        for listing in get_upcoming_deadlines(listings, days_ahead=days, now=current):
            tagged.append((listing_type, listing))

    ordered = sort_by_urgency([listing for _, listing in tagged], now=current)
    type_by_id = {id(listing): listing_type for listing_type, listing in tagged}
    return [(type_by_id[id(listing)], listing) for listing in ordered]
