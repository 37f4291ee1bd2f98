"""
Deadlines Repository

Database operations behind the expiry sweep, the admin status summary and
deadline reminders.

``listing_open_clause`` is the SQL twin of ``evaluator.is_listing_open``;
every "open"/"closed" count is derived from it so the dashboard numbers
agree with the in-memory filters.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, and_, func, not_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.modules.applications.models import Application, ApplicationStatus
from apply4me.modules.listings.models import Bursary, Institution, ListingType, Program

# Listing type -> (model, availability flag column name)
LISTING_FLAGS: dict[ListingType, tuple[Any, str]] = {
    ListingType.INSTITUTIONS: (Institution, "is_featured"),
    ListingType.PROGRAMS: (Program, "is_available"),
    ListingType.BURSARIES: (Bursary, "is_active"),
}

# Applications that can still be completed before a deadline
REMINDABLE_STATUSES = (ApplicationStatus.DRAFT, ApplicationStatus.PAYMENT_PENDING)


def _model_and_flag(listing_type: ListingType) -> tuple[Any, Any]:
    model, flag_name = LISTING_FLAGS[listing_type]
    return model, getattr(model, flag_name)


def listing_open_clause(model: Any, now: datetime, flag: Any | None = None) -> ColumnElement[bool]:
    """
    ``flag IS NOT false AND (application_deadline IS NULL OR application_deadline >= now)``.

    Pass ``flag=None`` to judge on the deadline alone.
    """
    deadline_ok = or_(
        model.application_deadline.is_(None),
        model.application_deadline >= now,
    )
    if flag is None:
        return deadline_ok
    return and_(flag.is_not(False), deadline_ok)


def expired_clause(model: Any, flag: Any, now: datetime) -> ColumnElement[bool]:
    """Rows the sweep still has to switch off."""
    return and_(model.application_deadline < now, flag.is_(True))


async def _count(db: AsyncSession, model: Any, clause: ColumnElement[bool]) -> int:
    result = await db.execute(select(func.count(model.id)).where(clause))
    return result.scalar() or 0


# ============================================
# Sweep
# ============================================


async def count_expired(db: AsyncSession, listing_type: ListingType, now: datetime) -> int:
    model, flag = _model_and_flag(listing_type)
    return await _count(db, model, expired_clause(model, flag, now))


async def deactivate_expired(db: AsyncSession, listing_type: ListingType, now: datetime) -> None:
    """
    Switch the availability flag off for every listing whose deadline passed.

    The affected-row count is not returned; callers count first with
    ``count_expired`` using the same predicate.
    """
    model, flag = _model_and_flag(listing_type)
    _, flag_name = LISTING_FLAGS[listing_type]

    await db.execute(
        update(model).where(expired_clause(model, flag, now)).values({flag_name: False})
    )
    await db.commit()


# ============================================
# Status summary
# ============================================


async def count_open(db: AsyncSession, listing_type: ListingType, now: datetime) -> int:
    model, flag = _model_and_flag(listing_type)
    # Institutions stay listed while unfeatured, so only the deadline counts
    if listing_type == ListingType.INSTITUTIONS:
        flag = None
    return await _count(db, model, listing_open_clause(model, now, flag))


async def count_closed(db: AsyncSession, listing_type: ListingType, now: datetime) -> int:
    model, flag = _model_and_flag(listing_type)
    if listing_type == ListingType.INSTITUTIONS:
        flag = None
    return await _count(db, model, not_(listing_open_clause(model, now, flag)))


async def count_upcoming(db: AsyncSession, now: datetime, until: datetime) -> int:
    """Listings of every type with a deadline in ``[now, until]``."""
    total = 0
    for model, _ in LISTING_FLAGS.values():
        total += await _count(
            db,
            model,
            and_(model.application_deadline >= now, model.application_deadline <= until),
        )
    return total


# ============================================
# Listings
# ============================================


async def list_listings(db: AsyncSession, listing_type: ListingType) -> list[Any]:
    """All listings of a type, soonest deadline first (no deadline last)."""
    model, _ = _model_and_flag(listing_type)
    result = await db.execute(
        select(model).order_by(model.application_deadline.asc().nulls_last(), model.name)
    )
    return list(result.scalars().all())


# ============================================
# Deadline reminders
# ============================================


async def get_applications_needing_deadline_reminder(
    db: AsyncSession,
    now: datetime,
    window_end: datetime,
) -> list[Application]:
    """
    Unfinished applications whose institution closes within ``[now, window_end]``
    and that have not been reminded yet.
    """
    result = await db.execute(
        select(Application)
        .join(Institution, Application.institution_id == Institution.id)
        .where(
            Application.status.in_(REMINDABLE_STATUSES),
            Application.deadline_reminder_sent_at.is_(None),
            Institution.application_deadline >= now,
            Institution.application_deadline <= window_end,
        )
    )
    return list(result.scalars().unique().all())


async def mark_deadline_reminder_sent(
    db: AsyncSession, application_id: UUID, sent_at: datetime
) -> None:
    await db.execute(
        update(Application)
        .where(Application.id == application_id)
        .values(deadline_reminder_sent_at=sent_at)
    )
    await db.commit()
