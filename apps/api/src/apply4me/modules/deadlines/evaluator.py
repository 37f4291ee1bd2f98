"""
Deadline Evaluator

Pure functions that classify application deadlines and filter listings.

Nothing here touches the database. Every function takes an optional ``now``
so callers (and tests) can pin the clock; it defaults to the current UTC
time. Deadlines may be ``datetime``, ``date`` or ISO-8601 strings and naive
values are read as UTC.

Listings may be plain mappings (API payloads, JSON fixtures) or ORM objects.
"""

import enum
import math
from calendar import monthrange
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

from apply4me.core.config import AcademicCalendarSettings, settings, validate_month_day

SECONDS_PER_DAY = 24 * 60 * 60

URGENT_MAX_DAYS = 3
WARNING_MAX_DAYS = 14
OPEN_MAX_DAYS = 60

DEFAULT_UPCOMING_DAYS = 30

DeadlineInput = datetime | date | str


class UrgencyLevel(str, enum.Enum):
    EXPIRED = "expired"
    URGENT = "urgent"
    WARNING = "warning"
    OPEN = "open"
    FUTURE = "future"

    @property
    def severity(self) -> int:
        """Higher is more pressing. Expired outranks everything."""
        return _SEVERITY[self]


_SEVERITY = {
    UrgencyLevel.EXPIRED: 4,
    UrgencyLevel.URGENT: 3,
    UrgencyLevel.WARNING: 2,
    UrgencyLevel.OPEN: 1,
    UrgencyLevel.FUTURE: 0,
}


class WindowStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    UPCOMING = "upcoming"
    EXPIRED = "expired"


@dataclass(frozen=True)
class DeadlineStatus:
    is_open: bool
    is_expired: bool
    days_remaining: int
    urgency_level: UrgencyLevel
    message: str


@dataclass(frozen=True)
class ApplicationWindow:
    is_currently_open: bool
    status: WindowStatus
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    next_opening_date: datetime | None = None


@dataclass(frozen=True)
class AcademicCalendar:
    """
    Main intake window for institutions without an explicit deadline.

    South African universities traditionally accept applications for the
    following academic year between March and September.
    """

    opens_month: int = 3
    opens_day: int = 1
    closes_month: int = 9
    closes_day: int = 30

    def __post_init__(self) -> None:
        validate_month_day(self.opens_month, self.opens_day)
        validate_month_day(self.closes_month, self.closes_day)

    @classmethod
    def from_settings(cls, calendar: AcademicCalendarSettings) -> "AcademicCalendar":
        return cls(
            opens_month=calendar.opens_month,
            opens_day=calendar.opens_day,
            closes_month=calendar.closes_month,
            closes_day=calendar.closes_day,
        )

    def opens(self, year: int) -> datetime:
        return _calendar_day(year, self.opens_month, self.opens_day)

    def closes(self, year: int) -> datetime:
        return _calendar_day(year, self.closes_month, self.closes_day)


def _calendar_day(year: int, month: int, day: int) -> datetime:
    # 29 February falls back to the 28th outside leap years
    return datetime(year, month, min(day, monthrange(year, month)[1]), tzinfo=UTC)


def calendar_for(institution_name: str | None) -> AcademicCalendar:
    """Return the configured calendar for an institution, or the default one."""
    override = settings.academic_calendar_overrides.get(institution_name or "")
    return AcademicCalendar.from_settings(override or settings.academic_calendar)


# ============================================
# Value helpers
# ============================================


def _utcnow() -> datetime:
    return datetime.now(UTC)


def to_utc_datetime(value: DeadlineInput) -> datetime:
    """
    Normalise a deadline to an aware UTC datetime.

    Raises:
        ValueError: If the value is None or an unparseable string
    """
    if value is None:
        raise ValueError("Deadline is required")

    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _resolve_now(now: datetime | None) -> datetime:
    return _utcnow() if now is None else to_utc_datetime(now)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def get_deadline(item: Any) -> datetime | None:
    """The item's ``application_deadline`` as UTC, or None when unset."""
    raw = _field(item, "application_deadline")
    if raw is None or raw == "":
        return None
    return to_utc_datetime(raw)


# ============================================
# Deadline classification
# ============================================


def check_deadline_status(deadline: DeadlineInput, now: datetime | None = None) -> DeadlineStatus:
    """
    Classify a deadline into an urgency tier.

    Days are counted as ``ceil((deadline - now) / 1 day)``, so anything
    later today counts as one day left. A deadline strictly before ``now``
    is expired.

    Raises:
        ValueError: If ``deadline`` is None or cannot be parsed
    """
    deadline_at = to_utc_datetime(deadline)
    current = _resolve_now(now)

    days = math.ceil((deadline_at - current).total_seconds() / SECONDS_PER_DAY)

    if deadline_at < current:
        return DeadlineStatus(
            is_open=False,
            is_expired=True,
            days_remaining=0,
            urgency_level=UrgencyLevel.EXPIRED,
            message=f"Deadline passed {abs(days)} days ago",
        )

    if days == 0:
        return DeadlineStatus(True, False, 0, UrgencyLevel.URGENT, "Deadline is TODAY!")
    if days <= URGENT_MAX_DAYS:
        return DeadlineStatus(True, False, days, UrgencyLevel.URGENT, f"Only {days} days left!")
    if days <= WARNING_MAX_DAYS:
        return DeadlineStatus(True, False, days, UrgencyLevel.WARNING, f"{days} days remaining")
    if days <= OPEN_MAX_DAYS:
        return DeadlineStatus(True, False, days, UrgencyLevel.OPEN, f"{days} days remaining")

    # Wording kept for existing clients even though the deadline is simply far away
    return DeadlineStatus(True, False, days, UrgencyLevel.FUTURE, f"Opens in {days} days")


def determine_application_window(
    institution_name: str | None,
    current_deadline: DeadlineInput | None = None,
    now: datetime | None = None,
    calendar: AcademicCalendar | None = None,
) -> ApplicationWindow:
    """
    Work out whether an institution is accepting applications.

    An explicit deadline wins. Without one the academic calendar is applied
    to the *previous* calendar year, with the current year's dates reported
    as the next opening.
    """
    current = _resolve_now(now)

    if current_deadline is not None and current_deadline != "":
        deadline_status = check_deadline_status(current_deadline, now=current)
        return ApplicationWindow(
            is_currently_open=deadline_status.is_open,
            status=WindowStatus.EXPIRED if deadline_status.is_expired else WindowStatus.OPEN,
            closes_at=to_utc_datetime(current_deadline),
        )

    policy = calendar or calendar_for(institution_name)
    year = current.year
    opens = policy.opens(year - 1)
    closes = policy.closes(year - 1)
    next_opens = policy.opens(year)

    if opens <= current <= closes:
        return ApplicationWindow(
            is_currently_open=True,
            status=WindowStatus.OPEN,
            opens_at=opens,
            closes_at=closes,
        )

    if current > closes:
        return ApplicationWindow(
            is_currently_open=False,
            status=WindowStatus.CLOSED,
            closes_at=closes,
            next_opening_date=next_opens,
        )

    if current < opens:
        return ApplicationWindow(
            is_currently_open=False,
            status=WindowStatus.UPCOMING,
            opens_at=opens,
            closes_at=closes,
        )

    return ApplicationWindow(
        is_currently_open=False,
        status=WindowStatus.CLOSED,
        next_opening_date=next_opens,
    )


# ============================================
# Listing filters
# ============================================


def is_listing_open(item: Any, flag: str, now: datetime | None = None) -> bool:
    """
    The shared "open" predicate for programs and bursaries.

    Open means the availability flag is not explicitly False and the
    deadline is either unset or not yet passed. ``repository.listing_open_clause``
    expresses the same rule in SQL.
    """
    if _field(item, flag) is False:
        return False

    deadline = get_deadline(item)
    if deadline is None:
        return True

    return not check_deadline_status(deadline, now=now).is_expired


def filter_open_institutions(items: Iterable[Any], now: datetime | None = None) -> list[Any]:
    current = _resolve_now(now)
    return [
        item
        for item in items
        if determine_application_window(
            _field(item, "name"), get_deadline(item), now=current
        ).is_currently_open
    ]


def filter_open_programs(items: Iterable[Any], now: datetime | None = None) -> list[Any]:
    current = _resolve_now(now)
    return [item for item in items if is_listing_open(item, "is_available", now=current)]


def filter_active_bursaries(items: Iterable[Any], now: datetime | None = None) -> list[Any]:
    current = _resolve_now(now)
    return [item for item in items if is_listing_open(item, "is_active", now=current)]


def get_upcoming_deadlines(
    items: Iterable[Any],
    days_ahead: int = DEFAULT_UPCOMING_DAYS,
    now: datetime | None = None,
) -> list[Any]:
    """
    Items whose deadline falls in ``[now, now + days_ahead]`` inclusive.

    Unlike the open filters, items without a deadline are left out.
    """
    current = _resolve_now(now)
    cutoff = current + timedelta(days=days_ahead)

    upcoming = []
    for item in items:
        deadline = get_deadline(item)
        if deadline is not None and current <= deadline <= cutoff:
            upcoming.append(item)
    return upcoming


def sort_by_urgency(items: Iterable[Any], now: datetime | None = None) -> list[Any]:
    """
    Order items most pressing first: expired, urgent, warning, open, future.

    Within a tier the earlier deadline comes first. Items without a deadline
    go last.
    """
    current = _resolve_now(now)

    def sort_key(item: Any) -> tuple[int, datetime]:
        deadline = get_deadline(item)
        if deadline is None:
            return (1, datetime.max.replace(tzinfo=UTC))
        level = check_deadline_status(deadline, now=current).urgency_level
        return (-level.severity, deadline)

    return sorted(items, key=sort_key)
