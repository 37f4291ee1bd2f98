"""
Unit tests for the deadlines service layer.

These tests cover:
- The expiry sweep (count-then-update, idempotency, per-collection failures)
- The status summary
- Deadline reminders
- Upcoming deadline listing
"""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from apply4me.modules.applications.models import Application, ApplicationStatus
from apply4me.modules.deadlines.service import (
    get_application_status_summary,
    list_open_listings,
    list_upcoming_deadlines,
    mark_expired_items_inactive,
    send_deadline_reminders,
)
from apply4me.modules.listings.models import ListingType

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)

SERVICE = "apply4me.modules.deadlines.service"


class TestMarkExpiredItemsInactive:
    """Tests for the expiry sweep."""

    @pytest.mark.asyncio
    async def test_counts_then_updates_each_collection(self, session_maker, mock_db):
        counts = {
            ListingType.INSTITUTIONS: 2,
            ListingType.PROGRAMS: 5,
            ListingType.BURSARIES: 1,
        }
        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_repo.count_expired = AsyncMock(side_effect=lambda db, t, now: counts[t])
            mock_repo.deactivate_expired = AsyncMock()

            result = await mark_expired_items_inactive(now=NOW)

        assert result == {
            "institutions_updated": 2,
            "programs_updated": 5,
            "bursaries_updated": 1,
        }
        assert mock_repo.deactivate_expired.await_count == 3
        mock_repo.deactivate_expired.assert_any_await(mock_db, ListingType.PROGRAMS, NOW)
        # One session per collection
        assert session_maker.call_count == 3

    @pytest.mark.asyncio
    async def test_second_run_reports_zeros(self, session_maker):
        remaining = {t: 3 for t in ListingType}

        async def count_expired(db, listing_type, now):
            return remaining[listing_type]

        async def deactivate_expired(db, listing_type, now):
            remaining[listing_type] = 0

        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_repo.count_expired = AsyncMock(side_effect=count_expired)
            mock_repo.deactivate_expired = AsyncMock(side_effect=deactivate_expired)

            first = await mark_expired_items_inactive(now=NOW)
            second = await mark_expired_items_inactive(now=NOW)

        assert first == {
            "institutions_updated": 3,
            "programs_updated": 3,
            "bursaries_updated": 3,
        }
        assert second == {
            "institutions_updated": 0,
            "programs_updated": 0,
            "bursaries_updated": 0,
        }
        # Nothing to update on the second pass
        assert mock_repo.deactivate_expired.await_count == 3

    @pytest.mark.asyncio
    async def test_failing_collection_reports_zero_and_sweep_continues(self, session_maker):
        async def count_expired(db, listing_type, now):
            if listing_type == ListingType.PROGRAMS:
                raise RuntimeError("connection reset")
            return 4

        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_repo.count_expired = AsyncMock(side_effect=count_expired)
            mock_repo.deactivate_expired = AsyncMock()

            result = await mark_expired_items_inactive(now=NOW)

        assert result == {
            "institutions_updated": 4,
            "programs_updated": 0,
            "bursaries_updated": 4,
        }

    @pytest.mark.asyncio
    async def test_update_failure_reports_zero(self, session_maker):
        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_repo.count_expired = AsyncMock(return_value=2)
            mock_repo.deactivate_expired = AsyncMock(side_effect=RuntimeError("deadlock"))

            result = await mark_expired_items_inactive(now=NOW)

        assert set(result.values()) == {0}


class TestGetApplicationStatusSummary:
    @pytest.mark.asyncio
    async def test_returns_counts(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.count_open = AsyncMock(
                side_effect=lambda db, t, now: {
                    ListingType.INSTITUTIONS: 10,
                    ListingType.PROGRAMS: 20,
                    ListingType.BURSARIES: 30,
                }[t]
            )
            mock_repo.count_closed = AsyncMock(
                side_effect=lambda db, t, now: {
                    ListingType.INSTITUTIONS: 1,
                    ListingType.PROGRAMS: 2,
                    ListingType.BURSARIES: 3,
                }[t]
            )
            mock_repo.count_upcoming = AsyncMock(return_value=7)

            summary = await get_application_status_summary(mock_db, now=NOW)

        assert summary == {
            "open_institutions": 10,
            "closed_institutions": 1,
            "open_programs": 20,
            "closed_programs": 2,
            "active_bursaries": 30,
            "expired_bursaries": 3,
            "upcoming_deadlines": 7,
        }
        until = mock_repo.count_upcoming.await_args.args[2]
        assert until == NOW + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_error_returns_zeros(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.count_open = AsyncMock(side_effect=RuntimeError("db down"))

            summary = await get_application_status_summary(mock_db, now=NOW)

        assert len(summary) == 7
        assert set(summary.values()) == {0}


def _reminder_application(deadline: datetime):
    application = MagicMock(spec=Application)
    application.id = uuid4()
    application.user_id = uuid4()
    application.status = ApplicationStatus.DRAFT
    application.institution = SimpleNamespace(
        name="University of Johannesburg", application_deadline=deadline
    )
    application.user = SimpleNamespace(email="sipho@student.ac.za", full_name="Sipho Dlamini")
    return application


class TestSendDeadlineReminders:
    @pytest.mark.asyncio
    async def test_notifies_emails_and_stamps(self, session_maker, mock_db):
        application = _reminder_application(NOW + timedelta(days=3))

        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.notification_service") as mock_notifications,
            patch(f"{SERVICE}.send_deadline_reminder", new_callable=AsyncMock) as mock_email,
        ):
            mock_repo.get_applications_needing_deadline_reminder = AsyncMock(
                return_value=[application]
            )
            mock_repo.mark_deadline_reminder_sent = AsyncMock()
            mock_notifications.create_deadline_reminder_notification = AsyncMock()
            mock_email.return_value = True

            result = await send_deadline_reminders(now=NOW)

        assert result["processed"] == 1
        assert result["succeeded"] == 1
        assert result["failed"] == 0
        assert result["results"][0]["status"] == "sent"

        window_end = mock_repo.get_applications_needing_deadline_reminder.await_args.args[2]
        assert window_end == NOW + timedelta(days=7)

        kwargs = mock_notifications.create_deadline_reminder_notification.await_args.kwargs
        assert kwargs["user_id"] == application.user_id
        assert kwargs["days_remaining"] == 3
        assert kwargs["institution_name"] == "University of Johannesburg"

        assert mock_email.await_args.kwargs["to_email"] == "sipho@student.ac.za"
        assert mock_email.await_args.kwargs["deadline"] == "2025-06-18"
        mock_repo.mark_deadline_reminder_sent.assert_awaited_once_with(mock_db, application.id, NOW)

    @pytest.mark.asyncio
    async def test_email_failure_still_stamps(self, session_maker):
        application = _reminder_application(NOW + timedelta(days=1))

        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.notification_service") as mock_notifications,
            patch(f"{SERVICE}.send_deadline_reminder", new_callable=AsyncMock) as mock_email,
        ):
            mock_repo.get_applications_needing_deadline_reminder = AsyncMock(
                return_value=[application]
            )
            mock_repo.mark_deadline_reminder_sent = AsyncMock()
            mock_notifications.create_deadline_reminder_notification = AsyncMock()
            mock_email.return_value = False

            result = await send_deadline_reminders(now=NOW)

        assert result["results"][0]["status"] == "notified_email_failed"
        mock_repo.mark_deadline_reminder_sent.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_item_error_is_counted_and_others_continue(self, session_maker):
        broken = _reminder_application(NOW + timedelta(days=2))
        healthy = _reminder_application(NOW + timedelta(days=2))

        async def create_reminder(db, **kwargs):
            if kwargs["application_id"] == broken.id:
                raise RuntimeError("insert failed")

        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.notification_service") as mock_notifications,
            patch(f"{SERVICE}.send_deadline_reminder", new_callable=AsyncMock) as mock_email,
        ):
            mock_repo.get_applications_needing_deadline_reminder = AsyncMock(
                return_value=[broken, healthy]
            )
            mock_repo.mark_deadline_reminder_sent = AsyncMock()
            mock_notifications.create_deadline_reminder_notification = AsyncMock(
                side_effect=create_reminder
            )
            mock_email.return_value = True

            result = await send_deadline_reminders(now=NOW)

        assert result["processed"] == 2
        assert result["succeeded"] == 1
        assert result["failed"] == 1
        assert result["results"][0]["status"] == "error"
        # Both were stamped before their notification was attempted
        assert mock_repo.mark_deadline_reminder_sent.await_count == 2
        mock_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stamps_before_notifying_and_emailing(self, session_maker):
        application = _reminder_application(NOW + timedelta(days=2))
        calls = []

        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.notification_service") as mock_notifications,
            patch(f"{SERVICE}.send_deadline_reminder", new_callable=AsyncMock) as mock_email,
        ):
            mock_repo.get_applications_needing_deadline_reminder = AsyncMock(
                return_value=[application]
            )
            mock_repo.mark_deadline_reminder_sent = AsyncMock(
                side_effect=lambda *args: calls.append("stamp")
            )
            mock_notifications.create_deadline_reminder_notification = AsyncMock(
                side_effect=lambda *args, **kwargs: calls.append("notification")
            )
            mock_email.side_effect = lambda **kwargs: calls.append("email") or True

            await send_deadline_reminders(now=NOW)

        assert calls == ["stamp", "notification", "email"]

    @pytest.mark.asyncio
    async def test_stamp_failure_sends_nothing(self, session_maker):
        application = _reminder_application(NOW + timedelta(days=2))

        with (
            patch(f"{SERVICE}.async_session_maker", session_maker),
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.notification_service") as mock_notifications,
            patch(f"{SERVICE}.send_deadline_reminder", new_callable=AsyncMock) as mock_email,
        ):
            mock_repo.get_applications_needing_deadline_reminder = AsyncMock(
                return_value=[application]
            )
            mock_repo.mark_deadline_reminder_sent = AsyncMock(
                side_effect=RuntimeError("connection lost")
            )
            mock_notifications.create_deadline_reminder_notification = AsyncMock()

            result = await send_deadline_reminders(now=NOW)

        assert result["failed"] == 1
        mock_notifications.create_deadline_reminder_notification.assert_not_awaited()
        mock_email.assert_not_awaited()


class TestListingQueries:
    @pytest.mark.asyncio
    async def test_list_open_listings_filters_programs(self, mock_db):
        open_program = SimpleNamespace(
            name="BEng", application_deadline=NOW + timedelta(days=3), is_available=True
        )
        closed_program = SimpleNamespace(
            name="BA", application_deadline=NOW - timedelta(days=3), is_available=True
        )

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.list_listings = AsyncMock(return_value=[open_program, closed_program])

            result = await list_open_listings(mock_db, ListingType.PROGRAMS, now=NOW)

        assert result == [open_program]

    @pytest.mark.asyncio
    async def test_upcoming_deadlines_span_types_sorted_by_urgency(self, mock_db):
        institution = SimpleNamespace(name="UKZN", application_deadline=NOW + timedelta(days=20))
        program = SimpleNamespace(name="BSc", application_deadline=NOW + timedelta(days=2))
        bursary = SimpleNamespace(name="Funza", application_deadline=NOW + timedelta(days=9))
        far_bursary = SimpleNamespace(name="Sasol", application_deadline=NOW + timedelta(days=90))

        listings = {
            ListingType.INSTITUTIONS: [institution],
            ListingType.PROGRAMS: [program],
            ListingType.BURSARIES: [bursary, far_bursary],
        }

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.list_listings = AsyncMock(side_effect=lambda db, t: listings[t])

            result = await list_upcoming_deadlines(mock_db, days_ahead=30, now=NOW)

        assert result == [
            (ListingType.PROGRAMS, program),
            (ListingType.BURSARIES, bursary),
            (ListingType.INSTITUTIONS, institution),
        ]
