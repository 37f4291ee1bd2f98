"""
HTTP contract tests for the deadlines endpoints.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

SERVICE = "apply4me.modules.deadlines.service"


class TestCheckDeadline:
    def test_returns_camel_case_status(self, api_client):
        deadline = (datetime.now(UTC) + timedelta(days=5, hours=1)).isoformat()

        response = api_client.get("/api/v1/deadlines/check", params={"deadline": deadline})

        assert response.status_code == 200
        body = response.json()
        assert body == {
            "isOpen": True,
            "isExpired": False,
            "daysRemaining": 6,
            "urgencyLevel": "warning",
            "message": "6 days remaining",
        }

    def test_unparseable_deadline_is_400(self, api_client):
        response = api_client.get("/api/v1/deadlines/check", params={"deadline": "soon"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_DEADLINE"


class TestApplicationWindow:
    def test_expired_deadline(self, api_client):
        deadline = (datetime.now(UTC) - timedelta(days=2)).isoformat()

        response = api_client.get(
            "/api/v1/deadlines/window",
            params={"institutionName": "Wits", "deadline": deadline},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["isCurrentlyOpen"] is False
        assert body["status"] == "expired"
        assert body["closesAt"] is not None

    def test_calendar_window(self, api_client):
        response = api_client.get("/api/v1/deadlines/window", params={"institutionName": "UCT"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "closed"
        assert body["nextOpeningDate"].startswith(f"{datetime.now(UTC).year}-03-01")


class TestDeadlineActions:
    def test_mark_expired(self, api_client, authenticate, admin_user):
        authenticate(admin_user)
        counts = {"institutions_updated": 1, "programs_updated": 2, "bursaries_updated": 3}

        with (
            patch(f"{SERVICE}.mark_expired_items_inactive", AsyncMock(return_value=counts)),
            patch(
                "apply4me.modules.deadlines.router.enforce_admin_rate_limit",
                AsyncMock(),
            ),
        ):
            response = api_client.post("/api/v1/deadlines/actions", json={"action": "mark_expired"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["action"] == "mark_expired"
        assert body["result"]["institutionsUpdated"] == 1
        assert body["result"]["programsUpdated"] == 2
        assert body["result"]["bursariesUpdated"] == 3
        assert "1 institutions, 2 programs, 3 bursaries" in body["result"]["message"]

    def test_check_deadlines(self, api_client, authenticate, admin_user):
        authenticate(admin_user)
        summary = {
            "open_institutions": 0,
            "closed_institutions": 0,
            "open_programs": 0,
            "closed_programs": 0,
            "active_bursaries": 0,
            "expired_bursaries": 0,
            "upcoming_deadlines": 4,
        }

        with (
            patch(f"{SERVICE}.get_application_status_summary", AsyncMock(return_value=summary)),
            patch("apply4me.modules.deadlines.router.enforce_admin_rate_limit", AsyncMock()),
        ):
            response = api_client.post(
                "/api/v1/deadlines/actions", json={"action": "check_deadlines"}
            )

        assert response.status_code == 200
        assert response.json()["result"] == {
            "upcomingDeadlines": 4,
            "message": "Found 4 upcoming deadlines",
        }

    def test_unknown_action_is_400(self, api_client, authenticate, admin_user):
        authenticate(admin_user)

        with patch("apply4me.modules.deadlines.router.enforce_admin_rate_limit", AsyncMock()):
            response = api_client.post("/api/v1/deadlines/actions", json={"action": "purge"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "UNKNOWN_ACTION"

    def test_students_are_forbidden(self, api_client, authenticate, student_user):
        authenticate(student_user)

        response = api_client.post("/api/v1/deadlines/actions", json={"action": "mark_expired"})

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ADMIN_ACCESS_REQUIRED"


class TestStatusSummary:
    def test_returns_camel_case_summary(self, api_client, authenticate, admin_user):
        authenticate(admin_user)
        summary = {
            "open_institutions": 26,
            "closed_institutions": 4,
            "open_programs": 300,
            "closed_programs": 12,
            "active_bursaries": 40,
            "expired_bursaries": 9,
            "upcoming_deadlines": 15,
        }

        with patch(f"{SERVICE}.get_application_status_summary", AsyncMock(return_value=summary)):
            response = api_client.get("/api/v1/deadlines/status")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "timestamp" in body
        assert body["summary"] == {
            "openInstitutions": 26,
            "closedInstitutions": 4,
            "openPrograms": 300,
            "closedPrograms": 12,
            "activeBursaries": 40,
            "expiredBursaries": 9,
            "upcomingDeadlines": 15,
        }

    def test_requires_authentication(self, api_client):
        response = api_client.get("/api/v1/deadlines/status")
        assert response.status_code in (401, 403)
