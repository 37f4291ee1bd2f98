"""
HTTP contract tests for the payment endpoints.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

from apply4me.modules.applications.models import ApplicationStatus, PaymentStatus
from apply4me.modules.applications.service import (
    ChargeIdInUseError,
    InvalidSignatureError,
    PaymentNotFoundError,
    ReconciliationResult,
    ReconciliationWriteError,
)

SERVICE = "apply4me.modules.applications.service"


def _result(outcome: str = "updated") -> ReconciliationResult:
    return ReconciliationResult(
        charge_id="pf_123",
        application_id=uuid4(),
        outcome=outcome,
        payment_status=PaymentStatus.FAILED,
        status=ApplicationStatus.PAYMENT_FAILED,
    )


class TestPaymentWebhook:
    def test_json_body(self, api_client, mock_db):
        with patch(
            f"{SERVICE}.reconcile_payment_callback", AsyncMock(return_value=_result())
        ) as mock_reconcile:
            response = api_client.post(
                "/api/v1/payments/webhook",
                json={"id": "pf_123", "status": "failed", "signature": "abc"},
            )

        assert response.status_code == 200
        assert response.json() == {"success": True, "outcome": "updated"}
        args = mock_reconcile.await_args
        assert args.args[0] is mock_db
        assert args.args[1] == {"id": "pf_123", "status": "failed", "signature": "abc"}
        assert args.kwargs["source_ip"] == "testclient"

    def test_form_body(self, api_client):
        with patch(
            f"{SERVICE}.reconcile_payment_callback", AsyncMock(return_value=_result())
        ) as mock_reconcile:
            response = api_client.post(
                "/api/v1/payments/webhook",
                data={"id": "pf_123", "status": "failed", "signature": "abc"},
            )

        assert response.status_code == 200
        assert mock_reconcile.await_args.args[1] == {
            "id": "pf_123",
            "status": "failed",
            "signature": "abc",
        }

    def test_put_is_accepted(self, api_client):
        with patch(
            f"{SERVICE}.reconcile_payment_callback",
            AsyncMock(return_value=_result("duplicate")),
        ):
            response = api_client.put(
                "/api/v1/payments/webhook", json={"id": "pf_123", "status": "failed"}
            )

        assert response.status_code == 200
        assert response.json()["outcome"] == "duplicate"

    def test_invalid_json_is_400(self, api_client):
        response = api_client.post(
            "/api/v1/payments/webhook",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_PAYLOAD"

    def test_non_object_json_is_400(self, api_client):
        response = api_client.post("/api/v1/payments/webhook", json=["pf_123"])

        assert response.status_code == 400

    def test_invalid_signature_is_403(self, api_client):
        with patch(
            f"{SERVICE}.reconcile_payment_callback",
            AsyncMock(side_effect=InvalidSignatureError()),
        ):
            response = api_client.post(
                "/api/v1/payments/webhook", json={"id": "pf_123", "status": "failed"}
            )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "INVALID_SIGNATURE"

    def test_unknown_charge_is_404(self, api_client):
        with patch(
            f"{SERVICE}.reconcile_payment_callback",
            AsyncMock(side_effect=PaymentNotFoundError("pf_404")),
        ):
            response = api_client.post(
                "/api/v1/payments/webhook", json={"id": "pf_404", "status": "failed"}
            )

        assert response.status_code == 404

    def test_write_failure_is_500_so_gateway_retries(self, api_client):
        with patch(
            f"{SERVICE}.reconcile_payment_callback",
            AsyncMock(side_effect=ReconciliationWriteError("pf_123")),
        ):
            response = api_client.post(
                "/api/v1/payments/webhook", json={"id": "pf_123", "status": "successful"}
            )

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "RECONCILIATION_FAILED"


class TestGetPaymentStatus:
    def test_owner_sees_payment(self, api_client, authenticate, student_user, pending_application):
        authenticate(student_user)

        with patch(
            f"{SERVICE}.get_payment_status", AsyncMock(return_value=pending_application)
        ):
            response = api_client.get("/api/v1/payments", params={"chargeId": "pf_123"})

        assert response.status_code == 200
        body = response.json()
        assert body["applicationId"] == str(pending_application.id)
        assert body["applicationStatus"] == "payment_pending"
        assert body["payment"]["status"] == "pending"
        assert body["payment"]["reference"] == "pf_123"
        assert body["payment"]["method"] == "card"

    def test_other_student_is_forbidden(self, api_client, authenticate, pending_application):
        from apply4me.core.auth import CurrentUser

        authenticate(CurrentUser(id=uuid4(), email="x@student.ac.za", role="student"))

        with patch(
            f"{SERVICE}.get_payment_status", AsyncMock(return_value=pending_application)
        ):
            response = api_client.get("/api/v1/payments", params={"chargeId": "pf_123"})

        assert response.status_code == 403

    def test_admin_sees_any_payment(self, api_client, authenticate, admin_user, pending_application):
        authenticate(admin_user)

        with patch(
            f"{SERVICE}.get_payment_status", AsyncMock(return_value=pending_application)
        ):
            response = api_client.get(
                "/api/v1/payments", params={"applicationId": str(pending_application.id)}
            )

        assert response.status_code == 200


class TestInitiatePayment:
    def test_returns_pending_state(self, api_client, authenticate, student_user, pending_application):
        authenticate(student_user)

        with patch(
            f"{SERVICE}.initiate_payment", AsyncMock(return_value=pending_application)
        ) as mock_initiate:
            response = api_client.post(
                f"/api/v1/applications/{pending_application.id}/payments",
                json={"chargeId": "pf_123", "amount": "250.00"},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "payment_pending"
        assert body["paymentStatus"] == "pending"
        assert body["chargeId"] == "pf_123"
        assert mock_initiate.await_args.kwargs["charge_id"] == "pf_123"


class TestVerifyPayment:
    def test_admin_verifies(self, api_client, authenticate, admin_user, pending_application):
        authenticate(admin_user)

        with (
            patch(
                f"{SERVICE}.verify_payment_manually",
                AsyncMock(return_value=pending_application),
            ),
            patch(
                "apply4me.modules.applications.admin_router.enforce_admin_rate_limit",
                AsyncMock(),
            ),
        ):
            response = api_client.post(
                f"/api/v1/admin/payments/{pending_application.id}/verify",
                json={"status": "verified", "adminNotes": "EFT received"},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Payment verified successfully"
        assert body["verifiedBy"] == str(admin_user.id)

    def test_invalid_decision_is_422(self, api_client, authenticate, admin_user):
        authenticate(admin_user)

        with patch(
            "apply4me.modules.applications.admin_router.enforce_admin_rate_limit", AsyncMock()
        ):
            response = api_client.post(
                f"/api/v1/admin/payments/{uuid4()}/verify", json={"status": "maybe"}
            )

        assert response.status_code == 422

    def test_students_are_forbidden(self, api_client, authenticate, student_user):
        authenticate(student_user)

        response = api_client.post(
            f"/api/v1/admin/payments/{uuid4()}/verify", json={"status": "verified"}
        )

        assert response.status_code == 403


class TestInitiatePaymentConflicts:
    def test_reused_charge_id_is_409(self, api_client, authenticate, student_user):
        authenticate(student_user)

        with patch(
            f"{SERVICE}.initiate_payment", AsyncMock(side_effect=ChargeIdInUseError("c1"))
        ):
            response = api_client.post(
                f"/api/v1/applications/{uuid4()}/payments", json={"chargeId": "c1"}
            )

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "CHARGE_ID_IN_USE"
