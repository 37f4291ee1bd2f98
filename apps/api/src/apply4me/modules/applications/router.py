"""
Payments Router

Endpoints:
- POST /payments/webhook - Payment gateway callback (form or JSON)
- PUT /payments/webhook - Same, for gateways that PUT
- GET /payments - Payment status by application id or charge id
- POST /applications/{id}/payments - Record an initiated payment (owner)

The webhook is unauthenticated; it is protected by the callback signature
and the optional source IP allowlist. When running behind a proxy, start
the server with proxy headers enabled so the client address is the
gateway's.
"""

import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.core.auth import CurrentUser, ensure_owner_or_admin, get_current_user
from apply4me.core.database import get_db
from apply4me.modules.applications import service
from apply4me.modules.applications.schemas import (
    ApplicationPaymentResponse,
    PaymentDetails,
    PaymentInitiateRequest,
    PaymentStatusResponse,
    WebhookResponse,
)
from apply4me.modules.applications.service import ApplicationServiceError

logger = logging.getLogger(__name__)

payments_router = APIRouter()
applications_router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _service_error(e: ApplicationServiceError) -> HTTPException:
    return HTTPException(
        status_code=e.status_code,
        detail={"error": e.error_code, "message": e.message},
    )


def _invalid_payload(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "INVALID_PAYLOAD", "message": message},
    )


async def _read_callback_payload(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    try:
        payload = json.loads(body or b"null")
    except ValueError as e:
        raise _invalid_payload("Webhook body is not valid JSON.") from e

    if not isinstance(payload, dict):
        raise _invalid_payload("Webhook body must be an object.")
    return payload


@payments_router.api_route(
    "/webhook",
    methods=["POST", "PUT"],
    response_model=WebhookResponse,
    summary="Payment Gateway Callback",
    responses={
        400: {"description": "Malformed payload or unknown payment status"},
        403: {"description": "Invalid signature or untrusted source"},
        404: {"description": "Unknown charge id"},
        500: {"description": "Status write failed; the gateway should retry"},
    },
)
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> WebhookResponse:
    payload = await _read_callback_payload(request)
    source_ip = request.client.host if request.client else None

    try:
        result = await service.reconcile_payment_callback(db, payload, source_ip=source_ip)
    except ApplicationServiceError as e:
        if e.status_code >= 500:
            logger.error(f"Payment webhook failed: {e.message}")
        raise _service_error(e) from e

    return WebhookResponse(outcome=result.outcome)


@payments_router.get(
    "",
    response_model=PaymentStatusResponse,
    summary="Payment Status",
)
async def get_payment_status(
    application_id: UUID | None = Query(None, alias="applicationId"),
    charge_id: str | None = Query(None, alias="chargeId"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PaymentStatusResponse:
    try:
        application = await service.get_payment_status(
            db, application_id=application_id, charge_id=charge_id
        )
    except ApplicationServiceError as e:
        raise _service_error(e) from e

    ensure_owner_or_admin(current_user, application.user_id)

    return PaymentStatusResponse(
        application_id=application.id,
        application_status=application.status,
        payment=PaymentDetails(
            status=application.payment_status,
            method=application.payment_method,
            reference=application.payment_reference,
            date=application.payment_date,
            amount=application.total_amount,
        ),
    )


@applications_router.post(
    "/{application_id}/payments",
    response_model=ApplicationPaymentResponse,
    summary="Record Initiated Payment",
)
async def initiate_payment(
    application_id: UUID,
    data: PaymentInitiateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApplicationPaymentResponse:
    try:
        application = await service.initiate_payment(
            db,
            application_id,
            current_user,
            charge_id=data.charge_id,
            amount=data.amount,
            method=data.method,
        )
    except ApplicationServiceError as e:
        raise _service_error(e) from e

    return ApplicationPaymentResponse(
        application_id=application.id,
        status=application.status,
        payment_status=application.payment_status,
        charge_id=application.yoco_charge_id,
    )
