"""
Payments Admin Router

Admin-only endpoint for confirming payments that did not reconcile
automatically. Rate limited per admin.

Endpoints:
- POST /admin/payments/{id}/verify - Mark a payment verified or rejected
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.core.auth import CurrentUser, get_current_admin_user
from apply4me.core.database import get_db
from apply4me.core.rate_limit import enforce_admin_rate_limit
from apply4me.modules.applications import service
from apply4me.modules.applications.schemas import PaymentVerifyRequest, PaymentVerifyResponse
from apply4me.modules.applications.service import ApplicationServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

VERIFY_RATE_LIMIT = 60
VERIFY_RATE_WINDOW_SECONDS = 60 * 60


@router.post(
    "/{application_id}/verify",
    response_model=PaymentVerifyResponse,
    summary="Verify Payment (admin)",
)
async def verify_payment(
    application_id: UUID,
    data: PaymentVerifyRequest,
    admin: CurrentUser = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
) -> PaymentVerifyResponse:
    await enforce_admin_rate_limit(
        admin.id, "verify_payment", VERIFY_RATE_LIMIT, VERIFY_RATE_WINDOW_SECONDS
    )

    try:
        await service.verify_payment_manually(
            db, application_id, data.status, admin, notes=data.admin_notes
        )
    except ApplicationServiceError as e:
        logger.warning(f"Manual verification of {application_id} failed: {e.message}")
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": e.error_code, "message": e.message},
        ) from e

    return PaymentVerifyResponse(
        message=f"Payment {data.status} successfully",
        application_id=application_id,
        status=data.status,
        verified_by=admin.id,
        timestamp=datetime.now(UTC),
    )
