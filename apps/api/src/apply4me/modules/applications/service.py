"""
Applications Service Layer

Payment reconciliation for applications.

This module implements:
1. Gateway Callback Reconciliation:
   - Optional source IP allowlist
   - Signature verification (constant time)
   - Gateway status -> (payment_status, status) mapping
   - Single UPDATE of the looked-up application, guarded by its current status
   - Best-effort notification and email afterwards

2. Payment Initiation:
   - Record a charge id no other application carries and enter payment_pending

3. Payment Status Query:
   - By application id or charge id

4. Manual Verification:
   - Admin marks a payment verified or rejected, with notes

Idempotency:
- A callback whose target pair already holds is a no-op (no write, no
  notification)
- Callbacks for applications already submitted or beyond are ignored
- There is no processed-webhook ledger; duplicates are safe because the
  target values are the same (last write wins)
"""

import ipaddress
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.core.auth import CurrentUser
from apply4me.core.config import settings
from apply4me.core.email import send_payment_rejected, send_payment_verified
from apply4me.modules.applications import repository
from apply4me.modules.applications.models import (
    SETTLED_STATUSES,
    Application,
    ApplicationStatus,
    PaymentStatus,
)
from apply4me.modules.applications.repository import InvalidStatusTransitionError
from apply4me.modules.applications.signature import verify_signature
from apply4me.modules.notifications import service as notification_service

logger = logging.getLogger(__name__)

# Gateway callback status -> (payment_status, application status)
GATEWAY_STATUS_MAP: dict[str, tuple[PaymentStatus, ApplicationStatus]] = {
    "successful": (PaymentStatus.COMPLETED, ApplicationStatus.SUBMITTED),
    "failed": (PaymentStatus.FAILED, ApplicationStatus.PAYMENT_FAILED),
    "cancelled": (PaymentStatus.CANCELLED, ApplicationStatus.PAYMENT_CANCELLED),
}

# Manual verification decision -> (payment_status, application status)
VERIFICATION_STATUS_MAP: dict[str, tuple[PaymentStatus, ApplicationStatus]] = {
    "verified": (PaymentStatus.COMPLETED, ApplicationStatus.SUBMITTED),
    "rejected": (PaymentStatus.FAILED, ApplicationStatus.PAYMENT_FAILED),
}

# Statuses from which a student may start (or restart) a payment
PAYABLE_STATUSES = frozenset(
    {
        ApplicationStatus.DRAFT,
        ApplicationStatus.PAYMENT_PENDING,
        ApplicationStatus.PAYMENT_FAILED,
        ApplicationStatus.PAYMENT_CANCELLED,
    }
)

DEFAULT_PAYMENT_METHOD = "card"


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ApplicationNotFoundError(ApplicationServiceError):
    def __init__(self, message: str = "Application not found."):
        super().__init__(message=message, error_code="APPLICATION_NOT_FOUND", status_code=404)


class PaymentNotFoundError(ApplicationServiceError):
    """No application carries the gateway charge id."""

    def __init__(self, charge_id: str):
        super().__init__(
            message=f"No application found for charge {charge_id}.",
            error_code="PAYMENT_NOT_FOUND",
            status_code=404,
        )


class InvalidPayloadError(ApplicationServiceError):
    def __init__(self, message: str = "Invalid webhook payload."):
        super().__init__(message=message, error_code="INVALID_PAYLOAD", status_code=400)


class UnknownPaymentStatusError(ApplicationServiceError):
    def __init__(self, status: str):
        super().__init__(
            message=f"Unknown payment status '{status}'. "
            f"Expected one of: {', '.join(GATEWAY_STATUS_MAP)}",
            error_code="UNKNOWN_PAYMENT_STATUS",
            status_code=400,
        )


class InvalidSignatureError(ApplicationServiceError):
    def __init__(self):
        super().__init__(
            message="Invalid or missing callback signature.",
            error_code="INVALID_SIGNATURE",
            status_code=403,
        )


class UntrustedSourceError(ApplicationServiceError):
    def __init__(self, source_ip: str | None):
        super().__init__(
            message=f"Callbacks are not accepted from {source_ip or 'an unknown address'}.",
            error_code="UNTRUSTED_SOURCE",
            status_code=403,
        )


class ApplicationAccessDeniedError(ApplicationServiceError):
    def __init__(self):
        super().__init__(
            message="You can only pay for your own applications.",
            error_code="FORBIDDEN",
            status_code=403,
        )


class InvalidApplicationStateError(ApplicationServiceError):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_APPLICATION_STATE",
            status_code=409,
        )


class ChargeIdInUseError(ApplicationServiceError):
    def __init__(self, charge_id: str):
        super().__init__(
            message=f"Charge {charge_id} is already recorded on another application.",
            error_code="CHARGE_ID_IN_USE",
            status_code=409,
        )


class ReconciliationWriteError(ApplicationServiceError):
    """The status write failed; the gateway should retry."""

    def __init__(self, charge_id: str):
        super().__init__(
            message=f"Failed to update application for charge {charge_id}.",
            error_code="RECONCILIATION_FAILED",
            status_code=500,
        )


@dataclass
class ReconciliationResult:
    """
    Outcome of one gateway callback.

    outcome is one of:
    - ``updated``: the pair was written and the student notified
    - ``duplicate``: the application already held the target pair
    - ``ignored``: the application is already settled
    """

    charge_id: str
    application_id: UUID
    outcome: str
    payment_status: PaymentStatus
    status: ApplicationStatus


# ============================================
# Helpers
# ============================================


def _institution_name(application: Application) -> str:
    institution = application.institution
    return institution.name if institution is not None else "the institution"


def _payload_amount(payload: dict[str, Any]) -> Any:
    return payload.get("amount") or payload.get("amount_gross") or "unknown"


def is_allowed_source(source_ip: str | None, allowed: list[str]) -> bool:
    """
    Check a callback's source address against the allowlist.

    Entries may be single addresses or CIDR networks. An empty allowlist
    accepts every source.
    """
    if not allowed:
        return True
    if not source_ip:
        return False

    try:
        address = ipaddress.ip_address(source_ip)
    except ValueError:
        return False

    for entry in allowed:
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            logger.warning(f"Ignoring malformed payment gateway allowlist entry: {entry}")
    return False


async def _notify_payment_outcome(
    db: AsyncSession,
    application: Application,
    verified: bool,
    notes: str | None = None,
) -> None:
    """
    Create the in-app notification and send the matching email.

    Never raises: the status change that triggered it is already committed.
    """
    institution_name = _institution_name(application)

    try:
        await notification_service.create_payment_verification_notification(
            db,
            user_id=application.user_id,
            verified=verified,
            application_id=application.id,
            institution_name=institution_name,
            payment_reference=application.payment_reference,
            amount=application.total_amount,
            admin_notes=notes,
        )
    except Exception as e:
        logger.error(
            f"Failed to create payment notification for application {application.id}: {e}",
            exc_info=True,
        )

    try:
        user = application.user
        if user is None:
            return

        reference = application.payment_reference or "N/A"
        amount = notification_service.format_amount(application.total_amount)
        if verified:
            await send_payment_verified(
                to_email=user.email,
                student_name=user.full_name,
                institution_name=institution_name,
                payment_reference=reference,
                amount=amount,
            )
        else:
            await send_payment_rejected(
                to_email=user.email,
                student_name=user.full_name,
                institution_name=institution_name,
                payment_reference=reference,
                amount=amount,
                reason=notes,
            )
    except Exception as e:
        logger.error(f"Failed to send payment email for application {application.id}: {e}")


# ============================================
# Gateway callback reconciliation
# ============================================


async def reconcile_payment_callback(
    db: AsyncSession,
    payload: dict[str, Any],
    source_ip: str | None = None,
) -> ReconciliationResult:
    """
    Apply a payment gateway callback to the application it belongs to.

    Args:
        db: Database session
        payload: Callback fields (``id`` or ``chargeId``, ``status``,
                 ``metadata``, ``signature``)
        source_ip: Address the callback came from

    Returns:
        ReconciliationResult describing what happened

    Raises:
        UntrustedSourceError: Source address not in the allowlist (403)
        InvalidSignatureError: Signature missing or wrong (403)
        InvalidPayloadError: Charge id or status missing (400)
        UnknownPaymentStatusError: Status not in GATEWAY_STATUS_MAP (400)
        PaymentNotFoundError: No application carries the charge id (404)
        InvalidApplicationStateError: Transition not allowed (409)
        ReconciliationWriteError: The status write failed (500)
    """
    if not is_allowed_source(source_ip, settings.payment_gateway_allowed_ips_list):
        logger.warning(f"SECURITY: Payment callback rejected from untrusted source {source_ip}")
        raise UntrustedSourceError(source_ip)

    if not verify_signature(payload, settings.payment_gateway_passphrase):
        logger.warning(
            f"SECURITY: Payment callback with invalid signature from {source_ip} "
            f"(charge {payload.get('id') or payload.get('chargeId')})"
        )
        raise InvalidSignatureError()

    charge_id = payload.get("id") or payload.get("chargeId")
    gateway_status = payload.get("status")

    if not charge_id or not gateway_status:
        raise InvalidPayloadError("Webhook payload requires a charge id and a status.")

    charge_id = str(charge_id)
    target = GATEWAY_STATUS_MAP.get(str(gateway_status).lower())
    if target is None:
        logger.warning(f"Unknown payment status '{gateway_status}' for charge {charge_id}")
        raise UnknownPaymentStatusError(str(gateway_status))

    payment_status, status = target

    application = await repository.get_by_charge_id(db, charge_id)
    if application is None:
        if payment_status == PaymentStatus.COMPLETED:
            # Money was taken for a charge no application carries
            logger.critical(
                f"MANUAL RECONCILIATION NEEDED: successful payment for unknown charge "
                f"charge_id={charge_id}, amount={_payload_amount(payload)}"
            )
        else:
            logger.warning(f"Payment callback for unknown charge {charge_id}")
        raise PaymentNotFoundError(charge_id)

    if (application.payment_status, application.status) == (payment_status, status):
        logger.info(
            f"Duplicate callback for charge {charge_id}: application {application.id} "
            f"already {status.value}/{payment_status.value}"
        )
        return ReconciliationResult(
            charge_id, application.id, "duplicate", application.payment_status, application.status
        )

    if application.status in SETTLED_STATUSES:
        logger.warning(
            f"Ignoring '{gateway_status}' callback for charge {charge_id}: application "
            f"{application.id} is already {application.status.value}"
        )
        return ReconciliationResult(
            charge_id, application.id, "ignored", application.payment_status, application.status
        )

    try:
        repository.validate_transition(application.status, status)
    except InvalidStatusTransitionError as e:
        raise InvalidApplicationStateError(str(e)) from e

    extra: dict[str, Any] = {"updated_at": datetime.now(UTC)}
    if payment_status == PaymentStatus.COMPLETED:
        extra["payment_date"] = datetime.now(UTC)

    try:
        updated = await repository.update_payment_state(
            db, application.id, application.status, payment_status, status, **extra
        )
        if updated == 0:
            raise RuntimeError(
                f"application {application.id} is no longer {application.status.value}"
            )
    except Exception as e:
        logger.critical(
            f"MANUAL RECONCILIATION NEEDED: charge_id={charge_id}, "
            f"application_id={application.id}, amount={application.total_amount}, "
            f"target={status.value}/{payment_status.value}: {e}",
            exc_info=True,
        )
        raise ReconciliationWriteError(charge_id) from e

    logger.info(
        f"Reconciled charge {charge_id}: application {application.id} "
        f"{application.status.value} -> {status.value}, payment {payment_status.value}"
    )

    await _notify_payment_outcome(
        db, application, verified=payment_status == PaymentStatus.COMPLETED
    )

    return ReconciliationResult(charge_id, application.id, "updated", payment_status, status)


# ============================================
# Payment initiation and status
# ============================================


async def initiate_payment(
    db: AsyncSession,
    application_id: UUID,
    user: CurrentUser,
    charge_id: str,
    amount: Decimal | None = None,
    method: str | None = None,
) -> Application:
    """
    Record a new gateway charge on an application and enter payment_pending.

    Raises:
        ApplicationNotFoundError: Unknown application
        ApplicationAccessDeniedError: Caller neither owns it nor is an admin
        InvalidApplicationStateError: Application is already submitted or beyond
        ChargeIdInUseError: Another application already carries the charge id
    """
    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError()

    if application.user_id != user.id and not user.is_admin:
        logger.warning(f"User {user.id} attempted to pay for application {application_id}")
        raise ApplicationAccessDeniedError()

    if application.status not in PAYABLE_STATUSES:
        raise InvalidApplicationStateError(
            f"Application is {application.status.value}; payment can no longer be started."
        )

    if await repository.charge_id_in_use(db, charge_id, application_id):
        logger.warning(
            f"User {user.id} tried to reuse charge {charge_id} on application {application_id}"
        )
        raise ChargeIdInUseError(charge_id)

    fields: dict[str, Any] = {
        "payment_status": PaymentStatus.PENDING,
        "yoco_charge_id": charge_id,
        "payment_reference": charge_id,
        "payment_method": method or DEFAULT_PAYMENT_METHOD,
    }
    if amount is not None:
        fields["total_amount"] = amount

    try:
        application = await repository.update_status(
            db, application_id, ApplicationStatus.PAYMENT_PENDING, **fields
        )
    except InvalidStatusTransitionError as e:
        raise InvalidApplicationStateError(str(e)) from e

    logger.info(f"Payment initiated for application {application_id} with charge {charge_id}")
    return application


async def get_payment_status(
    db: AsyncSession,
    application_id: UUID | None = None,
    charge_id: str | None = None,
) -> Application:
    """
    Raises:
        InvalidPayloadError: Neither identifier given
        ApplicationNotFoundError: Nothing matched
    """
    if application_id is None and not charge_id:
        raise InvalidPayloadError("Application ID or Charge ID required.")

    if application_id is not None:
        application = await repository.get_by_id(db, application_id)
    else:
        application = await repository.get_by_charge_id(db, charge_id)

    if application is None:
        raise ApplicationNotFoundError()
    return application


# ============================================
# Manual verification
# ============================================


async def verify_payment_manually(
    db: AsyncSession,
    application_id: UUID,
    decision: str,
    admin: CurrentUser,
    notes: str | None = None,
) -> Application:
    """
    Admin confirmation of a payment that did not reconcile automatically
    (EFT, deposit slips, gateway outages).

    Raises:
        InvalidPayloadError: decision is not "verified" or "rejected"
        ApplicationNotFoundError: Unknown application
        InvalidApplicationStateError: Transition not allowed
    """
    target = VERIFICATION_STATUS_MAP.get(decision)
    if target is None:
        raise InvalidPayloadError('Status must be either "verified" or "rejected".')

    payment_status, status = target

    fields: dict[str, Any] = {
        "payment_status": payment_status,
        "payment_verified_by": admin.id,
        "payment_verification_notes": notes,
    }
    if payment_status == PaymentStatus.COMPLETED:
        fields["payment_date"] = datetime.now(UTC)

    try:
        application = await repository.update_status(db, application_id, status, **fields)
    except InvalidStatusTransitionError as e:
        raise InvalidApplicationStateError(str(e)) from e
    except ValueError as e:
        raise ApplicationNotFoundError(str(e)) from e

    logger.info(f"Admin {admin.id} marked payment for application {application_id} as {decision}")

    await _notify_payment_outcome(db, application, verified=decision == "verified", notes=notes)

    return application
