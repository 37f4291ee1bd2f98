"""
Applications Schemas

Payment request and response bodies. Public JSON uses camelCase keys.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import Field

from apply4me.modules.applications.models import ApplicationStatus, PaymentStatus
from apply4me.modules.shared.schemas import CamelModel


class WebhookResponse(CamelModel):
    success: bool = True
    outcome: str


class PaymentInitiateRequest(CamelModel):
    charge_id: str = Field(..., min_length=1, max_length=100)
    amount: Decimal | None = Field(None, ge=0)
    method: str | None = Field(None, max_length=50)


class ApplicationPaymentResponse(CamelModel):
    success: bool = True
    application_id: UUID
    status: ApplicationStatus
    payment_status: PaymentStatus
    charge_id: str | None = None


class PaymentDetails(CamelModel):
    status: PaymentStatus
    method: str | None = None
    reference: str | None = None
    date: datetime | None = None
    amount: Decimal


class PaymentStatusResponse(CamelModel):
    success: bool = True
    application_id: UUID
    application_status: ApplicationStatus
    payment: PaymentDetails


class PaymentVerifyRequest(CamelModel):
    status: Literal["verified", "rejected"]
    admin_notes: str | None = Field(None, max_length=2000)


class PaymentVerifyResponse(CamelModel):
    success: bool = True
    message: str
    application_id: UUID
    status: Literal["verified", "rejected"]
    verified_by: UUID
    timestamp: datetime
