"""
Fixtures for applications and payment tests.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from apply4me.modules.applications.models import Application, ApplicationStatus, PaymentStatus

CHARGE_ID = "pf_123"


@pytest.fixture
def charge_id():
    return CHARGE_ID


@pytest.fixture
def pending_application(student_user):
    """Application waiting on gateway charge ``pf_123``."""
    application = MagicMock(spec=Application)
    application.id = uuid4()
    application.user_id = student_user.id
    application.status = ApplicationStatus.PAYMENT_PENDING
    application.payment_status = PaymentStatus.PENDING
    application.payment_method = "card"
    application.payment_reference = CHARGE_ID
    application.yoco_charge_id = CHARGE_ID
    application.payment_date = None
    application.total_amount = Decimal("250.00")
    application.institution = SimpleNamespace(name="University of Cape Town")
    application.user = SimpleNamespace(email=student_user.email, full_name=student_user.name)
    return application


@pytest.fixture
def gateway_settings():
    """Payment gateway settings with a passphrase and no IP allowlist."""
    return SimpleNamespace(
        payment_gateway_passphrase="jt7NOE43FZPn",
        payment_gateway_allowed_ips_list=[],
    )
