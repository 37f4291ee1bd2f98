"""
Applications module - Student applications and their fee payments.

Reconciles payment gateway callbacks into paired
(payment_status, status) transitions and notifies the student.
"""

from apply4me.modules.applications.models import Application, ApplicationStatus, PaymentStatus

__all__ = ["Application", "ApplicationStatus", "PaymentStatus"]
