"""
Email Service using Resend

Student-facing emails that mirror in-app payment and deadline notifications.
All senders are best-effort: they return False on failure and never raise.
"""

import asyncio
import logging
from decimal import Decimal
from html import escape

import resend

from apply4me.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key


def _render(heading: str, body_html: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: #14532d; margin-bottom: 24px; }}
            .details {{ background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 24px 0; }}
            .button {{ display: inline-block; background-color: #15803d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{heading}</h1>
            {body_html}
            <div class="footer">
                <p>Apply4Me - Your gateway to South African higher education</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_email(to_email: str, subject: str, html_content: str) -> bool:
    """
    Send an email using Resend.

    Returns:
        True if the email was sent (or logged when no API key is configured)
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_payment_verified(
    to_email: str,
    student_name: str,
    institution_name: str,
    payment_reference: str,
    amount: Decimal | float,
) -> bool:
    """Tell a student their payment cleared and the application was submitted."""
    safe_name = escape(student_name)
    safe_institution = escape(institution_name)
    safe_reference = escape(payment_reference)
    dashboard_url = f"{settings.frontend_url}/applications/tracker"

    body = f"""
        <p>Dear {safe_name},</p>
        <p>Your payment has been verified and your application has been successfully
        submitted to <strong>{safe_institution}</strong>.</p>
        <div class="details">
            <p><strong>Reference:</strong> {safe_reference}</p>
            <p><strong>Amount:</strong> R{amount}</p>
        </div>
        <p>Your application is now being processed. Track your progress in your dashboard:</p>
        <a href="{dashboard_url}" class="button">View Applications</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Payment Verified - Application Submitted to {safe_institution}",
        html_content=_render("Payment Verified", body),
    )


async def send_payment_rejected(
    to_email: str,
    student_name: str,
    institution_name: str,
    payment_reference: str,
    amount: Decimal | float,
    reason: str | None = None,
) -> bool:
    """Tell a student their payment failed, was cancelled or could not be verified."""
    safe_name = escape(student_name)
    safe_institution = escape(institution_name)
    safe_reference = escape(payment_reference)
    reason_html = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
    dashboard_url = f"{settings.frontend_url}/applications/tracker"

    body = f"""
        <p>Dear {safe_name},</p>
        <p>We could not confirm your payment for the application to
        <strong>{safe_institution}</strong>.</p>
        <div class="details">
            <p><strong>Reference:</strong> {safe_reference}</p>
            <p><strong>Amount:</strong> R{amount}</p>
        </div>
        {reason_html}
        <p>Please check your payment method and retry the payment from your dashboard.</p>
        <a href="{dashboard_url}" class="button">Retry Payment</a>
    """
    return await send_email(
        to_email=to_email,
        subject="Payment Verification Failed - Action Required",
        html_content=_render("Payment Not Completed", body),
    )


async def send_deadline_reminder(
    to_email: str,
    student_name: str,
    institution_name: str,
    deadline: str,
    days_remaining: int,
) -> bool:
    """Remind a student to finish an application before the institution closes."""
    safe_name = escape(student_name)
    safe_institution = escape(institution_name)
    dashboard_url = f"{settings.frontend_url}/applications/tracker"

    body = f"""
        <p>Dear {safe_name},</p>
        <p>The application deadline for <strong>{safe_institution}</strong> is in
        <strong>{days_remaining} days</strong> ({escape(deadline)}).</p>
        <p>Your application has not been submitted yet. Don't miss out!</p>
        <a href="{dashboard_url}" class="button">Complete Application</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Application Deadline Reminder - {safe_institution}",
        html_content=_render("Deadline Approaching", body),
    )
