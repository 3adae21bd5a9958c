"""Email service for sending payout emails via SMTP."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from email.message import EmailMessage
from typing import TYPE_CHECKING

from payout_engine.core.config import settings

if TYPE_CHECKING:
    from payout_engine.models.vendor import Vendor

logger = logging.getLogger(__name__)


def _format_amount(amount_minor: int | None) -> str:
    """Format a minor-unit amount to two decimal places with separators."""
    if amount_minor is None:
        return "0.00"
    return f"{(Decimal(amount_minor) / 100):,.2f}"


def _format_date(dt: datetime | None) -> str:
    """Format a datetime to YYYY-MM-DD, or return empty string if None."""
    if dt is None:
        return ""
    return str(dt)[:10]


class EmailService:
    """Service for sending payout emails via SMTP."""

    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        """Send an email via SMTP.

        Args:
            to: Recipient email address.
            subject: Email subject line.
            html_body: HTML content of the email.

        Returns:
            True if sent successfully (or no-op when SMTP unconfigured).
        """
        if not settings.SMTP_HOST:
            logger.info("SMTP not configured, skipping email to %s: %s", to, subject)
            return True

        import aiosmtplib

        msg = EmailMessage()
        msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("Please view this email in an HTML-capable client.")
        msg.add_alternative(html_body, subtype="html")

        await aiosmtplib.send(
            msg,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME or None,
            password=settings.SMTP_PASSWORD or None,
            start_tls=settings.SMTP_USE_TLS,
        )
        logger.info("Email sent to %s: %s", to, subject)
        return True

    async def send_payout_email(
        self,
        vendor: Vendor,
        amount_minor: int,
        batch_id: str,
        transfer_code: str | None = None,
    ) -> bool:
        """Tell a vendor their payout has been sent."""
        if not vendor.email:
            logger.warning("Vendor %s has no email, skipping payout email", vendor.id)
            return False

        amount = f"{vendor.currency} {_format_amount(amount_minor)}"
        html_body = (
            f"<h2>Your payout is on its way</h2>"
            f"<p>Hi {vendor.name},</p>"
            f"<p>We have sent {amount} to your bank account.</p>"
            f"<table>"
            f"<tr><td><strong>Amount:</strong></td><td>{amount}</td></tr>"
            f"<tr><td><strong>Bank:</strong></td><td>{vendor.bank_name or ''}</td></tr>"
            f"<tr><td><strong>Reference:</strong></td><td>{transfer_code or batch_id}</td></tr>"
            f"</table>"
            f"<p>It may take up to one business day to reflect in your account.</p>"
        )
        return await self.send_email(
            to=str(vendor.email), subject=f"Payout of {amount} sent", html_body=html_body
        )

    async def send_payout_failed_email(
        self, vendor: Vendor, amount_minor: int, batch_id: str
    ) -> bool:
        if not vendor.email:
            logger.warning("Vendor %s has no email, skipping payout failure email", vendor.id)
            return False

        amount = f"{vendor.currency} {_format_amount(amount_minor)}"
        html_body = (
            f"<h2>We could not send your payout</h2>"
            f"<p>Hi {vendor.name},</p>"
            f"<p>Your payout of {amount} (batch {batch_id}) did not go through. "
            f"We will try again automatically. Please check that your bank details are "
            f"correct.</p>"
        )
        return await self.send_email(
            to=str(vendor.email), subject="Action needed: payout unsuccessful", html_body=html_body
        )

    async def send_payout_reminder_email(
        self, vendor: Vendor, amount_minor: int, payout_date: datetime
    ) -> bool:
        """Ask a vendor with money due to add bank details before the cutoff."""
        if not vendor.email:
            logger.warning("Vendor %s has no email, skipping payout reminder", vendor.id)
            return False

        amount = f"{vendor.currency} {_format_amount(amount_minor)}"
        html_body = (
            f"<h2>Add your bank details to get paid</h2>"
            f"<p>Hi {vendor.name},</p>"
            f"<p>You have {amount} due in the payout on {_format_date(payout_date)}, "
            f"but we don't have verified bank details for you yet.</p>"
            f"<p>Add your bank account before the payout date so we can send your money.</p>"
        )
        return await self.send_email(
            to=str(vendor.email),
            subject=f"You have {amount} waiting for you",
            html_body=html_body,
        )
