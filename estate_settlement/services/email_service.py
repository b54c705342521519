"""Email service for sending settlement invoices to sellers via SMTP."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from email.message import EmailMessage
from html import escape
from typing import TYPE_CHECKING

from estate_settlement.core.config import settings

if TYPE_CHECKING:
    from estate_settlement.models.settlement_invoice import SettlementInvoice

logger = logging.getLogger(__name__)


def _format_amount(value: object) -> str:
    """Format a monetary amount with thousands separators and two decimals."""
    if value is None:
        return "0.00"
    return f"{Decimal(str(value)):,.2f}"


def _format_date(dt: object) -> str:
    """Format a datetime to YYYY-MM-DD, or return empty string if None."""
    if dt is None:
        return ""
    return str(dt)[:10]


class EmailService:
    """Service for sending transactional emails via SMTP."""

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: list[tuple[str, bytes, str]] | None = None,
    ) -> bool:
        """Send an email via SMTP.

        Args:
            to: Recipient email address.
            subject: Email subject line.
            html_body: HTML content of the email.
            attachments: Optional list of (filename, content_bytes, mime_type) tuples.

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

        if attachments:
            for filename, content, mime_type in attachments:
                maintype, _, subtype = mime_type.partition("/")
                msg.add_attachment(
                    content,
                    maintype=maintype,
                    subtype=subtype or "octet-stream",
                    filename=filename,
                )

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

    async def send_with_retry(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: list[tuple[str, bytes, str]] | None = None,
    ) -> bool:
        """Send an email, retrying transient SMTP/network failures.

        Returns False once ``EMAIL_MAX_ATTEMPTS`` attempts have failed.
        """
        import aiosmtplib

        attempts = max(1, settings.EMAIL_MAX_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                return await self.send_email(to, subject, html_body, attachments)
            except (aiosmtplib.SMTPException, OSError) as exc:
                logger.warning(
                    "Email to %s failed (attempt %d/%d): %s", to, attempt, attempts, exc
                )
                if attempt < attempts:
                    await asyncio.sleep(settings.EMAIL_RETRY_BACKOFF_SECONDS * attempt)
        return False

    async def send_settlement_invoice_email(
        self,
        invoice: SettlementInvoice,
        pdf_bytes: bytes | None = None,
    ) -> bool:
        """Email the commission invoice and bank instructions to the seller.

        Args:
            invoice: The settlement invoice to send.
            pdf_bytes: Optional PDF attachment bytes.

        Returns:
            True if sent successfully.
        """
        if not invoice.seller_email:
            logger.warning(
                "Seller %s has no email, skipping invoice %s",
                invoice.seller_id,
                invoice.invoice_number,
            )
            return False

        bank = invoice.bank_details or {}
        currency = escape(str(invoice.currency or ""))
        number = escape(str(invoice.invoice_number))
        title = escape(str(invoice.property_title or ""))
        bank_rows = [
            ("Bank", bank.get("bank_name") or settings.COMPANY_BANK_NAME),
            ("Account Name", bank.get("account_name", "")),
            ("BSB", bank.get("bsb", "")),
            ("Account Number", bank.get("account_number", "")),
            ("SWIFT", bank.get("swift")),
            ("Reference", bank.get("reference", "")),
        ]
        bank_table = "".join(
            f"<tr><td><strong>{label}:</strong></td><td>{escape(str(value))}</td></tr>"
            for label, value in bank_rows
            if value is not None
        )
        subject = f"Tax Invoice {invoice.invoice_number} - Settlement of {invoice.property_title}"

        html_body = (
            f"<h2>Tax Invoice {number}</h2>"
            f"<p>Dear {escape(str(invoice.seller_name or 'Seller'))},</p>"
            f"<p>Congratulations on the settlement of {title}. "
            f"Please find below the commission invoice for the sale.</p>"
            f"<table>"
            f"<tr><td><strong>Invoice #:</strong></td><td>{number}</td></tr>"
            f"<tr><td><strong>Sale Price:</strong></td>"
            f"<td>{_format_amount(invoice.property_value)} {currency}</td></tr>"
            f"<tr><td><strong>Commission ({invoice.commission_rate}%):</strong></td>"
            f"<td>{_format_amount(invoice.commission_amount)} {currency}</td></tr>"
            f"<tr><td><strong>GST:</strong></td>"
            f"<td>{_format_amount(invoice.gst_amount)} {currency}</td></tr>"
            f"<tr><td><strong>Total Due:</strong></td>"
            f"<td>{_format_amount(invoice.total_amount)} {currency}</td></tr>"
            f"<tr><td><strong>Due Date:</strong></td>"
            f"<td>{_format_date(invoice.due_date)}</td></tr>"
            f"</table>"
            f"<h3>Payment Instructions</h3>"
            f"<table>"
            f"{bank_table}"
            f"</table>"
            f"<p>Thank you for your business.</p>"
        )

        attachments: list[tuple[str, bytes, str]] | None = None
        if pdf_bytes is not None:
            attachments = [(f"invoice-{invoice.invoice_number}.pdf", pdf_bytes, "application/pdf")]

        return await self.send_with_retry(
            to=str(invoice.seller_email),
            subject=subject,
            html_body=html_body,
            attachments=attachments,
        )


def get_email_service() -> EmailService:
    return EmailService()
