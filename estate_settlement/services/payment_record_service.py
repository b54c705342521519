"""Mirrors settlement invoices into the backend payment-records collection."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from estate_settlement.core.config import settings
from estate_settlement.models.settlement_invoice import PaymentRecordStatus, SettlementInvoice
from estate_settlement.services.backend_client import BackendClient, BackendError

logger = logging.getLogger(__name__)

DEFAULT_PROPERTY_ADDRESS = "Property Address"


def _iso(value: object) -> str | None:
    if value is None:
        return None
    isoformat = getattr(value, "isoformat", None)
    return isoformat() if isoformat else str(value)


def build_payment_record_payload(invoice: SettlementInvoice) -> dict[str, Any]:
    """Denormalised point-in-time snapshot of the invoice and its parties."""
    total = float(invoice.total_amount)
    return {
        "seller": invoice.seller_id,
        "agent": invoice.agent_id,
        "property": invoice.property_id,
        "invoice": str(invoice.id),
        "amount": total,
        "currency": invoice.currency,
        "status": PaymentRecordStatus.PENDING.value,
        "invoiceDetails": {
            "invoiceNumber": invoice.invoice_number,
            "commissionAmount": float(invoice.commission_amount),
            "gstAmount": float(invoice.gst_amount),
            "totalAmount": total,
            "dueDate": _iso(invoice.due_date),
        },
        "propertyDetails": {
            "title": invoice.property_title,
            "address": invoice.property_address or DEFAULT_PROPERTY_ADDRESS,
            "price": float(invoice.property_value),
        },
        "sellerDetails": {
            "name": invoice.seller_name,
            "email": invoice.seller_email,
        },
        "agentDetails": {
            "name": invoice.agent_name,
            "email": invoice.agent_email,
        },
    }


class PaymentRecordService:
    """Creates backend payment records with a bounded retry."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def create_for_invoice(self, invoice: SettlementInvoice) -> dict[str, Any]:
        """POST the payment record, retrying with linear backoff.

        Raises:
            BackendError: when every attempt failed.
        """
        payload = build_payment_record_payload(invoice)
        attempts = max(1, settings.PAYMENT_RECORD_MAX_ATTEMPTS)
        attempt = 1
        while True:
            try:
                record = await self.backend.create_payment_record(payload)
            except BackendError as exc:
                logger.warning(
                    "Payment record attempt %d/%d for invoice %s failed: %s",
                    attempt,
                    attempts,
                    invoice.invoice_number,
                    exc,
                )
                if attempt >= attempts:
                    raise
                await asyncio.sleep(settings.PAYMENT_RECORD_RETRY_BACKOFF_SECONDS * attempt)
                attempt += 1
                continue

            logger.info(
                "Payment record %s created for invoice %s",
                payment_record_id(record),
                invoice.invoice_number,
            )
            return record


def payment_record_id(record: dict[str, Any]) -> str | None:
    value = record.get("_id") or record.get("id")
    return str(value) if value is not None else None
