"""Generates seller-facing commission invoices at property settlement."""

from __future__ import annotations

import logging
import random
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from estate_settlement.core.config import settings
from estate_settlement.models.settlement_invoice import SettlementInvoice
from estate_settlement.repositories.settlement_invoice_repository import (
    SettlementInvoiceRepository,
)
from estate_settlement.schemas.settlement_invoice import (
    GenerateSettlementData,
    PaymentInstructions,
    SettlementInvoiceRequest,
    SettlementInvoiceResponse,
)
from estate_settlement.services.backend_client import BackendClient, BackendError
from estate_settlement.services.commission import (
    build_payment_reference,
    calculate_commission,
    calculate_due_date,
    generate_invoice_number,
)
from estate_settlement.services.email_service import EmailService
from estate_settlement.services.payment_record_service import (
    PaymentRecordService,
    payment_record_id,
)

logger = logging.getLogger(__name__)


class MissingFieldsError(ValueError):
    """Raised when a settlement request lacks required fields."""

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Missing required fields: {', '.join(fields)}")


def download_url(invoice: SettlementInvoice) -> str:
    return f"/api/invoices/{invoice.id}/pdf"


def payment_instructions(invoice: SettlementInvoice) -> PaymentInstructions:
    bank = invoice.bank_details or {}
    return PaymentInstructions(
        bank_name=bank.get("bank_name", settings.COMPANY_BANK_NAME),
        account_name=bank.get("account_name", settings.COMPANY_ACCOUNT_NAME),
        bsb=bank.get("bsb", settings.COMPANY_BSB),
        account_number=bank.get("account_number", settings.COMPANY_ACCOUNT_NUMBER),
        reference=bank.get("reference", invoice.invoice_number),
        swift=bank.get("swift"),
        amount=invoice.total_amount,
        due_date=invoice.due_date,
    )


def build_generation_result(
    invoice: SettlementInvoice,
    payment_record: dict[str, Any] | None,
) -> GenerateSettlementData:
    return GenerateSettlementData(
        invoice=SettlementInvoiceResponse.from_model(invoice),
        payment_record=payment_record,
        email_sent=bool(invoice.email_sent),
        download_url=download_url(invoice),
        payment_instructions=payment_instructions(invoice),
    )


class SettlementInvoiceService:
    """Computes, stores and dispatches settlement commission invoices.

    Only the invoice itself is mandatory: the backend payment record and the
    seller email are best-effort and their outcome is recorded on the invoice
    for later retry.
    """

    def __init__(
        self,
        db: Session,
        backend: BackendClient,
        email_service: EmailService | None = None,
        rng: random.Random | None = None,
    ):
        self.db = db
        self.repo = SettlementInvoiceRepository(db)
        self.payment_records = PaymentRecordService(backend)
        self.email_service = email_service or EmailService()
        self.rng = rng

    async def generate(
        self,
        request: SettlementInvoiceRequest,
        now: datetime | None = None,
    ) -> GenerateSettlementData:
        """Generate the invoice for a settlement request.

        Raises:
            MissingFieldsError: if propertyId, propertyPrice or sellerId is missing.
            ValueError: if the property price is negative.
        """
        missing = request.missing_fields()
        if missing:
            raise MissingFieldsError(missing)

        breakdown = calculate_commission(request.property_price)  # type: ignore[arg-type]
        invoice_date = now or datetime.now(UTC)
        invoice_number = generate_invoice_number(invoice_date, self.rng)

        invoice = self.repo.create(
            invoice_number=invoice_number,
            property_id=request.property_id,
            property_title=request.property_title,
            property_address=request.property_address,
            seller_id=request.seller_id,
            seller_name=request.seller_name,
            seller_email=request.seller_email,
            agent_id=request.agent_id,
            agent_name=request.agent_name,
            agent_email=request.agent_email,
            invoice_date=invoice_date,
            due_date=calculate_due_date(invoice_date),
            settlement_date=request.settlement_date,
            property_value=breakdown.property_value,
            commission_rate=breakdown.commission_rate,
            commission_amount=breakdown.commission_amount,
            gst_amount=breakdown.gst_amount,
            total_amount=breakdown.total_amount,
            currency=settings.SETTLEMENT_CURRENCY,
            bank_details={
                "bank_name": settings.COMPANY_BANK_NAME,
                "account_name": settings.COMPANY_ACCOUNT_NAME,
                "bsb": settings.COMPANY_BSB,
                "account_number": settings.COMPANY_ACCOUNT_NUMBER,
                "swift": settings.COMPANY_SWIFT,
                "reference": build_payment_reference(invoice_number, str(request.seller_id)),
            },
        )
        logger.info(
            "Settlement invoice %s generated for property %s: total %s %s",
            invoice.invoice_number,
            invoice.property_id,
            invoice.total_amount,
            invoice.currency,
        )

        payment_record = await self.create_payment_record(invoice)

        email_sent = await self.email_service.send_settlement_invoice_email(invoice)
        self.repo.set_email_sent(invoice, email_sent)
        if not email_sent:
            logger.warning("Invoice email for %s was not delivered", invoice.invoice_number)

        return build_generation_result(invoice, payment_record)

    async def create_payment_record(self, invoice: SettlementInvoice) -> dict[str, Any] | None:
        """Create the backend payment record, recording failure instead of raising."""
        try:
            record = await self.payment_records.create_for_invoice(invoice)
        except BackendError as exc:
            logger.warning(
                "Payment record for invoice %s not created, continuing without it: %s",
                invoice.invoice_number,
                exc,
            )
            self.repo.record_payment_record_failure(invoice)
            return None
        self.repo.record_payment_record(invoice, payment_record_id(record))
        return record
