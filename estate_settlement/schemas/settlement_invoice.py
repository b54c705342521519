"""Schemas for settlement invoice generation and retrieval."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from estate_settlement.models.settlement_invoice import SettlementInvoice
from estate_settlement.schemas.common import CamelModel, Money


class SettlementInvoiceRequest(CamelModel):
    """Body of ``POST /api/invoices/generate-settlement``.

    Required fields are optional here so that missing ones can be reported
    together as a 400 rather than a pydantic 422.
    """

    property_id: str | None = None
    property_title: str | None = None
    property_price: Decimal | None = None
    property_address: str | None = None
    seller_id: str | None = None
    seller_name: str | None = None
    seller_email: str | None = None
    agent_id: str | None = None
    agent_name: str | None = None
    agent_email: str | None = None
    settlement_date: datetime | None = None

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if not self.property_id:
            missing.append("propertyId")
        if not self.property_price:
            missing.append("propertyPrice")
        if not self.seller_id:
            missing.append("sellerId")
        return missing


class BankDetails(CamelModel):
    bank_name: str | None = None
    account_name: str
    bsb: str
    account_number: str
    reference: str
    swift: str | None = None


class PaymentInstructions(CamelModel):
    bank_name: str
    account_name: str
    bsb: str
    account_number: str
    reference: str
    swift: str | None = None
    amount: Money
    due_date: datetime


class PropertySummary(CamelModel):
    id: str
    title: str | None = None
    address: str | None = None


class PartySummary(CamelModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None


class SettlementInvoiceResponse(CamelModel):
    id: UUID
    invoice_number: str
    property: PropertySummary
    seller: PartySummary
    agent: PartySummary
    invoice_date: datetime
    due_date: datetime
    settlement_date: datetime | None = None
    property_value: Money
    commission_rate: Money
    commission_amount: Money
    gst_amount: Money
    total_amount: Money
    amount_paid: Money
    amount_due: Money
    currency: str
    status: str
    is_overdue: bool
    bank_details: BankDetails
    payment_record_id: str | None = None
    payment_record_status: str
    email_sent: bool
    paid_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, invoice: SettlementInvoice) -> SettlementInvoiceResponse:
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            property=PropertySummary(
                id=invoice.property_id,
                title=invoice.property_title,
                address=invoice.property_address,
            ),
            seller=PartySummary(
                id=invoice.seller_id, name=invoice.seller_name, email=invoice.seller_email
            ),
            agent=PartySummary(
                id=invoice.agent_id, name=invoice.agent_name, email=invoice.agent_email
            ),
            invoice_date=invoice.invoice_date,
            due_date=invoice.due_date,
            settlement_date=invoice.settlement_date,
            property_value=invoice.property_value,
            commission_rate=invoice.commission_rate,
            commission_amount=invoice.commission_amount,
            gst_amount=invoice.gst_amount,
            total_amount=invoice.total_amount,
            amount_paid=invoice.amount_paid,
            amount_due=invoice.amount_due,
            currency=invoice.currency,
            status=invoice.status,
            is_overdue=invoice.is_overdue,
            bank_details=BankDetails.model_validate(invoice.bank_details),
            payment_record_id=invoice.payment_record_id,
            payment_record_status=invoice.payment_record_status,
            email_sent=bool(invoice.email_sent),
            paid_at=invoice.paid_at,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
        )


class GenerateSettlementData(CamelModel):
    invoice: SettlementInvoiceResponse
    payment_record: dict[str, Any] | None = None
    email_sent: bool
    download_url: str
    payment_instructions: PaymentInstructions


class GenerateSettlementResponse(CamelModel):
    success: bool = True
    message: str
    data: GenerateSettlementData


class MissingFieldsResponse(CamelModel):
    success: bool = False
    message: str
    missing_fields: list[str]
