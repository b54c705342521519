from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Query, Session

from estate_settlement.core.sorting import apply_order_by
from estate_settlement.models.settlement_invoice import (
    PaymentRecordStatus,
    SettlementInvoice,
    SettlementInvoiceStatus,
)


class SettlementInvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def _filtered(
        self,
        property_id: str | None = None,
        seller_id: str | None = None,
        agent_id: str | None = None,
        status: SettlementInvoiceStatus | None = None,
    ) -> Query:  # type: ignore[type-arg]
        query = self.db.query(SettlementInvoice)
        if property_id:
            query = query.filter(SettlementInvoice.property_id == property_id)
        if seller_id:
            query = query.filter(SettlementInvoice.seller_id == seller_id)
        if agent_id:
            query = query.filter(SettlementInvoice.agent_id == agent_id)
        if status:
            query = query.filter(SettlementInvoice.status == status.value)
        return query

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        property_id: str | None = None,
        seller_id: str | None = None,
        agent_id: str | None = None,
        status: SettlementInvoiceStatus | None = None,
        order_by: str | None = None,
    ) -> list[SettlementInvoice]:
        query = self._filtered(property_id, seller_id, agent_id, status)
        query = apply_order_by(query, SettlementInvoice, order_by)
        return query.offset(skip).limit(limit).all()

    def count(
        self,
        property_id: str | None = None,
        seller_id: str | None = None,
        agent_id: str | None = None,
        status: SettlementInvoiceStatus | None = None,
    ) -> int:
        return self._filtered(property_id, seller_id, agent_id, status).count()

    def get_by_id(self, invoice_id: UUID) -> SettlementInvoice | None:
        return self.db.query(SettlementInvoice).filter(SettlementInvoice.id == invoice_id).first()

    def create(self, **fields: Any) -> SettlementInvoice:
        fields.setdefault("amount_due", fields.get("total_amount"))
        invoice = SettlementInvoice(**fields)
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def record_payment_record(
        self, invoice: SettlementInvoice, payment_record_id: str | None
    ) -> SettlementInvoice:
        """Mark the backend payment record as created."""
        invoice.payment_record_id = payment_record_id  # type: ignore[assignment]
        status = PaymentRecordStatus.CREATED.value
        invoice.payment_record_status = status  # type: ignore[assignment]
        attempts = int(invoice.payment_record_attempts or 0) + 1
        invoice.payment_record_attempts = attempts  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def record_payment_record_failure(self, invoice: SettlementInvoice) -> SettlementInvoice:
        invoice.payment_record_status = PaymentRecordStatus.FAILED.value  # type: ignore[assignment]
        attempts = int(invoice.payment_record_attempts or 0) + 1
        invoice.payment_record_attempts = attempts  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def set_email_sent(self, invoice: SettlementInvoice, sent: bool) -> SettlementInvoice:
        invoice.email_sent = sent  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def get_failed_payment_records(self, max_attempts: int) -> list[SettlementInvoice]:
        """Invoices whose payment record failed and may still be retried."""
        return (
            self.db.query(SettlementInvoice)
            .filter(
                SettlementInvoice.payment_record_status == PaymentRecordStatus.FAILED.value,
                SettlementInvoice.payment_record_attempts < max_attempts,
            )
            .order_by(SettlementInvoice.created_at.asc())
            .all()
        )

    def get_unsent_emails(self) -> list[SettlementInvoice]:
        return (
            self.db.query(SettlementInvoice)
            .filter(
                SettlementInvoice.email_sent.is_(False),
                SettlementInvoice.seller_email.isnot(None),
                SettlementInvoice.status == SettlementInvoiceStatus.SENT.value,
            )
            .order_by(SettlementInvoice.created_at.asc())
            .all()
        )

    def mark_paid(self, invoice_id: UUID) -> SettlementInvoice | None:
        """Record full payment of an invoice."""
        invoice = self.get_by_id(invoice_id)
        if not invoice:
            return None
        if invoice.status == SettlementInvoiceStatus.PAID.value:
            raise ValueError("Invoice is already paid")

        invoice.status = SettlementInvoiceStatus.PAID.value  # type: ignore[assignment]
        invoice.amount_paid = Decimal(str(invoice.total_amount))  # type: ignore[assignment]
        invoice.amount_due = Decimal(0)  # type: ignore[assignment]
        invoice.paid_at = datetime.now(UTC)  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice
