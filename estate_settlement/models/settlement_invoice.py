"""Commission invoice issued to a seller when their property settles."""

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Numeric, String, func

from estate_settlement.core.database import Base
from estate_settlement.models.shared import UUIDType, generate_uuid


class SettlementInvoiceStatus(str, Enum):
    SENT = "sent"
    PAID = "paid"


class PaymentRecordStatus(str, Enum):
    """Outcome of mirroring the invoice into the backend payment records."""

    PENDING = "pending"
    CREATED = "created"
    FAILED = "failed"


class SettlementInvoice(Base):
    __tablename__ = "settlement_invoices"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    # Random daily suffix, so collisions are possible and tolerated
    invoice_number = Column(String(50), index=True, nullable=False)

    # Point-in-time snapshot of the parties
    property_id = Column(String(64), nullable=False, index=True)
    property_title = Column(String(255), nullable=True)
    property_address = Column(String(500), nullable=True)
    seller_id = Column(String(64), nullable=False, index=True)
    seller_name = Column(String(255), nullable=True)
    seller_email = Column(String(255), nullable=True)
    agent_id = Column(String(64), nullable=True, index=True)
    agent_name = Column(String(255), nullable=True)
    agent_email = Column(String(255), nullable=True)

    invoice_date = Column(DateTime(timezone=True), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)
    settlement_date = Column(DateTime(timezone=True), nullable=True)

    property_value = Column(Numeric(14, 2), nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=False)
    commission_amount = Column(Numeric(14, 2), nullable=False)
    gst_amount = Column(Numeric(14, 2), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    amount_paid = Column(Numeric(14, 2), nullable=False, default=0)
    amount_due = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="AUD")

    status = Column(String(20), nullable=False, default=SettlementInvoiceStatus.SENT.value)
    bank_details = Column(JSON, nullable=False, default=dict)

    payment_record_id = Column(String(64), nullable=True)
    payment_record_status = Column(
        String(20), nullable=False, default=PaymentRecordStatus.PENDING.value, index=True
    )
    payment_record_attempts = Column(Integer, nullable=False, default=0)
    email_sent = Column(Boolean, nullable=False, default=False)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_overdue(self) -> bool:
        if self.status == SettlementInvoiceStatus.PAID.value or self.due_date is None:
            return False
        due = self.due_date
        if due.tzinfo is None:
            due = due.replace(tzinfo=UTC)
        return bool(due < datetime.now(UTC))
