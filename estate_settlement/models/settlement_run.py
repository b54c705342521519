"""Settlement run model: one record per agent-triggered settlement."""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, String, func

from estate_settlement.core.database import Base
from estate_settlement.models.shared import UUIDType, generate_uuid


class SettlementState(str, Enum):
    IDLE = "idle"
    RESOLVING_BUYER = "resolving-buyer"
    AWAITING_BUYER_SELECTION = "awaiting-buyer-selection"
    UPDATING_STATUS = "updating-status"
    GENERATING_INVOICE = "generating-invoice"
    NOTIFYING_SELLER = "notifying-seller"
    DONE = "done"
    ERROR_NOTIFIED = "error-notified"


class StepOutcome(str, Enum):
    SUCCESS = "success"
    SOFT_FAIL = "soft_fail"
    HARD_FAIL = "hard_fail"


class SettlementRun(Base):
    """Tracks the per-step outcome of a settlement pipeline.

    The property status update is committed on the backend independently of
    the later steps, so a run can end in ``error-notified`` with a settled
    property and no invoice.
    """

    __tablename__ = "settlement_runs"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    property_id = Column(String(64), nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    agent_name = Column(String(255), nullable=True)
    requested_status = Column(String(50), nullable=False)
    buyer_id = Column(String(64), nullable=True)
    state = Column(String(50), nullable=False, default=SettlementState.IDLE.value)

    buyers = Column(JSON, nullable=False, default=list)
    details = Column(JSON, nullable=True)
    steps = Column(JSON, nullable=False, default=list)
    toasts = Column(JSON, nullable=False, default=list)

    invoice_id = Column(UUIDType, nullable=True)
    platform_invoice = Column(JSON, nullable=True)
    needs_manual_followup = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
