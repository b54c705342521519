from estate_settlement.models.settlement_invoice import (
    PaymentRecordStatus,
    SettlementInvoice,
    SettlementInvoiceStatus,
)
from estate_settlement.models.settlement_run import SettlementRun, SettlementState, StepOutcome

__all__ = [
    "PaymentRecordStatus",
    "SettlementInvoice",
    "SettlementInvoiceStatus",
    "SettlementRun",
    "SettlementState",
    "StepOutcome",
]
