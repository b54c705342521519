from estate_settlement.repositories.settlement_invoice_repository import (
    SettlementInvoiceRepository,
)
from estate_settlement.repositories.settlement_run_repository import SettlementRunRepository

__all__ = [
    "SettlementInvoiceRepository",
    "SettlementRunRepository",
]
