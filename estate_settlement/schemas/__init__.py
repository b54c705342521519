from estate_settlement.schemas.message import MessageCreate
from estate_settlement.schemas.property import Buyer, PropertyAssignment, SellerInfo
from estate_settlement.schemas.settlement import (
    BuyerSelectionRequest,
    SettlementRunResponse,
    StatusChangeRequest,
    StepResult,
    Toast,
)
from estate_settlement.schemas.settlement_invoice import (
    GenerateSettlementData,
    GenerateSettlementResponse,
    PaymentInstructions,
    SettlementInvoiceRequest,
    SettlementInvoiceResponse,
)

__all__ = [
    "Buyer",
    "BuyerSelectionRequest",
    "GenerateSettlementData",
    "GenerateSettlementResponse",
    "MessageCreate",
    "PaymentInstructions",
    "PropertyAssignment",
    "SellerInfo",
    "SettlementInvoiceRequest",
    "SettlementInvoiceResponse",
    "SettlementRunResponse",
    "StatusChangeRequest",
    "StepResult",
    "Toast",
]
