"""Composes and sends the settlement message a seller receives from their agent."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from estate_settlement.schemas.message import MessageCreate
from estate_settlement.schemas.property import PropertyAssignment, SellerInfo
from estate_settlement.schemas.settlement import Toast
from estate_settlement.schemas.settlement_invoice import GenerateSettlementData
from estate_settlement.services.backend_client import BackendClient, BackendError

logger = logging.getLogger(__name__)

SETTLEMENT_MESSAGE_TYPE = "settlement"

# Legacy messages carry the invoice number only inside the body
_INVOICE_NUMBER_RE = re.compile(r"Invoice Number: (INV-\d+-\d+)")

SELLER_UNRESOLVED_MESSAGE = (
    "Property settled successfully, but could not identify the seller. "
    "Please notify the seller manually about the settlement completion."
)
DELIVERY_FAILED_MESSAGE = (
    "Property settled successfully, but could not send notification to seller. "
    "Please contact them manually."
)


def _money(value: object) -> str:
    return f"A${Decimal(str(value)):,.2f}"


def _long_date(value: datetime) -> str:
    return f"{value.day} {value:%B %Y}"


def _short_date(value: datetime) -> str:
    return f"{value:%d/%m/%Y}"


def resolve_seller(
    assignment: PropertyAssignment | None,
    property_details: dict[str, Any] | None = None,
) -> SellerInfo | None:
    """Find the seller of a property.

    The seller embedded on the agent's cached assignment wins, then the seller
    on the backend property record. Returns None when neither names one.
    """
    if assignment is not None and assignment.seller is not None and assignment.seller.id:
        return assignment.seller
    if property_details:
        seller = property_details.get("seller")
        if isinstance(seller, dict):
            info = SellerInfo.model_validate(seller)
            if info.id:
                return info
    return None


def compose_settlement_message(
    property_title: str,
    agent_name: str,
    settled_on: datetime,
    invoice_data: GenerateSettlementData | None = None,
) -> str:
    settled = _long_date(settled_on)
    message = (
        f'Congratulations! Your property "{property_title}" has been successfully settled '
        f"on {settled}.\n\n"
        "This means the sale is now complete and ownership has been officially transferred "
        "to the buyer. All necessary documents have been processed and the transaction "
        "is finalized."
    )

    if invoice_data is not None:
        invoice = invoice_data.invoice
        bank = invoice_data.payment_instructions
        message += (
            "\n\nCOMMISSION INVOICE DETAILS:\n"
            f"• Invoice Number: {invoice.invoice_number}\n"
            f"• Commission Amount: {_money(invoice.commission_amount)}\n"
            f"• GST (10%): {_money(invoice.gst_amount)}\n"
            f"• Total Amount Due: {_money(invoice.total_amount)}\n"
            f"• Due Date: {_short_date(invoice.due_date)}"
        )
        message += (
            "\n\nPAYMENT INSTRUCTIONS:\n"
            f"• Bank: {bank.bank_name}\n"
            f"• Account Name: {bank.account_name}\n"
            f"• BSB: {bank.bsb}\n"
            f"• Account Number: {bank.account_number}\n"
            f"• Payment Reference: {bank.reference}\n\n"
            "The tax invoice has been sent to your registered email address and is also "
            "available in your seller account dashboard."
        )
    else:
        message += (
            "\n\nKey details:\n"
            f"• Property: {property_title}\n"
            f"• Settlement Date: {settled}\n"
            "• Status: Completed\n"
            "• Commission Invoice: Being processed"
        )

    message += (
        "\n\nThank you for trusting me with the sale of your property. If you have any "
        "questions about the settlement process, commission invoice, or need copies of any "
        "documents, please don't hesitate to reach out.\n\n"
        f"Best regards,\n{agent_name}"
    )
    return message


def extract_invoice_reference(message: dict[str, Any]) -> str | None:
    """Return the invoice number a message refers to, if any."""
    for key in ("invoiceNumber", "invoice_number"):
        if message.get(key):
            return str(message[key])
    text = message.get("messageText") or message.get("message_text") or ""
    match = _INVOICE_NUMBER_RE.search(str(text))
    return match.group(1) if match else None


@dataclass
class NotificationOutcome:
    sent: bool
    toast: Toast
    seller: SellerInfo | None = None
    message_id: str | None = None

    @property
    def seller_unresolved(self) -> bool:
        return self.seller is None


class SellerNotificationService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def notify_seller(
        self,
        *,
        property_id: str,
        property_title: str,
        agent_id: str,
        agent_name: str | None,
        seller: SellerInfo | None,
        invoice_data: GenerateSettlementData | None = None,
        settled_on: datetime | None = None,
    ) -> NotificationOutcome:
        """Send the settlement message; failures degrade to a warning toast."""
        if seller is None or not seller.id:
            logger.warning(
                "No seller found for property %s, settlement message not sent", property_id
            )
            return NotificationOutcome(
                sent=False,
                toast=Toast(
                    type="warning",
                    title="Notification Warning",
                    message=SELLER_UNRESOLVED_MESSAGE,
                ),
            )

        text = compose_settlement_message(
            property_title,
            agent_name or "Your Agent",
            settled_on or datetime.now(UTC),
            invoice_data,
        )
        payload = MessageCreate(
            sender_id=agent_id,
            sender_role="agent",
            recipient_id=seller.id,
            recipient_role="seller",
            message_text=text,
            message_type=SETTLEMENT_MESSAGE_TYPE,
            property_id=property_id,
            invoice_id=str(invoice_data.invoice.id) if invoice_data else None,
            invoice_number=invoice_data.invoice.invoice_number if invoice_data else None,
        ).model_dump(by_alias=True, exclude_none=True)

        try:
            result = await self.backend.send_message(payload)
        except BackendError as exc:
            logger.warning("Settlement message to seller %s failed: %s", seller.id, exc)
            return NotificationOutcome(
                sent=False,
                seller=seller,
                toast=Toast(
                    type="warning",
                    title="Notification Warning",
                    message=DELIVERY_FAILED_MESSAGE,
                ),
            )

        data = result.get("data") if isinstance(result.get("data"), dict) else {}
        message_id = data.get("_id") or data.get("id")
        logger.info("Settlement message sent to seller %s for property %s", seller.id, property_id)
        return NotificationOutcome(
            sent=True,
            seller=seller,
            message_id=str(message_id) if message_id else None,
            toast=Toast(
                type="success",
                title="Settlement Notification Sent",
                message=f"Settlement confirmation message sent to {seller.name or 'the seller'}.",
            ),
        )
