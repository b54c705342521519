"""Schemas for messages relayed to the marketplace messaging API."""

from estate_settlement.schemas.common import CamelModel


class MessageCreate(CamelModel):
    conversation_id: str | None = None
    sender_id: str | None = None
    sender_role: str | None = None
    recipient_id: str | None = None
    recipient_role: str | None = None
    message_text: str | None = None
    message_type: str = "text"
    property_id: str | None = None
    # Structured settlement reference, so clients need not parse the body
    invoice_id: str | None = None
    invoice_number: str | None = None
