"""Relays conversation messages to the backend while enforcing who may talk to whom."""

from __future__ import annotations

import logging
from typing import Any

from estate_settlement.schemas.message import MessageCreate
from estate_settlement.services.backend_client import BackendClient

logger = logging.getLogger(__name__)

# Buyers and sellers only ever talk through an agent
ALLOWED_CONVERSATIONS = frozenset(
    {
        ("buyer", "agent"),
        ("agent", "buyer"),
        ("agent", "seller"),
        ("seller", "agent"),
        ("agent", "agent"),
    }
)


class MessageNotAllowedError(Exception):
    """Raised when two roles may not message each other directly."""


def is_conversation_allowed(sender_role: str | None, recipient_role: str | None) -> bool:
    return (sender_role, recipient_role) in ALLOWED_CONVERSATIONS


class MessageService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def send(self, message: MessageCreate) -> dict[str, Any]:
        """Validate and forward a message.

        Raises:
            ValueError: if the sender or message text is missing.
            MessageNotAllowedError: for a direct buyer/seller conversation.
            BackendError: if the backend rejects or cannot be reached.
        """
        if not message.sender_id or not message.message_text:
            raise ValueError("Sender ID and message text are required")
        if message.recipient_role and not is_conversation_allowed(
            message.sender_role, message.recipient_role
        ):
            raise MessageNotAllowedError(
                "Direct communication between buyers and sellers is not allowed. "
                "Please communicate through an agent."
            )

        payload = message.model_dump(by_alias=True, exclude_none=True)
        result = await self.backend.send_message(payload)
        logger.info(
            "Message from %s to %s relayed (type %s)",
            message.sender_id,
            message.recipient_id,
            message.message_type,
        )
        return result

    async def list_conversations(self, user_id: str, user_role: str | None) -> dict[str, Any]:
        if not user_id:
            raise ValueError("User ID is required")
        return await self.backend.list_messages(user_id, user_role)
