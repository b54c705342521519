import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from estate_settlement.schemas.message import MessageCreate
from estate_settlement.services.backend_client import (
    BackendClient,
    BackendError,
    get_backend_client,
)
from estate_settlement.services.message_service import MessageNotAllowedError, MessageService

logger = logging.getLogger(__name__)

router = APIRouter()

CONNECTION_FAILED = "Failed to connect to backend server"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _relay_backend_error(exc: BackendError) -> JSONResponse:
    """Pass the backend's own status and body through to the caller."""
    if exc.status_code is None:
        logger.error("Messaging backend unreachable: %s", exc)
        return _error(503, CONNECTION_FAILED)
    if isinstance(exc.payload, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.payload)
    return _error(exc.status_code, exc.message)


@router.post(
    "",
    summary="Send message",
    responses={
        400: {"description": "Sender ID and message text are required"},
        403: {"description": "Direct buyer/seller messaging is not allowed"},
        503: {"description": "Backend unreachable"},
    },
)
async def send_message(
    data: MessageCreate,
    backend: BackendClient = Depends(get_backend_client),
) -> Any:
    """Relay a conversation message to the marketplace backend."""
    try:
        return await MessageService(backend).send(data)
    except MessageNotAllowedError as e:
        return _error(403, str(e))
    except ValueError as e:
        return _error(400, str(e))
    except BackendError as e:
        return _relay_backend_error(e)


@router.get(
    "",
    summary="List conversations",
    responses={
        400: {"description": "User ID is required"},
        503: {"description": "Backend unreachable"},
    },
)
async def list_messages(
    user_id: str = Query(default="", alias="userId"),
    user_role: str | None = Query(default=None, alias="userRole"),
    backend: BackendClient = Depends(get_backend_client),
) -> Any:
    try:
        return await MessageService(backend).list_conversations(user_id, user_role)
    except ValueError as e:
        return _error(400, str(e))
    except BackendError as e:
        return _relay_backend_error(e)
