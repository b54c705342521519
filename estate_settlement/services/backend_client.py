"""HTTP client for the marketplace backend (properties, buyers, messages, payments)."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from fastapi import Request

from estate_settlement.core.config import settings

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A backend call failed at the network level or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


def _error_message(response: httpx.Response) -> str:
    """Prefer the server-provided ``message``/``error`` over the status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


class BackendClient:
    """Thin async wrapper over the marketplace backend REST API.

    ``base_url`` serves properties, buyers and messages; ``api_url`` serves the
    admin payment-records collection. The caller's ``Authorization`` header is
    relayed unchanged.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_url: str | None = None,
        authorization: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.backend_base_url).rstrip("/")
        self.api_url = (api_url or settings.api_base_url).rstrip("/")
        headers = {"Content-Type": "application/json"}
        if authorization:
            headers["Authorization"] = authorization
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=timeout if timeout is not None else settings.BACKEND_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Backend %s %s failed: %s", method, url, exc)
            raise BackendError(f"Failed to connect to backend: {exc}") from exc

        if not 200 <= response.status_code < 300:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            raise BackendError(
                _error_message(response),
                status_code=response.status_code,
                payload=payload,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    async def update_property_status(
        self, property_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """PATCH the sales status of a property."""
        result = await self._request(
            "PATCH", f"{self.base_url}/api/properties/{property_id}/status", json=payload
        )
        return result if isinstance(result, dict) else {}

    async def get_property_buyers(self, property_id: str) -> list[dict[str, Any]]:
        """Return interested buyers; an unsuccessful envelope counts as none."""
        result = await self._request("GET", f"{self.base_url}/api/properties/{property_id}/buyers")
        if not isinstance(result, dict) or not result.get("success"):
            return []
        return list(result.get("data") or [])

    async def get_property(self, property_id: str) -> dict[str, Any] | None:
        result = await self._request("GET", f"{self.base_url}/api/properties/{property_id}")
        if not isinstance(result, dict):
            return None
        return result.get("property") or result.get("data")

    async def get_agent_properties(self, agent_id: str) -> list[dict[str, Any]]:
        result = await self._request("GET", f"{self.api_url}/api/agent/{agent_id}/properties")
        if not isinstance(result, dict) or not result.get("success"):
            return []
        data = result.get("data") or []
        if isinstance(data, dict):
            data = data.get("properties") or []
        return list(data)

    async def create_payment_record(self, payload: dict[str, Any]) -> dict[str, Any]:
        result = await self._request(
            "POST", f"{self.api_url}/api/admin/payment-records", json=payload
        )
        if not isinstance(result, dict):
            return {}
        return result.get("data") or {}

    async def send_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        result = await self._request("POST", f"{self.base_url}/api/messages", json=payload)
        return result if isinstance(result, dict) else {"data": result}

    async def list_messages(self, user_id: str, user_role: str | None = None) -> dict[str, Any]:
        result = await self._request(
            "GET",
            f"{self.base_url}/api/messages",
            params={"userId": user_id, "userRole": user_role or ""},
        )
        return result if isinstance(result, dict) else {"data": result}


async def get_backend_client(request: Request) -> AsyncIterator[BackendClient]:
    """FastAPI dependency yielding a client bound to the caller's credentials."""
    client = BackendClient(authorization=request.headers.get("Authorization"))
    try:
        yield client
    finally:
        await client.aclose()
