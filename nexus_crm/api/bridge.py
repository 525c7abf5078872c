"""Messaging bridge client - WhatsApp and SMTP relay on the operator's machine.

Requests go to the proxy endpoint first and fall back to the bridge's direct
address; both attempts use short timeouts so an offline bridge never stalls
the caller for long.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

OFFLINE_STATUS = {"whatsapp": "OFFLINE", "smtp": "OFFLINE", "server": "OFFLINE"}


class BridgeUnavailable(Exception):
    """Raised when neither the proxy nor the direct bridge answered."""

    def __init__(self, message: str = "Bridge disconnected"):
        super().__init__(message)


class BridgeClient:
    """Narrow client for the local messaging bridge."""

    def __init__(
        self,
        proxy_url: str,
        direct_url: str,
        timeout: float = 3.0,
        direct_timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.proxy_url = proxy_url.rstrip("/")
        self.direct_url = direct_url.rstrip("/")
        self.timeout = timeout
        self.direct_timeout = direct_timeout
        self._transport = transport

    async def _attempt(
        self, base_url: str, timeout: float, method: str, endpoint: str, body: dict | None
    ) -> dict[str, Any] | None:
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            resp = await client.request(method, f"{base_url}{endpoint}", json=body)
        if resp.is_success:
            return resp.json()
        logger.debug("Bridge %s%s answered HTTP %s", base_url, endpoint, resp.status_code)
        return None

    async def _request(self, method: str, endpoint: str, body: dict | None = None) -> dict[str, Any]:
        try:
            result = await self._attempt(self.proxy_url, self.timeout, method, endpoint, body)
            if result is not None:
                return result
        except httpx.HTTPError as exc:
            logger.debug("Bridge proxy unreachable: %s", exc)

        try:
            result = await self._attempt(self.direct_url, self.direct_timeout, method, endpoint, body)
        except httpx.HTTPError as exc:
            raise BridgeUnavailable() from exc
        if result is None:
            raise BridgeUnavailable()
        return result

    async def status(self) -> dict[str, Any]:
        """Bridge service status; reports everything offline instead of raising."""
        try:
            return await self._request("GET", f"/status?t={int(time.time() * 1000)}")
        except BridgeUnavailable:
            return dict(OFFLINE_STATUS)

    async def send_whatsapp(self, phone: str, message: str) -> dict[str, Any]:
        return await self._request("POST", "/send-whatsapp", {"number": phone, "message": message})

    async def send_email(self, to: str, subject: str, html: str, from_name: str = "Nexus CRM") -> dict[str, Any]:
        return await self._request(
            "POST",
            "/send-email",
            {"to": to, "subject": subject, "html": html, "fromName": from_name},
        )
