"""Auth provider client (GoTrue-style password and refresh-token grants)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from .storage import SessionData


class AuthError(Exception):
    """Authentication-related error."""

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


def session_from_token_response(data: dict[str, Any]) -> SessionData:
    """Build a SessionData from a token grant response."""
    user = data.get("user") or {}
    meta = {**(user.get("app_metadata") or {}), **(user.get("user_metadata") or {})}
    expires_at = data.get("expires_at")
    if not isinstance(expires_at, int):
        expires_at = int(datetime.now().timestamp()) + int(data.get("expires_in") or 3600)

    return SessionData(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token", ""),
        expires_at=expires_at,
        user_id=str(user.get("id", "")),
        email=user.get("email"),
        user_name=meta.get("name") or meta.get("full_name") or user.get("email"),
        organization_id=meta.get("organization_id") or meta.get("organizationId"),
        role=meta.get("role"),
    )


class AuthClient:
    """Narrow client for the remote auth provider."""

    AUTH_PATH = "/auth/v1"

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = url.rstrip("/") + self.AUTH_PATH
        self.anon_key = anon_key
        self.timeout = timeout
        self._transport = transport

    async def _token_grant(self, grant_type: str, body: dict[str, Any]) -> SessionData:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/token",
                params={"grant_type": grant_type},
                json=body,
                headers={"apikey": self.anon_key},
            )

        if response.status_code != 200:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {"raw_response": response.text[:500]}
            raise AuthError(
                error_data.get("error_description")
                or error_data.get("msg")
                or f"Token grant failed: HTTP {response.status_code}",
                error_code=error_data.get("error") or error_data.get("error_code"),
                details=error_data,
            )

        return session_from_token_response(response.json())

    async def sign_in_with_password(self, email: str, password: str) -> SessionData:
        return await self._token_grant("password", {"email": email, "password": password})

    async def refresh(self, refresh_token: str) -> SessionData:
        if not refresh_token:
            raise AuthError("No refresh token available", error_code="no_refresh_token")
        return await self._token_grant("refresh_token", {"refresh_token": refresh_token})
