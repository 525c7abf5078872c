"""Remote store client - typed wrapper for a PostgREST-style table API.

Only the four operations the reconciler needs are exposed: select-all,
select-with-count, upsert-by-id and delete-by-id. Error responses are turned
into ``RemoteStoreError`` carrying the store's machine-readable code so the
reconciler can classify them.

Usage:
    async with RemoteStoreClient(RemoteConfig(url, key), token_provider) as remote:
        rows = await remote.select_all("leads", filters={"organization_id": eq("org-1")})
        await remote.upsert("leads", {"id": "L-1", "name": "Acme"})
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

import httpx

TokenProvider = Callable[[], "str | None"]

_CONTENT_RANGE_TOTAL = re.compile(r"/(\d+)$")


def eq(value: Any) -> str:
    """PostgREST equality filter."""
    return f"eq.{value}"


class RemoteStoreError(Exception):
    """Structured error returned by the remote store."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.hint = hint

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "RemoteStoreError":
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return cls(resp.text or f"HTTP {resp.status_code}", status_code=resp.status_code)
        return cls(
            str(body.get("message") or body.get("error") or f"HTTP {resp.status_code}"),
            code=str(body["code"]) if body.get("code") is not None else None,
            status_code=resp.status_code,
            details=body.get("details"),
            hint=body.get("hint"),
        )

    def __str__(self) -> str:
        prefix = f"[{self.code}] " if self.code else ""
        return f"{prefix}{self.message}"


@dataclass
class RemoteConfig:
    """Remote store connection settings."""

    url: str
    anon_key: str
    timeout: float = 5.0


class RemoteStoreClient:
    """Table-level access to the remote store.

    The underlying ``httpx.AsyncClient`` is created lazily and reused until
    ``aclose()``; every request carries the current session's bearer token.
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        config: RemoteConfig,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._token_provider = token_provider
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RemoteStoreClient":
        self._ensure_client()
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.url.rstrip("/") + self.REST_PATH,
                timeout=self.config.timeout,
                transport=self._transport,
                headers={
                    "apikey": self.config.anon_key,
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        return {"Authorization": f"Bearer {token or self.config.anon_key}"}

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = self._ensure_client()
        resp = await client.request(
            method,
            f"/{table}",
            params=params,
            json=json,
            headers={**self._auth_headers(), **(headers or {})},
        )
        if resp.status_code >= 400:
            raise RemoteStoreError.from_response(resp)
        return resp

    @staticmethod
    def _rows(resp: httpx.Response) -> list[dict[str, Any]]:
        try:
            data = resp.json()
        except ValueError:
            raise RemoteStoreError(
                "Response body is not JSON",
                status_code=resp.status_code,
                details=resp.text[:200],
            ) from None
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    @staticmethod
    def _select_params(
        filters: dict[str, str] | None,
        order: str | None,
        limit: int | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"select": "*"}
        if filters:
            params.update(filters)
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        return params

    async def select_all(
        self,
        table: str,
        *,
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every row of a table (optionally filtered)."""
        resp = await self._request("GET", table, params=self._select_params(filters, order, limit))
        return self._rows(resp)

    async def select_with_count(
        self,
        table: str,
        *,
        filters: dict[str, str] | None = None,
        limit: int | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Fetch rows plus the exact total reported in ``Content-Range``."""
        resp = await self._request(
            "GET",
            table,
            params=self._select_params(filters, None, limit),
            headers={"Prefer": "count=exact"},
        )
        rows = self._rows(resp)
        total = len(rows)
        match = _CONTENT_RANGE_TOTAL.search(resp.headers.get("content-range", ""))
        if match:
            total = int(match.group(1))
        return rows, total

    async def upsert(self, table: str, payload: dict[str, Any]) -> None:
        """Insert or merge a row by primary key."""
        await self._request(
            "POST",
            table,
            params={"on_conflict": "id"},
            json=payload,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def delete(self, table: str, entity_id: str) -> None:
        await self._request("DELETE", table, params={"id": eq(entity_id)})
