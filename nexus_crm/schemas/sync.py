"""Reconciliation result schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class TableResult(BaseModel):
    table: str
    ok: bool
    count: int = 0
    error_kind: str | None = None
    error: str | None = None


class PullResult(BaseModel):
    skipped: bool = False
    tables: dict[str, TableResult] = {}
    synced_at: datetime | None = None

    @property
    def succeeded(self) -> list[str]:
        return [name for name, r in self.tables.items() if r.ok]

    @property
    def failed(self) -> list[str]:
        return [name for name, r in self.tables.items() if not r.ok]


class WriteOutcome(BaseModel):
    table: str
    entity_id: str | None = None
    ok: bool
    skipped: bool = False
    error_kind: str | None = None
    error: str | None = None
