"""Bulk dispatch progress schema."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

DispatchState = Literal["pending", "running", "waiting", "completed", "cancelled"]


class DispatchProgress(BaseModel):
    state: DispatchState = "pending"
    current_index: int = 0
    total: int = 0
    sent: int = 0
    failed: int = 0
    status_text: str = ""
    next_delay_seconds: float | None = None

    @property
    def finished(self) -> bool:
        return self.state in ("completed", "cancelled")
