"""Session storage for the signed-in operator.

Stores the session in ~/.nexus/session.json with restrictive file permissions.

Note: Tokens are stored in plaintext and protected by file permissions (0o600).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Refresh this many seconds before the provider's expiry.
EXPIRY_BUFFER_SECONDS = 60


@dataclass
class SessionData:
    """Authenticated session plus the actor profile it belongs to."""

    access_token: str
    refresh_token: str
    expires_at: int  # Unix timestamp
    user_id: str
    email: str | None = None
    user_name: str | None = None
    organization_id: str | None = None
    role: str | None = None

    @property
    def is_expired(self) -> bool:
        return datetime.now().timestamp() > (self.expires_at - EXPIRY_BUFFER_SECONDS)

    @property
    def expires_in_seconds(self) -> int:
        return max(0, int(self.expires_at - datetime.now().timestamp()))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionData":
        return cls(**data)


class SessionStorage:
    """File-backed storage for a single session.

    Usage:
        storage = SessionStorage()
        storage.save(session)
        session = storage.load()  # None when signed out or unreadable
    """

    def __init__(self, path: Path | str | None = None):
        if path is None:
            from ..config import settings

            path = settings.session_path
        self.path = Path(path)

    def load(self) -> SessionData | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return SessionData.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, OSError) as e:
            logger.warning("Could not load session: %s", e)
            return None

    def save(self, session: SessionData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(session.to_dict(), indent=2), encoding="utf-8")
        os.chmod(self.path, 0o600)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
