"""Snapshot persistence for local collections.

Each collection is stored whole under one key. Reads happen once at startup;
every mutation rewrites the affected collection's snapshot.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models.snapshot import CollectionSnapshot

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """Reads and writes full-collection snapshots through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def load(self, key: str) -> list[dict[str, Any]] | None:
        """Return the stored collection, or None when missing or unreadable."""
        try:
            with self._session_factory() as db:
                row = db.get(CollectionSnapshot, key)
                raw = row.payload if row else None
        except SQLAlchemyError as exc:
            logger.warning("Local storage unavailable reading %s: %s", key, exc)
            return None

        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Corrupt snapshot for %s; falling back to defaults", key)
            return None
        if not isinstance(data, list):
            logger.warning("Snapshot for %s is not a list; falling back to defaults", key)
            return None
        return [item for item in data if isinstance(item, dict)]

    def save(self, key: str, items: list[dict[str, Any]]) -> bool:
        """Persist the whole collection. Returns False when storage is unavailable."""
        payload = json.dumps(items, ensure_ascii=False, default=str)
        try:
            with self._session_factory() as db:
                row = db.get(CollectionSnapshot, key)
                if row:
                    row.payload = payload
                else:
                    db.add(CollectionSnapshot(key=key, payload=payload))
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to persist snapshot %s: %s", key, exc)
            return False
        return True
