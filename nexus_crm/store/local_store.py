"""Local store - the always-available copy of every entity collection."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from .collections import (
    ENTITY_TYPES,
    PREPEND_TYPES,
    default_collection,
    storage_key,
    validate_entity_type,
)
from .snapshot_repo import SnapshotRepository

logger = logging.getLogger(__name__)

TENANT_FIELD = "organizationId"


class LocalStore:
    """In-memory collections mirrored to snapshot storage.

    Mutations are synchronous: the in-memory collection changes and the whole
    collection is persisted before the call returns. Reads return copies so
    callers cannot mutate collections behind the store's back.
    """

    def __init__(self, repository: SnapshotRepository):
        self._repository = repository
        self._collections: dict[str, list[dict[str, Any]]] = {
            entity_type: [] for entity_type in ENTITY_TYPES
        }

    def hydrate(self) -> None:
        """Load every collection from its last snapshot, else its defaults."""
        for entity_type in ENTITY_TYPES:
            items = self._repository.load(storage_key(entity_type))
            if items is None:
                items = default_collection(entity_type)
            self._collections[entity_type] = items
        logger.debug("Hydrated %d collections", len(ENTITY_TYPES))

    def get(self, entity_type: str) -> list[dict[str, Any]]:
        validate_entity_type(entity_type)
        return [dict(item) for item in self._collections[entity_type]]

    def find(self, entity_type: str, entity_id: str) -> dict[str, Any] | None:
        validate_entity_type(entity_type)
        for item in self._collections[entity_type]:
            if item.get("id") == entity_id:
                return dict(item)
        return None

    def count(self, entity_type: str) -> int:
        validate_entity_type(entity_type)
        return len(self._collections[entity_type])

    def add(self, entity_type: str, entity: dict[str, Any]) -> dict[str, Any]:
        """Append an entity. No duplicate check: use update for upserts."""
        validate_entity_type(entity_type)
        if not entity.get("id"):
            raise ValueError(f"Cannot add {entity_type} entity without an id")
        item = dict(entity)
        if entity_type in PREPEND_TYPES:
            self._collections[entity_type].insert(0, item)
        else:
            self._collections[entity_type].append(item)
        self._persist(entity_type)
        return dict(item)

    def add_many(self, entity_type: str, entities: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        validate_entity_type(entity_type)
        items = [dict(e) for e in entities]
        for item in items:
            if not item.get("id"):
                raise ValueError(f"Cannot add {entity_type} entity without an id")
        self._collections[entity_type].extend(items)
        self._persist(entity_type)
        return [dict(item) for item in items]

    def update(self, entity_type: str, entity: dict[str, Any]) -> dict[str, Any] | None:
        """Replace the entity with the same id. Returns None when it is not present."""
        validate_entity_type(entity_type)
        entity_id = entity.get("id")
        items = self._collections[entity_type]
        for idx, existing in enumerate(items):
            if existing.get("id") != entity_id:
                continue
            item = dict(entity)
            # A tenant id, once set, is never cleared.
            if not item.get(TENANT_FIELD) and existing.get(TENANT_FIELD):
                item[TENANT_FIELD] = existing[TENANT_FIELD]
            items[idx] = item
            self._persist(entity_type)
            return dict(item)
        return None

    def remove(self, entity_type: str, entity_id: str) -> bool:
        """Drop the entity with this id; a missing id is a no-op."""
        validate_entity_type(entity_type)
        items = self._collections[entity_type]
        remaining = [item for item in items if item.get("id") != entity_id]
        if len(remaining) == len(items):
            return False
        self._collections[entity_type] = remaining
        self._persist(entity_type)
        return True

    def replace_all(self, entity_type: str, entities: Iterable[dict[str, Any]]) -> int:
        """Swap in an authoritative snapshot (used by remote pulls)."""
        validate_entity_type(entity_type)
        self._collections[entity_type] = [dict(e) for e in entities if isinstance(e, dict)]
        self._persist(entity_type)
        return len(self._collections[entity_type])

    def restore_defaults(self) -> None:
        for entity_type in ENTITY_TYPES:
            self._collections[entity_type] = default_collection(entity_type)
            self._persist(entity_type)

    def _persist(self, entity_type: str) -> None:
        self._repository.save(storage_key(entity_type), self._collections[entity_type])
