"""Local-first entity store."""

from .collections import ENTITY_TYPES, default_collection, storage_key
from .local_store import LocalStore
from .snapshot_repo import SnapshotRepository

__all__ = [
    "ENTITY_TYPES",
    "LocalStore",
    "SnapshotRepository",
    "default_collection",
    "storage_key",
]
