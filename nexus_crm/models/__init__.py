"""Local persistence models."""

from .base import Base, TimestampMixin
from .snapshot import CollectionSnapshot

__all__ = [
    "Base",
    "TimestampMixin",
    "CollectionSnapshot",
]
