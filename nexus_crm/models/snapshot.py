"""Collection snapshot model - one row per entity collection."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class CollectionSnapshot(TimestampMixin, Base):
    __tablename__ = "collection_snapshot"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)  # nexus_leads, nexus_clients, ...
    # Serialized JSON list of the collection's entities.
    payload: Mapped[str] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<CollectionSnapshot {self.key}>"
