"""Local snapshot database engine and session factory."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .models.base import Base


def _ensure_sqlite_dir(url: str) -> None:
    prefix = "sqlite:///"
    if not url.startswith(prefix):
        return
    path = url[len(prefix):]
    if not path or path == ":memory:":
        return
    Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_local_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    """Create the engine backing the local snapshot store and ensure its tables."""
    url = url or settings.local_database_url
    _ensure_sqlite_dir(url)
    engine = create_engine(url, echo=settings.echo_sql if echo is None else echo)
    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)
