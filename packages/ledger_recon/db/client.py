"""Database plumbing for the reconciliation tables.

The process holds one binding (URL, engine, session factory). Asking for a
different URL disposes the old engine and binds the new one, so a CLI that is
invoked repeatedly in one process follows whatever ``--database-url`` or
``DATABASE_URL`` each run names.

    with session_scope(database_url=url, create=True) as session:
        save_store(session, store)
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..logging_setup import get_logger
from .models import Base

_logger = get_logger("ledger_recon.db")


@dataclass(frozen=True, slots=True)
class _Binding:
    url: str
    engine: Engine
    sessions: sessionmaker[Session]


_BINDING: _Binding | None = None


def resolve_database_url(database_url: str | None = None) -> str:
    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set and no database URL was given")
    return url


def _bind(database_url: str | None) -> _Binding:
    global _BINDING
    url = resolve_database_url(database_url)
    if _BINDING is not None and _BINDING.url == url:
        return _BINDING

    dispose_engine()
    engine = create_engine(url, pool_pre_ping=True)
    _BINDING = _Binding(
        url=url,
        engine=engine,
        sessions=sessionmaker(bind=engine, expire_on_commit=False),
    )
    _logger.info(
        "db:bind dialect=%s url=%s",
        engine.dialect.name,
        engine.url.render_as_string(hide_password=True),
    )
    return _BINDING


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the engine for ``database_url`` (default: ``DATABASE_URL``)."""

    return _bind(database_url).engine


def create_schema(*, database_url: str | None = None) -> None:
    """Create the reconciliation tables that do not exist yet."""

    Base.metadata.create_all(bind=get_engine(database_url=database_url))


@contextmanager
def session_scope(*, database_url: str | None = None, create: bool = False) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error.

    With ``create=True`` the tables are created first, for writers that may
    be the first to touch a fresh database.
    """

    binding = _bind(database_url)
    if create:
        Base.metadata.create_all(bind=binding.engine)
    session = binding.sessions()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine() -> None:
    """Close pooled connections and forget the current binding."""

    global _BINDING
    if _BINDING is not None:
        _BINDING.engine.dispose()
    _BINDING = None


__all__ = [
    "create_schema",
    "dispose_engine",
    "get_engine",
    "resolve_database_url",
    "session_scope",
]
