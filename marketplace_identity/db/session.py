"""
Engine and session helpers for the credential store.

Engines are cached per database URL. Callers that received their own
``Settings`` pass its ``database_url``; without one the process-wide
``get_settings()`` value is used.
"""
from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from marketplace_identity.core.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()

_lock = threading.Lock()
_engines: dict[str, Engine] = {}
_sessionmakers: dict[str, sessionmaker] = {}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless the pragma is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _resolve_url(database_url: Optional[str]) -> str:
    url = (database_url or get_settings().database_url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL must be configured for the credential store.")
    return url


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # endpoints run in a thread pool, so connections cross threads
        engine = create_engine(url, future=True, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(url, future=True, pool_pre_ping=True)
    logger.debug("Created engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_engine(database_url: Optional[str] = None) -> Engine:
    url = _resolve_url(database_url)
    with _lock:
        engine = _engines.get(url)
        if engine is None:
            engine = _engines[url] = _build_engine(url)
        return engine


def _get_sessionmaker(database_url: Optional[str] = None) -> sessionmaker:
    url = _resolve_url(database_url)
    engine = get_engine(url)
    with _lock:
        maker = _sessionmakers.get(url)
        if maker is None:
            # rows are converted to domain records after commit, so keep them loaded
            maker = _sessionmakers[url] = sessionmaker(
                bind=engine, autoflush=False, expire_on_commit=False, future=True
            )
        return maker


def reset_engine() -> None:
    """Dispose every cached engine so the next call picks up fresh settings."""
    with _lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()
        _sessionmakers.clear()


@contextmanager
def get_session(database_url: Optional[str] = None) -> Session:
    session: Session = _get_sessionmaker(database_url)()
    try:
        yield session
    finally:
        session.close()
