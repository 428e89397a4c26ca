"""Database layer: engine/session helpers and the ORM schema."""

from .session import Base, get_engine, get_session, reset_engine
from .create_tables import create_all, drop_all

__all__ = ["Base", "create_all", "drop_all", "get_engine", "get_session", "reset_engine"]
