"""Create (or drop) the credential store schema: ``python -m marketplace_identity.db.create_tables``."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .session import Base, get_engine
from . import models  # noqa: F401  # registers the tables on Base.metadata

logger = logging.getLogger(__name__)


def create_all(engine: Optional[Engine] = None) -> list[str]:
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    tables = sorted(Base.metadata.tables)
    logger.info("Ensured tables: %s", ", ".join(tables))
    return tables


def drop_all(engine: Optional[Engine] = None) -> None:
    Base.metadata.drop_all(bind=engine or get_engine())


if __name__ == "__main__":
    from marketplace_identity.core.config import get_settings
    from marketplace_identity.core.logging_config import configure_logging

    configure_logging(get_settings().log_level)
    try:
        create_all()
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
