"""
Logging setup for the identity API.

Call ``configure_logging()`` once at process start (the app factory does
it); modules then log through ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "marketplace_identity"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    level = getattr(logging, value.strip().upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a single stream handler to the package logger (idempotent)."""
    log = logging.getLogger(PACKAGE_LOGGER)
    log.setLevel(_parse_level(level))
    if not any(getattr(h, "_identity_handler", False) for h in log.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._identity_handler = True  # type: ignore[attr-defined]
        log.addHandler(handler)
        # uvicorn configures the root logger too; without this every record prints twice
        log.propagate = False
    return log
