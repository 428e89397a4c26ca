"""
Utility helpers shared across routers/services.
"""

from datetime import datetime, timezone
from typing import Optional


def absolute_url(base_url: str, path: str) -> str:
    """
    Turn a relative path into an absolute URL under the public base.
    """
    base = (base_url or "").rstrip("/")
    if not path:
        return base + "/"
    if path.startswith("http://") or path.startswith("https://"):
        return path
    if not path.startswith("/"):
        path = "/" + path
    return base + path


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
