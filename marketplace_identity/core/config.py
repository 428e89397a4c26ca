"""
Configuration helpers for the identity backend.

Exposes a frozen Settings object assembled once from environment variables
(signing secret, token lifetimes, OTP policy, SMTP, database) so that
services receive it by injection instead of reading os.environ directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import logging
import os
import re

logger = logging.getLogger(__name__)

_DEV_SECRET = "dev-only-insecure-jwt-secret-change-me"
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    app_name: str
    public_base_url: str
    database_url: str
    jwt_secret: str
    jwt_algorithm: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    temp_token_ttl_seconds: int
    otp_length: int
    otp_expiry_minutes: int
    password_reset_ttl_seconds: int
    cookie_samesite: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.app_env in {"prod", "production"}


def parse_duration(value: str | None, default: int) -> int:
    """Convert '15m', '30d', '2h', '45s' or '900' into seconds."""
    if value is None:
        return default
    match = _DURATION_RE.match(value)
    if not match:
        return default
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit.lower()]


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str | None, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    app_env = (os.getenv("APP_ENV") or "dev").lower()
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        if app_env in {"prod", "production"}:
            raise RuntimeError("JWT_SECRET must be configured in production.")
        logger.warning("JWT_SECRET not set; using an insecure development secret.")
        secret = _DEV_SECRET

    samesite = (os.getenv("COOKIE_SAMESITE") or "strict").lower()
    if samesite not in {"strict", "lax", "none"}:
        samesite = "strict"

    otp_length = _int(os.getenv("OTP_LENGTH"), 6)
    if otp_length < 1:
        otp_length = 6

    return Settings(
        app_env=app_env,
        app_name=os.getenv("APP_NAME", "Marketplace"),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        database_url=os.getenv("DATABASE_URL", ""),
        jwt_secret=secret,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        access_token_ttl_seconds=parse_duration(os.getenv("ACCESS_EXPIRES"), 15 * 60),
        refresh_token_ttl_seconds=parse_duration(os.getenv("REFRESH_EXPIRES"), 30 * 86400),
        temp_token_ttl_seconds=parse_duration(os.getenv("TEMP_EXPIRES"), 15 * 60),
        otp_length=otp_length,
        otp_expiry_minutes=_int(os.getenv("OTP_EXPIRY_MINUTES"), 15),
        password_reset_ttl_seconds=parse_duration(os.getenv("PASSWORD_RESET_TTL"), 15 * 60),
        cookie_samesite=samesite,
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT", "465"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
