"""
Signed session tokens and opaque random tokens.

Session tokens are stateless JWTs: validity is a matter of signature and
expiry, never a database lookup. ``verify`` collapses every failure into
the single ``INVALID_TOKEN`` value so callers cannot tell a forged token
from an expired one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
import logging
import secrets
from typing import Any, Callable, Optional, Union

import jwt

from marketplace_identity.core.config import Settings
from marketplace_identity.core.utils import utcnow
from marketplace_identity.domain.accounts import Role

logger = logging.getLogger(__name__)

_RESERVED_CLAIMS = frozenset({"type", "exp", "iat"})


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    TEMP = "temp"


@dataclass(frozen=True)
class Claims:
    sub: str
    type: TokenType
    exp: int
    role: Optional[Role] = None
    extra: Optional[dict] = None


@dataclass(frozen=True)
class InvalidToken:
    """Uniform verification failure; carries no reason on purpose."""


INVALID_TOKEN = InvalidToken()

TokenResult = Union[Claims, InvalidToken]


class TokenService:
    def __init__(self, settings: Settings, clock: Callable = utcnow):
        self.settings = settings
        self._clock = clock

    # -------------------------------------- signing --------------------------------------
    def _sign(self, claims: dict[str, Any], token_type: TokenType, ttl_seconds: int) -> str:
        now = self._clock()
        payload = dict(claims)
        payload["type"] = token_type.value
        payload["iat"] = int(now.timestamp())
        payload["exp"] = int((now + timedelta(seconds=ttl_seconds)).timestamp())
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)

    def sign_access(self, subject: str, role: Role) -> str:
        return self._sign({"sub": subject, "role": Role(role).value}, TokenType.ACCESS, self.settings.access_token_ttl_seconds)

    def sign_refresh(self, subject: str) -> str:
        return self._sign({"sub": subject}, TokenType.REFRESH, self.settings.refresh_token_ttl_seconds)

    def sign_temp(self, payload: dict[str, Any]) -> str:
        """Short-lived token for one-off hand-offs; ``payload`` must carry ``sub``."""
        if not payload.get("sub"):
            raise ValueError("temp token payload requires a 'sub' claim")
        claims = {k: v for k, v in payload.items() if k not in _RESERVED_CLAIMS}
        return self._sign(claims, TokenType.TEMP, self.settings.temp_token_ttl_seconds)

    # -------------------------------------- verification --------------------------------------
    def verify(self, token: Optional[str], expected_type: TokenType) -> TokenResult:
        if not token:
            return INVALID_TOKEN
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
                # expiry is judged below against the service clock only
                options={"require": ["exp", "sub"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.PyJWTError as exc:
            logger.debug("Token rejected: %s", type(exc).__name__)
            return INVALID_TOKEN

        token_type = payload.get("type")
        if token_type != expected_type.value:
            logger.debug("Token rejected: type %r presented where %s expected", token_type, expected_type.value)
            return INVALID_TOKEN
        try:
            expires = int(payload["exp"])
        except (TypeError, ValueError):
            return INVALID_TOKEN
        if expires <= int(self._clock().timestamp()):
            logger.debug("Token rejected: expired")
            return INVALID_TOKEN

        role = None
        if payload.get("role") is not None:
            try:
                role = Role(payload["role"])
            except ValueError:
                logger.debug("Token rejected: unknown role")
                return INVALID_TOKEN
        if expected_type is TokenType.ACCESS and role is None:
            return INVALID_TOKEN

        extra = {k: v for k, v in payload.items() if k not in {"sub", "role", "type", "exp", "iat"}}
        return Claims(sub=str(payload["sub"]), type=expected_type, exp=expires, role=role, extra=extra or None)

    # -------------------------------------- opaque --------------------------------------
    @staticmethod
    def generate_opaque(length: int = 48) -> str:
        """``length`` random bytes rendered as hex (2 * length characters)."""
        return secrets.token_hex(length)
