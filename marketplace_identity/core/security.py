"""Security helpers (password hashing and verification)."""

from __future__ import annotations

import hashlib
from typing import Protocol

import argon2
from argon2 import exceptions as argon_exc

_PREFIX = "argon2$"


class PasswordHasher(Protocol):
    def hash(self, plain: str) -> str: ...

    def verify(self, stored_hash: str | None, plain: str) -> bool: ...


class Argon2PasswordHasher:
    """Argon2id hashes stored with a prefix so the scheme stays detectable."""

    def __init__(self, hasher: argon2.PasswordHasher | None = None):
        self._ph = hasher or argon2.PasswordHasher()

    def hash(self, plain: str) -> str:
        return f"{_PREFIX}{self._ph.hash(plain)}"

    def verify(self, stored_hash: str | None, plain: str) -> bool:
        stored = stored_hash or ""
        if not stored.startswith(_PREFIX):
            return False
        try:
            return self._ph.verify(stored[len(_PREFIX) :], plain)
        except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
            return False


def digest_token(token: str) -> str:
    """Storage form of an opaque token; the raw value only travels to the user."""
    return hashlib.sha256(token.encode()).hexdigest()
