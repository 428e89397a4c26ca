"""Input rules checked at the boundary, before any store access."""

from __future__ import annotations

import re

from marketplace_identity.core.errors import ValidationError
from marketplace_identity.domain.accounts import Role, SELF_SERVICE_ROLES

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^(\+234|0)[789][01]\d{8}$")
MIN_PASSWORD_LENGTH = 8


def is_valid_email(value: object) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def is_valid_phone(value: object) -> bool:
    return isinstance(value, str) and bool(PHONE_RE.match(value.strip()))


def require_email(value: object) -> str:
    if not is_valid_email(value):
        raise ValidationError("Invalid email address")
    return str(value).strip()


def require_phone(value: object) -> str:
    if not is_valid_phone(value):
        raise ValidationError("Invalid phone number")
    return str(value).strip()


def require_full_name(value: object) -> str:
    if not isinstance(value, str) or len(value.strip()) < 2:
        raise ValidationError("fullName is required and must be at least 2 characters")
    return value.strip()


def require_password(value: object) -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return value


def require_signup_role(value: object) -> Role:
    try:
        role = Role(value or Role.CUSTOMER.value)
    except ValueError:
        raise ValidationError("Unknown role") from None
    if role not in SELF_SERVICE_ROLES:
        raise ValidationError("This role cannot be self-registered")
    return role


def require_otp_code(value: object, length: int) -> str:
    code = str(value or "").strip()
    if not re.fullmatch(rf"\d{{{length}}}", code):
        raise ValidationError(f"OTP must be a {length} digit number")
    return code
