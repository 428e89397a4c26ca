"""Account and OTP record types handed out by the credential store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    RIDER = "rider"
    ADMIN = "admin"


SELF_SERVICE_ROLES = frozenset({Role.CUSTOMER, Role.VENDOR, Role.RIDER})


@dataclass(frozen=True)
class Account:
    id: str
    full_name: str
    email: str
    phone_number: str
    password_hash: str
    role: Role
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def public_view(self) -> dict:
        return {
            "id": self.id,
            "fullName": self.full_name,
            "email": self.email,
            "phoneNumber": self.phone_number,
            "role": self.role.value,
        }


@dataclass(frozen=True)
class OtpRecord:
    owner_id: str
    code: str
    verified: bool
    expires_at: datetime


@dataclass(frozen=True)
class ResetTokenRecord:
    token_hash: str
    account_id: str
    expires_at: datetime


@dataclass(frozen=True)
class Principal:
    """Authenticated identity attached to a request."""

    id: str
    role: Role
