"""One-time verification codes: generation, (re)issuance and checking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
import logging
import secrets
from typing import Callable, Optional, Union

from marketplace_identity.core.config import Settings
from marketplace_identity.core.utils import as_utc, utcnow
from marketplace_identity.domain.accounts import OtpRecord
from marketplace_identity.repositories.base import CredentialStore

logger = logging.getLogger(__name__)


class OtpFailureReason(str, Enum):
    NOT_FOUND = "not_found"
    MISMATCH = "mismatch"
    EXPIRED = "expired"


@dataclass(frozen=True)
class OtpVerified:
    owner_id: str


@dataclass(frozen=True)
class OtpFailure:
    reason: OtpFailureReason


OtpResult = Union[OtpVerified, OtpFailure]


class OtpService:
    def __init__(self, store: CredentialStore, settings: Settings, clock: Callable = utcnow):
        self.store = store
        self.settings = settings
        self._clock = clock

    def expiry_minutes(self) -> int:
        return self.settings.otp_expiry_minutes

    def generate(self, length: Optional[int] = None) -> str:
        """Uniform draw from [10**(n-1), 10**n - 1], so the code never loses a digit."""
        n = length if length is not None else self.settings.otp_length
        if n < 1:
            raise ValueError("OTP length must be at least 1")
        low = 10 ** (n - 1)
        high = 10**n - 1
        return str(low + secrets.randbelow(high - low + 1))

    def issue(self, owner_id: str) -> OtpRecord:
        """Create or overwrite the owner's single OTP record in one store write."""
        code = self.generate()
        expires_at = self._clock() + timedelta(minutes=self.expiry_minutes())
        record = self.store.upsert_otp_for_owner(owner_id, code, expires_at)
        logger.info("Issued OTP for account %s (expires %s)", owner_id, expires_at.isoformat())
        return record

    def verify(self, owner_id: str, submitted_code: str) -> OtpResult:
        record = self.store.find_otp_by_owner(owner_id)
        if record is None:
            return OtpFailure(OtpFailureReason.NOT_FOUND)
        submitted = str(submitted_code or "")
        if not secrets.compare_digest(record.code.encode(), submitted.encode()):
            return OtpFailure(OtpFailureReason.MISMATCH)
        if self._clock() >= as_utc(record.expires_at):
            return OtpFailure(OtpFailureReason.EXPIRED)
        # a concurrent resend may have replaced the code since we read it
        if not self.store.mark_otp_verified(owner_id, record.code):
            return OtpFailure(OtpFailureReason.MISMATCH)
        return OtpVerified(owner_id=owner_id)
