"""Persistence operations the identity core depends on."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from marketplace_identity.domain.accounts import Account, OtpRecord, ResetTokenRecord, Role


class CredentialStore(Protocol):
    """
    Account and OTP persistence.

    ``create_account`` must raise ``ConflictError`` when the e-mail or phone
    number is already taken: the flows check for an existing account first,
    but only the store's uniqueness constraint settles concurrent signups.
    ``upsert_otp_for_owner`` must be a single atomic write keyed by owner.
    """

    def find_account_by_email_or_phone(self, email: str, phone_number: str) -> Optional[Account]: ...

    def find_account_by_identifier(self, identifier: str) -> Optional[Account]: ...

    def find_account_by_email(self, email: str) -> Optional[Account]: ...

    def find_account_by_id(self, account_id: str) -> Optional[Account]: ...

    def create_account(
        self, *, full_name: str, email: str, phone_number: str, password_hash: str, role: Role
    ) -> Account: ...

    def update_account_password(self, account_id: str, password_hash: str) -> None: ...

    def upsert_otp_for_owner(self, owner_id: str, code: str, expires_at: datetime) -> OtpRecord: ...

    def find_otp_by_owner(self, owner_id: str) -> Optional[OtpRecord]: ...

    def mark_otp_verified(self, owner_id: str, code: str) -> bool: ...

    def create_reset_token(self, account_id: str, token_hash: str, expires_at: datetime) -> None: ...

    def find_reset_token(self, token_hash: str) -> Optional[ResetTokenRecord]: ...

    def delete_reset_tokens_for_account(self, account_id: str) -> None: ...
