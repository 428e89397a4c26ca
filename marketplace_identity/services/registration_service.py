"""
Account registration: signup, OTP (re)issuance and OTP verification.

An account moves Unregistered -> PendingVerification (signup) ->
Verified (successful OTP check). A resend puts a verified account back
into PendingVerification until the new code is confirmed.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
import logging
from typing import Optional

from marketplace_identity.core.config import Settings
from marketplace_identity.core.errors import (
    ConflictError,
    NotFoundError,
    NotifierError,
    OtpExpiredError,
    OtpMismatchError,
)
from marketplace_identity.core.mailer import Notifier
from marketplace_identity.core.security import PasswordHasher
from marketplace_identity.domain.accounts import Account, OtpRecord
from marketplace_identity.domain import validators
from marketplace_identity.repositories.base import CredentialStore
from marketplace_identity.services.otp_service import OtpFailure, OtpFailureReason, OtpService
from marketplace_identity.services.token_service import TokenService

logger = logging.getLogger(__name__)


@dataclass
class SignupCreated:
    account: Account
    access_token: str
    otp_sent: bool


@dataclass
class OtpResent:
    account: Account
    otp_sent: bool


@dataclass
class VerifiedSession:
    account: Account
    access_token: str
    refresh_token: str


_OTP_FAILURES = {
    OtpFailureReason.NOT_FOUND: lambda: NotFoundError("No OTP pending for this account"),
    OtpFailureReason.MISMATCH: lambda: OtpMismatchError("Invalid OTP"),
    OtpFailureReason.EXPIRED: lambda: OtpExpiredError("OTP expired"),
}


@dataclass
class RegistrationService:
    """Handles signup, OTP resend and OTP verification."""

    store: CredentialStore
    otp: OtpService
    tokens: TokenService
    notifier: Notifier
    hasher: PasswordHasher
    settings: Settings

    # -------------------------------------- helpers --------------------------------------
    def _otp_email(self, account: Account, code: str) -> tuple[str, str, str]:
        app = self.settings.app_name
        minutes = self.otp.expiry_minutes()
        subject = f"{app}: Your Verification Code"
        text = (
            f"Hi {account.full_name},\n\nUse this code to verify your {app} account: {code}\n\n"
            f"This code is valid for {minutes} minutes.\n\nIf you didn't request this, please ignore this email."
        )
        html = f"""
        <p>Hi {escape(account.full_name)},</p>
        <p>Use the following code to verify your {escape(app)} account:</p>
        <p style="font-size:28px;font-weight:bold;letter-spacing:5px;">{code}</p>
        <p>This code is valid for <strong>{minutes}</strong> minutes.</p>
        <p style="color:#999;">If you didn't request this, please ignore this email.</p>
        """
        return subject, text, html

    def _dispatch_otp(self, account: Account, record: OtpRecord) -> bool:
        """The record is already persisted; a failed delivery can be retried via resend."""
        subject, text, html = self._otp_email(account, record.code)
        try:
            sent = self.notifier.send(account.email, subject, text, html)
        except Exception as exc:
            logger.exception("Notifier raised while sending OTP to account %s", account.id)
            raise NotifierError("notification failure") from exc
        if not sent:
            logger.warning("OTP e-mail for account %s was not delivered", account.id)
        return bool(sent)

    # -------------------------------------- signup --------------------------------------
    def signup(
        self,
        full_name: str,
        email: str,
        phone_number: str,
        password: str,
        role: Optional[str] = None,
    ) -> SignupCreated | OtpResent:
        full_name = validators.require_full_name(full_name)
        email = validators.require_email(email)
        phone_number = validators.require_phone(phone_number)
        validators.require_password(password)
        account_role = validators.require_signup_role(role)

        existing = self.store.find_account_by_email_or_phone(email, phone_number)
        if existing:
            record = self.store.find_otp_by_owner(existing.id)
            if record and record.verified:
                raise ConflictError("Account already exists. Please log in.")
            sent = self._dispatch_otp(existing, self.otp.issue(existing.id))
            logger.info("Signup for pending account %s treated as OTP resend", existing.id)
            return OtpResent(account=existing, otp_sent=sent)

        # the store's unique constraint settles a concurrent duplicate signup
        account = self.store.create_account(
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            password_hash=self.hasher.hash(password),
            role=account_role,
        )
        logger.info("Created %s account %s", account.role.value, account.id)
        sent = self._dispatch_otp(account, self.otp.issue(account.id))
        access = self.tokens.sign_access(account.id, account.role)
        return SignupCreated(account=account, access_token=access, otp_sent=sent)

    # -------------------------------------- otp --------------------------------------
    def resend_otp(self, email: str) -> OtpResent:
        email = validators.require_email(email)
        account = self.store.find_account_by_email(email)
        if not account:
            raise NotFoundError("Account not found")
        sent = self._dispatch_otp(account, self.otp.issue(account.id))
        return OtpResent(account=account, otp_sent=sent)

    def verify_otp(self, email: str, code: str) -> VerifiedSession:
        email = validators.require_email(email)
        code = validators.require_otp_code(code, self.settings.otp_length)
        account = self.store.find_account_by_email(email)
        if not account:
            raise NotFoundError("Account not found")
        result = self.otp.verify(account.id, code)
        if isinstance(result, OtpFailure):
            raise _OTP_FAILURES[result.reason]()
        logger.info("Account %s verified", account.id)
        return VerifiedSession(
            account=account,
            access_token=self.tokens.sign_access(account.id, account.role),
            refresh_token=self.tokens.sign_refresh(account.id),
        )
