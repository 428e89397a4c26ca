"""
Authentication use cases: login, token refresh, current account and
password reset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from html import escape
import logging
from typing import Callable, Optional

from marketplace_identity.core.config import Settings
from marketplace_identity.core.errors import (
    ForbiddenError,
    NotFoundError,
    NotifierError,
    UnauthorizedError,
    ValidationError,
)
from marketplace_identity.core.mailer import Notifier
from marketplace_identity.core.security import PasswordHasher, digest_token
from marketplace_identity.core.utils import absolute_url, as_utc, utcnow
from marketplace_identity.domain import validators
from marketplace_identity.domain.accounts import Account, Principal
from marketplace_identity.repositories.base import CredentialStore
from marketplace_identity.services.token_service import Claims, TokenService, TokenType

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass
class LoginSuccess:
    account: Account
    access_token: str
    refresh_token: str


@dataclass
class RefreshedSession:
    account: Account
    access_token: str
    refresh_token: str


@dataclass
class AuthService:
    """Handles login, refresh and password reset flows."""

    store: CredentialStore
    tokens: TokenService
    hasher: PasswordHasher
    notifier: Notifier
    settings: Settings
    clock: Callable = field(default=utcnow)

    # -------------------------------------- login --------------------------------------
    def login(self, identifier: str, password: str) -> LoginSuccess:
        raw = (identifier or "").strip() if isinstance(identifier, str) else ""
        if not (validators.is_valid_email(raw) or validators.is_valid_phone(raw)):
            raise ValidationError("Identifier must be a valid email or phone number")
        account = self.store.find_account_by_identifier(raw)
        if not account:
            raise UnauthorizedError(INVALID_CREDENTIALS)
        record = self.store.find_otp_by_owner(account.id)
        if not record or not record.verified:
            raise ForbiddenError("Please verify your email before logging in")
        if not self.hasher.verify(account.password_hash, password or ""):
            raise UnauthorizedError(INVALID_CREDENTIALS)
        logger.info("Account %s logged in", account.id)
        return LoginSuccess(
            account=account,
            access_token=self.tokens.sign_access(account.id, account.role),
            refresh_token=self.tokens.sign_refresh(account.id),
        )

    # -------------------------------------- refresh --------------------------------------
    def refresh(self, refresh_token: Optional[str]) -> RefreshedSession:
        if not refresh_token:
            raise UnauthorizedError("No refresh token")
        claims = self.tokens.verify(refresh_token, TokenType.REFRESH)
        if not isinstance(claims, Claims):
            raise UnauthorizedError("Invalid or expired refresh token")
        # reload so the new access token carries the current role
        account = self.store.find_account_by_id(claims.sub)
        if not account:
            raise UnauthorizedError("Invalid or expired refresh token")
        return RefreshedSession(
            account=account,
            access_token=self.tokens.sign_access(account.id, account.role),
            refresh_token=self.tokens.sign_refresh(account.id),
        )

    def current_account(self, principal: Principal) -> Account:
        account = self.store.find_account_by_id(principal.id)
        if not account:
            raise NotFoundError("Account not found")
        return account

    # -------------------------------------- password reset --------------------------------------
    def request_password_reset(self, email: str) -> bool:
        """
        Mail a reset link to a verified account.
        Always returns True once the input is valid, so callers cannot probe
        which addresses are registered.
        """
        email = validators.require_email(email)
        account = self.store.find_account_by_email(email)
        if not account:
            return True
        record = self.store.find_otp_by_owner(account.id)
        if not record or not record.verified:
            logger.info("Password reset requested for unverified account %s; ignored", account.id)
            return True
        self.store.delete_reset_tokens_for_account(account.id)
        token = self.tokens.generate_opaque()
        expires_at = self.clock() + timedelta(seconds=self.settings.password_reset_ttl_seconds)
        self.store.create_reset_token(account.id, digest_token(token), expires_at)
        reset_url = absolute_url(self.settings.public_base_url, f"/auth/password/reset?token={token}")
        app = self.settings.app_name
        html_body = f"""
        <p>Hi {escape(account.full_name)},</p>
        <p>We received a request to reset your {escape(app)} password.</p>
        <p><a href="{escape(reset_url)}">Reset password</a></p>
        <p>If this wasn't you, ignore this message.</p>
        """
        try:
            sent = self.notifier.send(
                account.email,
                f"{app}: Reset your password",
                f"Use this link to reset your password: {reset_url}",
                html_body,
            )
        except Exception as exc:
            logger.exception("Notifier raised while sending reset link to account %s", account.id)
            raise NotifierError("notification failure") from exc
        if not sent:
            logger.warning("Password reset e-mail for account %s was not delivered", account.id)
        return True

    def reset_password(self, token: str, password: str, confirm_password: str) -> Account:
        token = (token or "").strip()
        if not token:
            raise ValidationError("Reset token is required")
        if password != confirm_password:
            raise ValidationError("Passwords do not match")
        validators.require_password(password)
        entry = self.store.find_reset_token(digest_token(token))
        if not entry or self.clock() >= as_utc(entry.expires_at):
            raise ValidationError("Reset link invalid or expired. Please start the process again.")
        account = self.store.find_account_by_id(entry.account_id)
        if not account:
            raise ValidationError("Reset link invalid or expired. Please start the process again.")
        self.store.update_account_password(account.id, self.hasher.hash(password))
        self.store.delete_reset_tokens_for_account(account.id)
        logger.info("Password reset for account %s", account.id)
        return account
