from __future__ import annotations

from datetime import datetime, timedelta, timezone
import sys
from pathlib import Path
from types import SimpleNamespace

import argon2
import pytest

# Make the package importable when running the tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from marketplace_identity.core import config as core_config  # noqa: E402
from marketplace_identity.core.security import Argon2PasswordHasher  # noqa: E402
from marketplace_identity import db  # noqa: E402
from marketplace_identity.repositories.sql_repository import SQLCredentialStore  # noqa: E402
from marketplace_identity.services.auth_service import AuthService  # noqa: E402
from marketplace_identity.services.otp_service import OtpService  # noqa: E402
from marketplace_identity.services.registration_service import RegistrationService  # noqa: E402
from marketplace_identity.services.token_service import TokenService  # noqa: E402

TEST_SECRET = "test-secret-with-enough-entropy-for-hs256-signing"


class RecordingNotifier:
    """Notifier double that remembers every message."""

    def __init__(self, result: bool = True):
        self.result = result
        self.sent: list[dict] = []

    def send(self, to, subject, text, html=None):
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return self.result


class FrozenClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def settings(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("APP_ENV", "test")
    for name in ("ACCESS_EXPIRES", "REFRESH_EXPIRES", "TEMP_EXPIRES", "OTP_LENGTH", "OTP_EXPIRY_MINUTES", "SMTP_HOST"):
        monkeypatch.delenv(name, raising=False)
    core_config.get_settings.cache_clear()
    yield core_config.get_settings()
    core_config.get_settings.cache_clear()


@pytest.fixture()
def db_env(tmp_path, monkeypatch, settings):
    """Temporary SQLite database with fresh settings/engine caches."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    core_config.get_settings.cache_clear()
    db.reset_engine()
    db.create_all()

    yield core_config.get_settings()

    db.drop_all()
    db.reset_engine()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def hasher():
    # cheap parameters keep the suite fast; the hash format is unchanged
    return Argon2PasswordHasher(argon2.PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def store(db_env):
    return SQLCredentialStore(db_env.database_url)


@pytest.fixture()
def services(db_env, store, notifier, hasher):
    tokens = TokenService(db_env)
    otp = OtpService(store, db_env)
    return SimpleNamespace(
        settings=db_env,
        store=store,
        tokens=tokens,
        otp=otp,
        notifier=notifier,
        registration=RegistrationService(
            store=store, otp=otp, tokens=tokens, notifier=notifier, hasher=hasher, settings=db_env
        ),
        auth=AuthService(store=store, tokens=tokens, hasher=hasher, notifier=notifier, settings=db_env),
    )


@pytest.fixture()
def verified_account(services):
    """A customer that completed OTP verification, password 'Secret1A'."""
    created = services.registration.signup("Ada Obi", "ada@example.com", "08031234567", "Secret1A")
    code = services.store.find_otp_by_owner(created.account.id).code
    services.registration.verify_otp("ada@example.com", code)
    return created.account
