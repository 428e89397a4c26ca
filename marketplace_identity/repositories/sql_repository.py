"""CredentialStore implementation backed by SQLAlchemy."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from marketplace_identity.core.errors import ConflictError, StoreError
from marketplace_identity.core.utils import as_utc, utcnow
from marketplace_identity.db.models import AccountModel, OtpModel, ResetTokenModel
from marketplace_identity.db.session import get_session
from marketplace_identity.domain.accounts import Account, OtpRecord, ResetTokenRecord, Role

logger = logging.getLogger(__name__)

DUPLICATE_ACCOUNT = "An account with this email or phone number already exists"

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _to_account(row: AccountModel) -> Account:
    return Account(
        id=row.id,
        full_name=row.full_name,
        email=row.email,
        phone_number=row.phone_number,
        password_hash=row.password_hash,
        role=Role(row.role),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _to_otp(row: OtpModel) -> OtpRecord:
    return OtpRecord(
        owner_id=row.owner_id,
        code=row.code,
        verified=bool(row.verified),
        expires_at=as_utc(row.expires_at),
    )


@contextmanager
def _guard(operation: str, conflict: Optional[str] = None):
    """Translate driver errors; an IntegrityError is a Conflict only where ``conflict`` names it."""
    try:
        yield
    except IntegrityError as exc:
        if conflict is None:
            logger.exception("Integrity violation during %s", operation)
            raise StoreError(f"store failure during {operation}") from exc
        logger.info("Integrity violation during %s: %s", operation, exc.orig)
        raise ConflictError(conflict) from exc
    except SQLAlchemyError as exc:
        logger.exception("Store failure during %s", operation)
        raise StoreError(f"store failure during {operation}") from exc


class SQLCredentialStore:
    """Account/OTP/reset-token persistence wrapping the SQLAlchemy session."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url

    # -------------------------- accounts --------------------------
    def find_account_by_email_or_phone(self, email: str, phone_number: str) -> Optional[Account]:
        with _guard("find_account_by_email_or_phone"), get_session(self.database_url) as session:
            stmt = (
                select(AccountModel)
                .where(or_(AccountModel.email == email, AccountModel.phone_number == phone_number))
                .order_by(AccountModel.created_at)
                .limit(1)
            )
            row = session.execute(stmt).scalars().first()
            return _to_account(row) if row else None

    def find_account_by_identifier(self, identifier: str) -> Optional[Account]:
        column = AccountModel.email if "@" in identifier else AccountModel.phone_number
        with _guard("find_account_by_identifier"), get_session(self.database_url) as session:
            row = session.execute(select(AccountModel).where(column == identifier)).scalars().first()
            return _to_account(row) if row else None

    def find_account_by_email(self, email: str) -> Optional[Account]:
        with _guard("find_account_by_email"), get_session(self.database_url) as session:
            row = session.execute(select(AccountModel).where(AccountModel.email == email)).scalars().first()
            return _to_account(row) if row else None

    def find_account_by_id(self, account_id: str) -> Optional[Account]:
        with _guard("find_account_by_id"), get_session(self.database_url) as session:
            row = session.get(AccountModel, account_id)
            return _to_account(row) if row else None

    def create_account(
        self, *, full_name: str, email: str, phone_number: str, password_hash: str, role: Role
    ) -> Account:
        now = utcnow()
        entity = AccountModel(
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            password_hash=password_hash,
            role=role.value,
            created_at=now,
            updated_at=now,
        )
        with _guard("create_account", conflict=DUPLICATE_ACCOUNT), get_session(self.database_url) as session:
            try:
                session.add(entity)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
            session.refresh(entity)
            return _to_account(entity)

    def update_account_password(self, account_id: str, password_hash: str) -> None:
        with _guard("update_account_password"), get_session(self.database_url) as session:
            stmt = (
                update(AccountModel)
                .where(AccountModel.id == account_id)
                .values(password_hash=password_hash, updated_at=utcnow())
            )
            session.execute(stmt)
            session.commit()

    # -------------------------- otp --------------------------
    def upsert_otp_for_owner(self, owner_id: str, code: str, expires_at: datetime) -> OtpRecord:
        now = utcnow()
        with _guard("upsert_otp_for_owner"), get_session(self.database_url) as session:
            dialect = session.get_bind().dialect.name
            insert = _UPSERT_DIALECTS.get(dialect)
            if insert is None:
                raise StoreError(f"atomic OTP upsert is not supported on {dialect}")
            stmt = (
                insert(OtpModel)
                .values(owner_id=owner_id, code=code, verified=False, expires_at=expires_at, updated_at=now)
                .on_conflict_do_update(
                    index_elements=[OtpModel.owner_id],
                    set_={"code": code, "verified": False, "expires_at": expires_at, "updated_at": now},
                )
            )
            session.execute(stmt)
            session.commit()
        return OtpRecord(owner_id=owner_id, code=code, verified=False, expires_at=as_utc(expires_at))

    def find_otp_by_owner(self, owner_id: str) -> Optional[OtpRecord]:
        with _guard("find_otp_by_owner"), get_session(self.database_url) as session:
            row = session.get(OtpModel, owner_id)
            return _to_otp(row) if row else None

    def mark_otp_verified(self, owner_id: str, code: str) -> bool:
        """Flip ``verified`` only if the stored code is still ``code``."""
        with _guard("mark_otp_verified"), get_session(self.database_url) as session:
            stmt = (
                update(OtpModel)
                .where(OtpModel.owner_id == owner_id, OtpModel.code == code)
                .values(verified=True, updated_at=utcnow())
            )
            result = session.execute(stmt)
            session.commit()
            return bool(result.rowcount)

    # -------------------------- reset tokens --------------------------
    def create_reset_token(self, account_id: str, token_hash: str, expires_at: datetime) -> None:
        entity = ResetTokenModel(token_hash=token_hash, account_id=account_id, expires_at=expires_at, created_at=utcnow())
        with _guard("create_reset_token"), get_session(self.database_url) as session:
            session.add(entity)
            session.commit()

    def find_reset_token(self, token_hash: str) -> Optional[ResetTokenRecord]:
        with _guard("find_reset_token"), get_session(self.database_url) as session:
            row = session.get(ResetTokenModel, token_hash)
            if not row:
                return None
            return ResetTokenRecord(token_hash=row.token_hash, account_id=row.account_id, expires_at=as_utc(row.expires_at))

    def delete_reset_tokens_for_account(self, account_id: str) -> None:
        with _guard("delete_reset_tokens_for_account"), get_session(self.database_url) as session:
            session.execute(delete(ResetTokenModel).where(ResetTokenModel.account_id == account_id))
            session.commit()
