"""SQLAlchemy models for accounts, OTP codes and password reset tokens."""
from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class AccountModel(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone_number = Column(String(32), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(String(16), nullable=False, default="customer")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    otp = relationship("OtpModel", uselist=False, back_populates="owner", cascade="all,delete-orphan")


class OtpModel(Base):
    __tablename__ = "otp_codes"

    # one row per account: the primary key doubles as the upsert conflict target
    owner_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    code = Column(String(16), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("AccountModel", back_populates="otp")


class ResetTokenModel(Base):
    __tablename__ = "reset_tokens"

    token_hash = Column(String(64), primary_key=True)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
