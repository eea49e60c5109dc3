"""
Session and one-time verification code models.

This module defines:
- Session: One authenticated device/browser bound to a session token
- VerificationCode: Emailed 6-digit code for email verification or
  password reset

Security:
- Only SHA-256 hashes of session tokens and codes are stored
- Revocation (is_active=False) is terminal; no code path re-activates a session
- Verification codes are consumed atomically and expire
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mesanet.models.base import Base, UTCDateTime, utcnow
from mesanet.models.enums import VerificationPurpose, enum_values


class Session(Base):
    """
    Server-tracked, revocable binding between a session token and a user.

    Attributes:
        id: UUID primary key (embedded in the token as ``sid``)
        user_id: Owning user
        token_hash: SHA-256 of the issued token
        ip_address, user_agent: Client details at login
        device_type, browser, os: Parsed from the User-Agent
        is_active: False once revoked
        last_active_at: Refreshed by authenticated requests
        expires_at: Absolute expiry, matches the token ``exp`` claim
        revoked_at: When the session was revoked
        created_at: Login time
    """

    __tablename__ = "sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    device_type: Mapped[str] = mapped_column(String(20), nullable=False, default="unknown")
    browser: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    os: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_active_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("ix_sessions_user_active", "user_id", "is_active"),)

    def __repr__(self) -> str:
        return f"Session(id={self.id}, user_id={self.user_id}, active={self.is_active})"


class VerificationCode(Base):
    """
    Emailed one-time code.

    Attributes:
        user_id: User the code was issued to
        purpose: Email verification or password reset
        code_hash: SHA-256 of the 6-digit code
        expires_at: Codes are rejected after this time
        consumed_at: Set when the code is used; a consumed code never matches
    """

    __tablename__ = "verification_codes"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    purpose: Mapped[VerificationPurpose] = mapped_column(
        Enum(
            VerificationPurpose,
            name="verification_purpose_enum",
            values_callable=enum_values,
        ),
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
