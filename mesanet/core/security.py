"""
Security utilities for authentication.

This module provides:
- Password hashing with Argon2id
- Password strength and breached-password policy checks
- Session and pending-two-factor token issuing and validation (JWT, HS256)
- SHA-256 hashing of stored token and one-time code values
- One-time email code generation
"""

import hashlib
import hmac
import logging
import re
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import (
    InvalidHashError,
    VerificationError,
    VerifyMismatchError,
)
from jose import JWTError, jwt

from mesanet.core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Password Hashing with Argon2id
# =============================================================================

pwd_hasher = PasswordHasher(
    time_cost=settings.argon2_time_cost,
    memory_cost=settings.argon2_memory_cost,
    parallelism=settings.argon2_parallelism,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Args:
        password: Plain text password to hash

    Returns:
        Argon2id hash string (includes algorithm, parameters, salt, and hash)

    Example:
        >>> hashed = hash_password("my_secure_password")
        >>> # Returns: $argon2id$v=19$m=65536,t=2,p=4$...
    """
    return pwd_hasher.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against an Argon2id hash.

    Args:
        password: Plain text password to verify
        hashed_password: Argon2id hash to verify against

    Returns:
        True if password matches hash, False otherwise
    """
    try:
        pwd_hasher.verify(hashed_password, password)
        return True
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def validate_password_strength(password: str) -> list[str]:
    """
    Validate password strength against security requirements.

    Requirements:
    - Minimum 8 characters
    - At least 1 uppercase letter
    - At least 1 lowercase letter
    - At least 1 digit
    - At least 1 special character

    Args:
        password: Password to validate

    Returns:
        List of failed requirements; empty when the password is acceptable

    Example:
        >>> validate_password_strength("StrongP@ss123")
        []
    """
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")
    if not re.search(r"[^A-Za-z0-9]", password):
        errors.append("Password must contain at least one special character")
    return errors


# Passwords that appear at the top of every public breach corpus
_BREACHED_PASSWORDS = frozenset(
    {
        "password",
        "password1",
        "password123",
        "password1!",
        "p@ssw0rd",
        "p@ssword1",
        "passw0rd!",
        "qwerty123!",
        "qwerty123",
        "welcome1!",
        "welcome123!",
        "letmein1!",
        "admin123!",
        "changeme1!",
        "iloveyou1!",
        "abc123!@#",
        "123456789",
        "12345678",
        "1q2w3e4r!",
        "summer2024!",
        "winter2024!",
    }
)


def is_breached_password(password: str) -> bool:
    """Return True if the password is on the known-breached list."""
    return password.lower() in _BREACHED_PASSWORDS


# =============================================================================
# Session Tokens
# =============================================================================
# Session tokens are signed JWTs carried in an HTTP-only cookie. The database
# stores only their SHA-256 hash, so a leaked table cannot be replayed.
# =============================================================================

ALGORITHM = "HS256"

TOKEN_TYPE_SESSION = "session"
TOKEN_TYPE_PENDING_2FA = "pending_2fa"


def create_session_token(user_id: uuid.UUID, session_id: uuid.UUID) -> tuple[str, datetime]:
    """
    Create a signed session token.

    Args:
        user_id: Owner of the session
        session_id: Primary key of the Session row this token is bound to

    Returns:
        Tuple of (encoded token, expiry timestamp)
    """
    now = datetime.now(UTC)
    expires_at = now + timedelta(hours=settings.jwt_expiry_hours)
    claims = {
        "sub": str(user_id),
        "sid": str(session_id),
        "type": TOKEN_TYPE_SESSION,
        "iat": now,
        "exp": expires_at,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM), expires_at


def create_pending_token(user_id: uuid.UUID) -> str:
    """
    Create a short-lived token proving the first login factor succeeded.

    Args:
        user_id: User who passed the password check

    Returns:
        Encoded token, valid for settings.pending_session_expire_minutes
    """
    now = datetime.now(UTC)
    claims = {
        "sub": str(user_id),
        "type": TOKEN_TYPE_PENDING_2FA,
        "iat": now,
        "exp": now + timedelta(minutes=settings.pending_session_expire_minutes),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str, expected_type: str) -> dict[str, Any] | None:
    """
    Decode and validate a token of the given type.

    Verifies signature, expiry and the ``type`` claim.

    Args:
        token: Encoded token
        expected_type: TOKEN_TYPE_SESSION or TOKEN_TYPE_PENDING_2FA

    Returns:
        Claims dictionary, or None if the token is invalid for any reason
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None

    if claims.get("type") != expected_type:
        logger.debug(f"Token rejected: expected type {expected_type}")
        return None
    return claims


# =============================================================================
# Hashing of Stored Secrets
# =============================================================================


def hash_token(value: str) -> str:
    """
    Hash a token or one-time code using SHA-256.

    Session tokens and backup codes are already high-entropy, so a fast
    hash is sufficient.

    Returns:
        Hex digest of the value
    """
    return hashlib.sha256(value.encode()).hexdigest()


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings in constant time."""
    return hmac.compare_digest(a.encode(), b.encode())


def generate_email_code() -> str:
    """Generate a 6-digit one-time code for email verification flows."""
    return f"{secrets.randbelow(1_000_000):06d}"
