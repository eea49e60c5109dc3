"""
Authentication, session and two-factor schemas.

This module provides:
- Registration, login and email-code request bodies
- Two-factor request bodies (TOTP token or backup code)
- User, session and two-factor response payloads
"""

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import EmailStr, Field, StringConstraints, field_validator

from mesanet.schemas.common import CamelModel

TotpToken = Annotated[str, StringConstraints(pattern=r"^\d{6}$")]
BackupCodeValue = Annotated[
    str, StringConstraints(strip_whitespace=True, pattern=r"^[0-9A-Fa-f]{8}$")
]
EmailCode = Annotated[str, StringConstraints(pattern=r"^\d{6}$")]


# ============================================================================
# Requests
# ============================================================================


class RegisterRequest(CamelModel):
    """Request body for POST /auth/register."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(CamelModel):
    """Request body for POST /auth/login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class TwoFactorTokenRequest(CamelModel):
    """Request body carrying a TOTP code (POST /auth/2fa/verify)."""

    token: TotpToken


class SecondFactorRequest(CamelModel):
    """
    Request body carrying either a TOTP code or a backup code.

    Both fields are optional here; the service rejects a body that has
    neither so the caller gets a specific message.
    """

    token: TotpToken | None = None
    backup_code: BackupCodeValue | None = None


class SendCodeRequest(CamelModel):
    """Request body for the send-code endpoints."""

    email: EmailStr


class VerifyEmailRequest(CamelModel):
    """Request body for POST /auth/verify-email/verify."""

    email: EmailStr
    code: EmailCode


class ResetPasswordRequest(CamelModel):
    """Request body for POST /auth/forgot-password/reset-password."""

    email: EmailStr
    code: EmailCode
    new_password: str = Field(..., min_length=8, max_length=128)


# ============================================================================
# Responses
# ============================================================================


class UserResponse(CamelModel):
    """Public view of a user."""

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    is_active: bool
    email_verified: bool
    two_factor_enabled: bool
    roles: list[str] = Field(default_factory=list, validation_alias="role_names")
    last_login_at: datetime | None = None
    created_at: datetime


class MeResponse(CamelModel):
    """Current user with their effective permissions."""

    user: UserResponse
    permissions: list[str]


class LoginResponse(CamelModel):
    """Result of the first login step."""

    requires_two_factor: bool
    user: UserResponse | None = None


class SessionResponse(CamelModel):
    """One of the caller's active sessions."""

    id: uuid.UUID
    device_type: str
    browser: str | None = None
    os: str | None = None
    ip_address: str | None = None
    last_active_at: datetime
    created_at: datetime
    expires_at: datetime
    is_current: bool = False


class TwoFactorSetupResponse(CamelModel):
    """Secret and provisioning URI, returned exactly once."""

    secret: str
    provisioning_uri: str
    message: str


class BackupCodesResponse(CamelModel):
    """Freshly generated backup codes."""

    message: str
    backup_codes: list[str]


class TwoFactorStatusResponse(CamelModel):
    """Two-factor state of the caller."""

    enabled: bool
    backup_codes_remaining: int
