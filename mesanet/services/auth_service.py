"""
Authentication service for registration, login and account recovery.

This module provides:
- User registration with password policy and breached-password checks
- Login with an optional two-factor second step
- Logout (session revocation)
- Email verification and password reset with emailed one-time codes

The application is its own identity provider: password hashes are Argon2id
and sessions are server-tracked (see SessionService).
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.core.config import settings
from mesanet.core.security import (
    TOKEN_TYPE_PENDING_2FA,
    create_pending_token,
    decode_token,
    generate_email_code,
    hash_password,
    hash_token,
    is_breached_password,
    validate_password_strength,
    verify_password,
)
from mesanet.exceptions import (
    AlreadyExistsError,
    BadRequestError,
    ForbiddenError,
    UnauthorizedError,
    UnprocessableEntityError,
)
from mesanet.models.enums import AuditAction, AuditSeverity, SystemRole, VerificationPurpose
from mesanet.models.session import VerificationCode
from mesanet.models.user import User
from mesanet.repositories.credential_repository import VerificationCodeRepository
from mesanet.repositories.role_repository import RoleRepository
from mesanet.repositories.user_repository import UserRepository
from mesanet.schemas.auth import LoginRequest, RegisterRequest
from mesanet.services.audit_service import AuditService, ClientInfo
from mesanet.services.notification_service import NotificationService
from mesanet.services.role_service import RoleService
from mesanet.services.session_service import SessionService
from mesanet.services.two_factor_service import TwoFactorService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
INVALID_CODE_MESSAGE = "Invalid or expired verification code"
VERIFICATION_SENT_MESSAGE = (
    "If an account with this email exists and is not yet verified, "
    "a verification code has been sent."
)
RESET_SENT_MESSAGE = "If an account with this email exists, a password reset code has been sent."
PENDING_EXPIRED_MESSAGE = "Two-factor login session expired. Please sign in again."


@dataclass
class LoginResult:
    """
    Outcome of a login step.

    Exactly one of ``session_token`` or ``pending_token`` is set: the first
    when the user is fully signed in, the second when a second factor is
    still required.
    """

    user: User
    requires_two_factor: bool = False
    session_token: str | None = None
    pending_token: str | None = None


def check_password_policy(password: str) -> None:
    """
    Enforce password strength and breach rules.

    Raises:
        BadRequestError: Listing every failed strength rule
        UnprocessableEntityError: If the password is known to be breached
    """
    errors = validate_password_strength(password)
    if errors:
        raise BadRequestError("Password does not meet requirements", messages=errors)
    if is_breached_password(password):
        raise UnprocessableEntityError(
            "This password has been found in a data breach. Please choose a different password."
        )


class AuthService:
    """
    Service class for authentication operations.

    This service handles:
    - User registration
    - Login, the two-factor login step and logout
    - Email verification
    - Password reset

    All methods require an active database session.
    """

    def __init__(self, session: AsyncSession, notifications: NotificationService | None = None):
        """
        Initialize AuthService.

        Args:
            session: Async database session
            notifications: Email notifications (defaults to the queued sender)
        """
        self.session = session
        self.user_repo = UserRepository(session)
        self.role_repo = RoleRepository(session)
        self.code_repo = VerificationCodeRepository(session)
        self.audit_service = AuditService(session)
        self.session_service = SessionService(session)
        self.notifications = notifications or NotificationService()
        self.two_factor_service = TwoFactorService(session, notifications=self.notifications)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    async def register(self, data: RegisterRequest, client: ClientInfo | None = None) -> User:
        """
        Register a new user with the USER role.

        This method:
        1. Applies the password policy
        2. Rejects duplicate emails
        3. Stores the Argon2id hash and assigns the USER role
        4. Emails a verification code

        Args:
            data: Registration data
            client: Request details for the audit entry

        Returns:
            Created user

        Raises:
            BadRequestError: If the password is too weak
            UnprocessableEntityError: If the password is known to be breached
            AlreadyExistsError: If the email is already registered
        """
        check_password_policy(data.password)

        if await self.user_repo.email_exists(data.email):
            logger.warning(f"Registration attempted with existing email: {data.email}")
            raise AlreadyExistsError("An account with this email")

        default_role = await self.role_repo.get_by_name(SystemRole.USER.value)
        if default_role is None:
            await RoleService(self.session).ensure_system_roles()
            default_role = await self.role_repo.get_by_name(SystemRole.USER.value)

        try:
            user = await self.user_repo.add(
                User(
                    email=data.email.lower(),
                    first_name=data.first_name,
                    last_name=data.last_name,
                    password_hash=hash_password(data.password),
                    is_active=True,
                    email_verified=False,
                    roles=[default_role],
                )
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Concurrent registration for existing email: {data.email}")
            raise AlreadyExistsError("An account with this email") from None
        logger.info(f"User registered successfully: {user.id} ({user.email})")

        await self.audit_service.create_audit_log(
            AuditAction.USER_REGISTER,
            user_id=user.id,
            user_email=user.email,
            resource_type="user",
            resource_id=user.id,
            resource_name=user.full_name,
            client=client,
        )

        code = await self._issue_code(user, VerificationPurpose.EMAIL_VERIFICATION)
        self.notifications.send_email_verification_code(user, code)
        return user

    # -------------------------------------------------------------------------
    # Login / logout
    # -------------------------------------------------------------------------

    async def login(self, data: LoginRequest, client: ClientInfo | None = None) -> LoginResult:
        """
        First login step: check the password and account state.

        Returns:
            A signed-in result, or a pending result when two-factor is on

        Raises:
            UnauthorizedError: On bad credentials
            ForbiddenError: If the account is suspended or the email is
                unverified (when verification is required)
        """
        client = client or ClientInfo()
        user = await self.user_repo.get_by_email(data.email)

        if user is None or not verify_password(data.password, user.password_hash):
            logger.warning(f"Failed login attempt for {data.email}")
            await self.audit_service.create_audit_log(
                AuditAction.USER_LOGIN_FAILED,
                user_id=user.id if user else None,
                user_email=data.email,
                resource_type="user",
                resource_id=user.id if user else None,
                severity=AuditSeverity.WARNING,
                success=False,
                error_message=INVALID_CREDENTIALS_MESSAGE,
                client=client,
            )
            raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            raise ForbiddenError("Your account has been suspended")
        if settings.require_email_verification and not user.email_verified:
            raise ForbiddenError("Please verify your email address before signing in")

        if user.two_factor_enabled:
            logger.info(f"Password accepted for {user.id}; awaiting second factor")
            return LoginResult(
                user=user,
                requires_two_factor=True,
                pending_token=create_pending_token(user.id),
            )

        return await self._complete_login(user, client)

    async def verify_login_two_factor(
        self,
        pending_token: str | None,
        token: str | None = None,
        backup_code: str | None = None,
        client: ClientInfo | None = None,
    ) -> LoginResult:
        """
        Second login step: verify the second factor for a pending login.

        Args:
            pending_token: Value of the pending-session cookie
            token: TOTP code
            backup_code: Backup code (used when no token is given)
            client: Request details

        Raises:
            UnauthorizedError: If the pending login is missing or expired,
                or the second factor does not verify
            ForbiddenError: If the account was suspended meanwhile
        """
        client = client or ClientInfo()
        claims = decode_token(pending_token, TOKEN_TYPE_PENDING_2FA) if pending_token else None
        if claims is None:
            raise UnauthorizedError(PENDING_EXPIRED_MESSAGE)

        try:
            user_id = uuid.UUID(claims["sub"])
        except (KeyError, ValueError):
            raise UnauthorizedError(PENDING_EXPIRED_MESSAGE) from None

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise UnauthorizedError(PENDING_EXPIRED_MESSAGE)
        if not user.is_active:
            raise ForbiddenError("Your account has been suspended")

        await self.two_factor_service.verify_second_factor(user, token, backup_code, client)
        return await self._complete_login(user, client)

    async def _complete_login(self, user: User, client: ClientInfo) -> LoginResult:
        row, session_token = await self.session_service.create_session(
            user, client.ip_address, client.user_agent
        )
        user.last_login_at = datetime.now(UTC)
        await self.user_repo.update(user)
        await self.session.commit()

        logger.info(f"User logged in: {user.id}")
        await self.audit_service.create_audit_log(
            AuditAction.USER_LOGIN,
            user_id=user.id,
            user_email=user.email,
            resource_type="session",
            resource_id=row.id,
            details={"device_type": row.device_type, "browser": row.browser, "os": row.os},
            client=client,
        )
        return LoginResult(user=user, session_token=session_token)

    async def logout(
        self,
        token: str | None,
        actor: User | None = None,
        client: ClientInfo | None = None,
    ) -> str:
        """
        Revoke the session bound to ``token``.

        Returns:
            Outcome message
        """
        row = await self.session_service.revoke_by_token(token) if token else None
        if row is None:
            return "No active session found."

        await self.audit_service.create_audit_log(
            AuditAction.USER_LOGOUT,
            user_id=row.user_id,
            user_email=actor.email if actor else None,
            resource_type="session",
            resource_id=row.id,
            client=client,
        )
        return "Successfully logged out."

    # -------------------------------------------------------------------------
    # Email codes
    # -------------------------------------------------------------------------

    async def _issue_code(self, user: User, purpose: VerificationPurpose) -> str:
        """Store a fresh code for ``purpose``, invalidating older ones."""
        code = generate_email_code()
        await self.code_repo.invalidate_outstanding(user.id, purpose)
        await self.code_repo.add(
            VerificationCode(
                user_id=user.id,
                purpose=purpose,
                code_hash=hash_token(code),
                expires_at=datetime.now(UTC)
                + timedelta(minutes=settings.email_code_expire_minutes),
            )
        )
        await self.session.commit()
        return code

    async def _consume_code(self, email: str, purpose: VerificationPurpose, code: str) -> User:
        user = await self.user_repo.get_by_email(email)
        if user is None or not await self.code_repo.consume(user.id, purpose, hash_token(code)):
            raise BadRequestError(INVALID_CODE_MESSAGE)
        return user

    async def send_verification_code(self, email: str) -> str:
        """
        Email a verification code if the account exists and is unverified.

        The response never reveals whether the account exists.
        """
        user = await self.user_repo.get_by_email(email)
        if user is not None and not user.email_verified:
            code = await self._issue_code(user, VerificationPurpose.EMAIL_VERIFICATION)
            self.notifications.send_email_verification_code(user, code)
        return VERIFICATION_SENT_MESSAGE

    async def verify_email(self, email: str, code: str, client: ClientInfo | None = None) -> str:
        """
        Mark an email address verified with a one-time code.

        Raises:
            BadRequestError: If the code is wrong, expired or already used
        """
        user = await self._consume_code(email, VerificationPurpose.EMAIL_VERIFICATION, code)
        user.email_verified = True
        await self.user_repo.update(user)
        await self.session.commit()

        await self.audit_service.create_audit_log(
            AuditAction.USER_EMAIL_VERIFIED,
            user_id=user.id,
            user_email=user.email,
            resource_type="user",
            resource_id=user.id,
            client=client,
        )
        return "Email verified successfully."

    async def send_password_reset_code(self, email: str) -> str:
        """Email a password reset code if the account exists."""
        user = await self.user_repo.get_by_email(email)
        if user is not None and user.is_active:
            code = await self._issue_code(user, VerificationPurpose.PASSWORD_RESET)
            self.notifications.send_password_reset_code(user, code)
        return RESET_SENT_MESSAGE

    async def reset_password(
        self,
        email: str,
        code: str,
        new_password: str,
        client: ClientInfo | None = None,
    ) -> str:
        """
        Set a new password with a one-time code and sign out everywhere.

        Raises:
            BadRequestError: If the password is weak or the code is invalid
            UnprocessableEntityError: If the password is known to be breached
        """
        check_password_policy(new_password)
        user = await self._consume_code(email, VerificationPurpose.PASSWORD_RESET, code)

        user.password_hash = hash_password(new_password)
        await self.user_repo.update(user)
        revoked = await self.session_service.revoke_all_for_user(user.id)
        await self.session.commit()

        logger.info(f"Password reset for user {user.id}; {revoked} session(s) revoked")
        await self.audit_service.create_audit_log(
            AuditAction.USER_PASSWORD_RESET,
            user_id=user.id,
            user_email=user.email,
            resource_type="user",
            resource_id=user.id,
            details={"sessions_revoked": revoked},
            severity=AuditSeverity.WARNING,
            client=client,
        )
        return "Password has been reset. Please sign in with your new password."
