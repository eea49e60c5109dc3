"""
Two-factor authentication service (TOTP + backup codes).

This module provides:
- Setup: generate and store an encrypted TOTP secret
- Verification and enablement, issuing one-time backup codes
- Second-factor checks with either a TOTP code or a backup code
- Disabling two-factor and regenerating backup codes

TOTP uses pyotp with a +/- one step tolerance (``valid_window=1``). Backup
codes are 8 upper-case hex characters, stored as SHA-256 hashes and
consumed by deleting their row.
"""

import logging
import secrets

import pyotp
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.core.config import settings
from mesanet.core.encryption import SecretCipher
from mesanet.core.security import constant_time_equals, hash_token
from mesanet.exceptions import BadRequestError, EncryptionError, UnauthorizedError
from mesanet.models.enums import AuditAction, AuditSeverity
from mesanet.models.user import User
from mesanet.repositories.credential_repository import BackupCodeRepository
from mesanet.repositories.user_repository import UserRepository
from mesanet.schemas.auth import (
    BackupCodesResponse,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
)
from mesanet.services.audit_service import AuditService, ClientInfo
from mesanet.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid verification code"


def generate_backup_codes(count: int) -> list[str]:
    """Generate ``count`` fresh backup codes (8 upper-case hex characters)."""
    return [secrets.token_hex(4).upper() for _ in range(count)]


def _is_totp_format(token: str | None) -> bool:
    return token is not None and len(token) == 6 and token.isdigit()


class TwoFactorService:
    """
    Service class for two-factor operations.

    This service handles:
    - TOTP secret provisioning
    - Enabling and disabling two-factor authentication
    - Backup code issuance and single-use consumption
    - Second-factor verification for login and sensitive operations
    """

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService | None = None,
        cipher: SecretCipher | None = None,
    ):
        """
        Initialize TwoFactorService.

        Args:
            session: Async database session
            notifications: Email notifications (defaults to the queued sender)
            cipher: Secret cipher (defaults to the configured key)
        """
        self.session = session
        self.user_repo = UserRepository(session)
        self.backup_repo = BackupCodeRepository(session)
        self.audit_service = AuditService(session)
        self.notifications = notifications or NotificationService()
        self.cipher = cipher or SecretCipher()

    async def setup(self, user: User) -> TwoFactorSetupResponse:
        """
        Generate a new TOTP secret for the user.

        The secret is stored encrypted with two-factor still disabled until
        ``verify_and_enable`` succeeds. Calling setup again before enabling
        replaces the pending secret.

        Returns:
            Secret and otpauth:// provisioning URI (shown exactly once)

        Raises:
            BadRequestError: If two-factor is already enabled
        """
        if user.two_factor_enabled:
            raise BadRequestError("Two-factor authentication is already enabled")

        secret = pyotp.random_base32()
        user.two_factor_secret = self.cipher.encrypt(secret)
        user.two_factor_enabled = False
        await self.user_repo.update(user)
        await self.session.commit()

        provisioning_uri = pyotp.TOTP(secret).provisioning_uri(
            name=user.email,
            issuer_name=settings.two_factor_issuer,
        )
        logger.info(f"Two-factor setup started for user {user.id}")
        return TwoFactorSetupResponse(
            secret=secret,
            provisioning_uri=provisioning_uri,
            message=(
                "Add this account to your authenticator app, then verify a code "
                "to enable two-factor authentication"
            ),
        )

    async def verify_and_enable(
        self,
        user: User,
        token: str,
        client: ClientInfo | None = None,
    ) -> BackupCodesResponse:
        """
        Confirm the pending secret with a TOTP code and enable two-factor.

        Args:
            user: User who ran setup
            token: 6-digit code from the authenticator app
            client: Request details for the audit entry

        Returns:
            Message and the freshly issued backup codes

        Raises:
            BadRequestError: If the code is malformed or setup was not started
            UnauthorizedError: If the code does not verify
        """
        if not _is_totp_format(token):
            raise BadRequestError("Verification code must be exactly 6 digits")
        if user.two_factor_secret is None:
            raise BadRequestError("Two-factor setup has not been started")

        if not self.verify_totp(user, token):
            await self._audit_failure(user, "enable", client)
            raise UnauthorizedError(INVALID_CODE_MESSAGE)

        codes = generate_backup_codes(settings.two_factor_backup_code_count)
        user.two_factor_enabled = True
        await self.user_repo.update(user)
        await self.backup_repo.replace_for_user(user.id, [hash_token(c) for c in codes])
        await self.session.commit()

        logger.info(f"Two-factor enabled for user {user.id}")
        await self.audit_service.create_audit_log(
            AuditAction.TWO_FACTOR_ENABLE,
            user_id=user.id,
            user_email=user.email,
            resource_type="user",
            resource_id=user.id,
            client=client,
        )
        self.notifications.send_two_factor_enabled(user)
        return BackupCodesResponse(
            message="Two-factor authentication enabled. Store your backup codes securely.",
            backup_codes=codes,
        )

    def verify_totp(self, user: User, token: str) -> bool:
        """
        Check a TOTP code against the user's stored secret.

        Returns:
            True if the code is valid for the current time step (+/- 1)
        """
        if not _is_totp_format(token) or user.two_factor_secret is None:
            return False
        try:
            secret = self.cipher.decrypt(user.two_factor_secret)
        except EncryptionError:
            logger.error(f"Stored two-factor secret of user {user.id} cannot be decrypted")
            return False
        return pyotp.TOTP(secret).verify(token, valid_window=1)

    async def consume_backup_code(self, user: User, code: str) -> bool:
        """
        Use up a backup code.

        The code is matched in constant time against the stored hashes and
        the matching row is deleted. Only the caller whose DELETE removed
        the row succeeds, so a code works at most once.

        Returns:
            True if the code was valid and has now been consumed
        """
        candidate = hash_token(code.strip().upper())
        for stored in await self.backup_repo.list_for_user(user.id):
            if constant_time_equals(stored.code_hash, candidate):
                consumed = await self.backup_repo.consume(stored.id, user.id)
                await self.session.commit()
                if consumed:
                    logger.info(f"Backup code consumed for user {user.id}")
                return consumed
        return False

    async def verify_second_factor(
        self,
        user: User,
        token: str | None = None,
        backup_code: str | None = None,
        client: ClientInfo | None = None,
    ) -> None:
        """
        Verify a fresh second factor: a TOTP code or else a backup code.

        Only an enabled factor counts; a secret from an unconfirmed setup
        does not.

        Raises:
            BadRequestError: If neither value is provided or two-factor is
                not enabled
            UnauthorizedError: If the supplied value does not verify
        """
        if not token and not backup_code:
            raise BadRequestError("Either token or backupCode must be provided")
        if not user.two_factor_enabled:
            raise BadRequestError("Two-factor authentication is not enabled")

        if token:
            valid = self.verify_totp(user, token)
        else:
            valid = await self.consume_backup_code(user, backup_code)

        if not valid:
            await self._audit_failure(user, "verify", client)
            raise UnauthorizedError(INVALID_CODE_MESSAGE)

    async def disable(
        self,
        user: User,
        token: str | None = None,
        backup_code: str | None = None,
        client: ClientInfo | None = None,
    ) -> None:
        """
        Turn two-factor off after a fresh verification.

        Clears the secret and deletes every backup code.

        Raises:
            BadRequestError: If two-factor is not enabled or no factor given
            UnauthorizedError: If verification fails
        """
        if not user.two_factor_enabled:
            raise BadRequestError("Two-factor authentication is not enabled")
        await self.verify_second_factor(user, token, backup_code, client)

        user.two_factor_secret = None
        user.two_factor_enabled = False
        await self.user_repo.update(user)
        await self.backup_repo.delete_all_for_user(user.id)
        await self.session.commit()

        logger.info(f"Two-factor disabled for user {user.id}")
        await self.audit_service.create_audit_log(
            AuditAction.TWO_FACTOR_DISABLE,
            user_id=user.id,
            user_email=user.email,
            resource_type="user",
            resource_id=user.id,
            severity=AuditSeverity.WARNING,
            client=client,
        )
        self.notifications.send_two_factor_disabled(user)

    async def regenerate_backup_codes(
        self,
        user: User,
        token: str | None = None,
        backup_code: str | None = None,
        client: ClientInfo | None = None,
    ) -> BackupCodesResponse:
        """
        Replace all backup codes after a fresh verification.

        Raises:
            BadRequestError: If two-factor is not enabled or no factor given
            UnauthorizedError: If verification fails
        """
        if not user.two_factor_enabled:
            raise BadRequestError("Two-factor authentication is not enabled")
        await self.verify_second_factor(user, token, backup_code, client)

        codes = generate_backup_codes(settings.two_factor_backup_code_count)
        await self.backup_repo.replace_for_user(user.id, [hash_token(c) for c in codes])
        await self.session.commit()

        await self.audit_service.create_audit_log(
            AuditAction.TWO_FACTOR_BACKUP_CODES,
            user_id=user.id,
            user_email=user.email,
            resource_type="user",
            resource_id=user.id,
            client=client,
        )
        return BackupCodesResponse(
            message="New backup codes generated. Previous codes no longer work.",
            backup_codes=codes,
        )

    async def status(self, user: User) -> TwoFactorStatusResponse:
        """Whether two-factor is enabled and how many backup codes remain."""
        remaining = await self.backup_repo.count_for_user(user.id)
        return TwoFactorStatusResponse(
            enabled=user.two_factor_enabled,
            backup_codes_remaining=remaining,
        )

    async def _audit_failure(self, user: User, step: str, client: ClientInfo | None) -> None:
        await self.audit_service.create_audit_log(
            AuditAction.TWO_FACTOR_FAILED,
            user_id=user.id,
            user_email=user.email,
            resource_type="user",
            resource_id=user.id,
            details={"step": step},
            severity=AuditSeverity.WARNING,
            success=False,
            error_message=INVALID_CODE_MESSAGE,
            client=client,
        )
