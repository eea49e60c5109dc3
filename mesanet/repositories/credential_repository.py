"""
Repositories for one-time credentials.

This module provides:
- BackupCodeRepository: two-factor recovery codes
- VerificationCodeRepository: emailed 6-digit codes

Both consume codes with a single conditional statement whose row count
decides success, so the same code can never be used twice, even by
concurrent requests.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.models.enums import VerificationPurpose
from mesanet.models.session import VerificationCode
from mesanet.models.user import BackupCode
from mesanet.repositories.base import BaseRepository


class BackupCodeRepository(BaseRepository[BackupCode]):
    """Repository for BackupCode model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(BackupCode, session)

    async def list_for_user(self, user_id: uuid.UUID) -> list[BackupCode]:
        """All unused backup codes of a user."""
        result = await self.session.execute(
            select(BackupCode).where(BackupCode.user_id == user_id)
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: uuid.UUID) -> int:
        """Number of unused backup codes of a user."""
        result = await self.session.execute(
            select(func.count()).select_from(BackupCode).where(BackupCode.user_id == user_id)
        )
        return result.scalar_one()

    async def replace_for_user(self, user_id: uuid.UUID, code_hashes: list[str]) -> None:
        """Delete all existing codes and store ``code_hashes`` in their place."""
        await self.delete_all_for_user(user_id)
        self.session.add_all(BackupCode(user_id=user_id, code_hash=h) for h in code_hashes)
        await self.session.flush()

    async def delete_all_for_user(self, user_id: uuid.UUID) -> int:
        """Delete every code of a user; returns the number removed."""
        result = await self.session.execute(
            delete(BackupCode).where(BackupCode.user_id == user_id)
        )
        return result.rowcount

    async def consume(self, code_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """
        Atomically consume one code.

        Returns:
            True only for the single caller whose DELETE removed the row
        """
        result = await self.session.execute(
            delete(BackupCode).where(BackupCode.id == code_id, BackupCode.user_id == user_id)
        )
        return result.rowcount == 1


class VerificationCodeRepository(BaseRepository[VerificationCode]):
    """Repository for VerificationCode model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(VerificationCode, session)

    async def invalidate_outstanding(
        self, user_id: uuid.UUID, purpose: VerificationPurpose
    ) -> None:
        """Mark unused codes of this purpose as consumed before issuing a new one."""
        await self.session.execute(
            update(VerificationCode)
            .where(
                VerificationCode.user_id == user_id,
                VerificationCode.purpose == purpose,
                VerificationCode.consumed_at.is_(None),
            )
            .values(consumed_at=datetime.now(UTC))
        )

    async def consume(
        self,
        user_id: uuid.UUID,
        purpose: VerificationPurpose,
        code_hash: str,
    ) -> bool:
        """
        Atomically consume a matching, unexpired, unused code.

        Returns:
            True if a code was consumed
        """
        now = datetime.now(UTC)
        result = await self.session.execute(
            update(VerificationCode)
            .where(
                VerificationCode.user_id == user_id,
                VerificationCode.purpose == purpose,
                VerificationCode.code_hash == code_hash,
                VerificationCode.consumed_at.is_(None),
                VerificationCode.expires_at > now,
            )
            .values(consumed_at=now)
        )
        return result.rowcount >= 1
