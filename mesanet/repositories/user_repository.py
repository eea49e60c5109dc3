"""
User repository for database operations.

This module provides database operations for the User model,
including lookups by email and listing with eager-loaded roles.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.models.user import User
from mesanet.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> User | None:
        """
        Get user by email address (case-insensitive).

        Args:
            email: Email address to search for

        Returns:
            User instance or None if not found
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        """Check whether an account already uses this email."""
        return await self.get_by_email(email) is not None

    async def list_users(self, offset: int = 0, limit: int = 50) -> tuple[list[User], int]:
        """
        List users ordered by creation time (newest first).

        Returns:
            Tuple of (users, total count)
        """
        result = await self.session.execute(
            select(User).order_by(User.created_at.desc()).offset(offset).limit(limit)
        )
        total = await self.count()
        return list(result.scalars().all()), total
