"""
Role repository for database operations.

This module provides database operations for the Role model, including
lookups by name and the reference counts needed before deleting a role.
"""

import uuid
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.models.user import Role, user_roles
from mesanet.repositories.base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    """Repository for Role model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Role, session)

    async def get_by_name(self, name: str) -> Role | None:
        """
        Get role by name (exact match).

        Args:
            name: Role name (e.g. "ADMIN")

        Returns:
            Role instance or None if not found
        """
        result = await self.session.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def get_by_names(self, names: Iterable[str]) -> list[Role]:
        """Get all roles whose name is in ``names``."""
        names = list(names)
        if not names:
            return []
        result = await self.session.execute(select(Role).where(Role.name.in_(names)))
        return list(result.scalars().all())

    async def get_all_roles(self) -> list[Role]:
        """
        Get every role, highest hierarchy level first.

        The role table is small, so permission resolution loads it whole.
        """
        result = await self.session.execute(
            select(Role).order_by(Role.hierarchy_level.desc(), Role.name)
        )
        return list(result.scalars().all())

    async def count_users_with_role(self, role_id: uuid.UUID) -> int:
        """Count users that currently reference the role."""
        result = await self.session.execute(
            select(func.count()).select_from(user_roles).where(user_roles.c.role_id == role_id)
        )
        return result.scalar_one()
