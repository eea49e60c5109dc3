"""
Role service for role management and system role seeding.

This module provides:
- Idempotent seeding of the built-in roles
- Cached role listing
- Role creation, update and deletion with inheritance validation

System roles (``is_system``) are protected: only their hierarchy level can
change and they cannot be deleted.
"""

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.core.cache import cache
from mesanet.exceptions import (
    AlreadyExistsError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from mesanet.models.enums import (
    DEFAULT_ROLE_PERMISSIONS,
    SYSTEM_ROLE_HIERARCHY,
    AuditAction,
    Permission,
    is_permission,
)
from mesanet.models.user import Role, User
from mesanet.repositories.role_repository import RoleRepository
from mesanet.schemas.role import RoleCreate, RoleResponse, RoleUpdate
from mesanet.services.audit_service import AuditService, ClientInfo
from mesanet.services.permission_service import explicit_parent_ids, validate_inheritance

logger = logging.getLogger(__name__)

ROLES_CACHE_KEY = "roles:all"
ROLES_CACHE_TTL = 300


def _permission_values(permissions: Iterable[Permission | str]) -> list[str]:
    """Validate and normalize permission identifiers for storage."""
    values = []
    for permission in permissions:
        value = permission.value if isinstance(permission, Permission) else str(permission)
        if not is_permission(value):
            raise BadRequestError(f"Invalid permission: {value}")
        if value not in values:
            values.append(value)
    return sorted(values)


def _snapshot(role: Role) -> dict[str, Any]:
    """Audit-friendly view of a role's mutable fields."""
    return {
        "name": role.name,
        "description": role.description,
        "permissions": list(role.permissions or []),
        "hierarchy_level": role.hierarchy_level,
        "is_active": role.is_active,
        "inherits": role.inherits,
        "inherits_from": list(role.inherits_from or []),
    }


class RoleService:
    """
    Service class for role operations.

    This service handles:
    - Seeding system roles at startup
    - Listing roles (read-through cache)
    - Creating, updating and deleting custom roles
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize RoleService.

        Args:
            session: Async database session
        """
        self.session = session
        self.role_repo = RoleRepository(session)
        self.audit_service = AuditService(session)

    async def ensure_system_roles(self) -> list[Role]:
        """
        Create any missing system role with its default permissions.

        Existing roles are left untouched, so running this on every startup
        is safe.

        Returns:
            Roles created by this call
        """
        created = []
        for system_role, permissions in DEFAULT_ROLE_PERMISSIONS.items():
            if await self.role_repo.get_by_name(system_role.value) is not None:
                continue
            role = Role(
                name=system_role.value,
                description=f"Built-in {system_role.value.replace('_', ' ').lower()} role",
                permissions=_permission_values(permissions),
                hierarchy_level=SYSTEM_ROLE_HIERARCHY[system_role],
                is_system=True,
                is_active=True,
                inherits=False,
                inherits_from=[],
            )
            created.append(await self.role_repo.add(role))

        if created:
            await self.session.commit()
            await cache.delete(ROLES_CACHE_KEY)
            logger.info(f"Seeded system roles: {', '.join(r.name for r in created)}")
        return created

    async def list_roles(self) -> list[RoleResponse]:
        """
        All roles, highest hierarchy level first.

        Served from the cache when available.
        """

        async def load() -> list[dict[str, Any]]:
            roles = await self.role_repo.get_all_roles()
            return [RoleResponse.model_validate(r).model_dump(mode="json") for r in roles]

        rows = await cache.get_or_set(ROLES_CACHE_KEY, load, ttl=ROLES_CACHE_TTL)
        return [RoleResponse.model_validate(row) for row in rows]

    async def get_role(self, role_id: uuid.UUID) -> Role:
        """
        Get a role by id.

        Raises:
            NotFoundError: If the role does not exist
        """
        role = await self.role_repo.get_by_id(role_id)
        if role is None:
            raise NotFoundError("Role")
        return role

    async def create_role(
        self,
        data: RoleCreate,
        actor: User,
        client: ClientInfo | None = None,
    ) -> Role:
        """
        Create a custom role.

        Args:
            data: Role definition
            actor: User performing the change
            client: Request details for the audit entry

        Returns:
            Created role

        Raises:
            AlreadyExistsError: If the name is taken
            BadRequestError: On unknown permissions or invalid inheritance
        """
        if await self.role_repo.get_by_name(data.name) is not None:
            raise AlreadyExistsError(f"Role {data.name}")

        permissions = _permission_values(data.permissions)
        roles_by_id = {r.id: r for r in await self.role_repo.get_all_roles()}
        validate_inheritance(
            None,
            data.inherits_from,
            roles_by_id,
            hierarchy_level=data.hierarchy_level,
            inherits=data.inherits,
        )

        try:
            role = await self.role_repo.add(
                Role(
                    name=data.name,
                    description=data.description,
                    permissions=permissions,
                    hierarchy_level=data.hierarchy_level,
                    is_system=False,
                    is_active=True,
                    inherits=data.inherits,
                    inherits_from=[str(parent_id) for parent_id in data.inherits_from],
                )
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise AlreadyExistsError(f"Role {data.name}") from None
        await cache.delete(ROLES_CACHE_KEY)

        logger.info(f"Role created: {role.name} ({role.id}) by {actor.id}")
        await self.audit_service.create_audit_log(
            AuditAction.ROLE_CREATE,
            user_id=actor.id,
            user_email=actor.email,
            resource_type="role",
            resource_id=role.id,
            resource_name=role.name,
            details={"permissions": permissions},
            client=client,
        )
        return role

    async def update_role(
        self,
        role_id: uuid.UUID,
        data: RoleUpdate,
        actor: User,
        client: ClientInfo | None = None,
    ) -> Role:
        """
        Apply the supplied fields to a role.

        Raises:
            NotFoundError: If the role does not exist
            ForbiddenError: If a system role field other than the
                hierarchy level is supplied
            AlreadyExistsError: If the new name is taken
            BadRequestError: On unknown permissions or a circular inheritance
        """
        role = await self.get_role(role_id)
        fields = set(data.model_fields_set)

        if role.is_system and fields - {"hierarchy_level"}:
            raise ForbiddenError("Cannot modify a system role (except hierarchy level)")

        before = _snapshot(role)

        if fields & {"inherits_from", "hierarchy_level", "inherits"}:
            if "inherits_from" in fields and data.inherits_from is not None:
                parents = list(data.inherits_from)
            else:
                parents = explicit_parent_ids(role)
            roles_by_id = {r.id: r for r in await self.role_repo.get_all_roles()}
            validate_inheritance(
                role.id,
                parents,
                roles_by_id,
                hierarchy_level=(
                    data.hierarchy_level
                    if data.hierarchy_level is not None
                    else role.hierarchy_level
                ),
                inherits=data.inherits if data.inherits is not None else role.inherits,
            )

        if "name" in fields and data.name is not None and data.name != role.name:
            if await self.role_repo.get_by_name(data.name) is not None:
                raise AlreadyExistsError(f"Role {data.name}")
            role.name = data.name
        if "description" in fields:
            role.description = data.description
        if "permissions" in fields and data.permissions is not None:
            role.permissions = _permission_values(data.permissions)
        if "is_active" in fields and data.is_active is not None:
            role.is_active = data.is_active
        if "hierarchy_level" in fields and data.hierarchy_level is not None:
            role.hierarchy_level = data.hierarchy_level
        if "inherits" in fields and data.inherits is not None:
            role.inherits = data.inherits
        if "inherits_from" in fields and data.inherits_from is not None:
            role.inherits_from = [str(parent_id) for parent_id in data.inherits_from]

        try:
            role = await self.role_repo.update(role)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise AlreadyExistsError(f"Role {data.name}") from None
        await cache.delete(ROLES_CACHE_KEY)

        after = _snapshot(role)
        changed = {
            key: {"before": before[key], "after": after[key]}
            for key in after
            if before[key] != after[key]
        }

        logger.info(f"Role updated: {role.name} ({role.id}) by {actor.id}")
        await self.audit_service.create_audit_log(
            AuditAction.ROLE_UPDATE,
            user_id=actor.id,
            user_email=actor.email,
            resource_type="role",
            resource_id=role.id,
            resource_name=role.name,
            changes=changed,
            client=client,
        )
        return role

    async def delete_role(
        self,
        role_id: uuid.UUID,
        actor: User,
        client: ClientInfo | None = None,
    ) -> None:
        """
        Delete a custom role that no user references.

        Other roles that inherit from it explicitly have the reference
        removed.

        Raises:
            NotFoundError: If the role does not exist
            ForbiddenError: If the role is a system role
            ConflictError: If users are still assigned the role
        """
        role = await self.get_role(role_id)
        if role.is_system:
            raise ForbiddenError("Cannot delete a system role")

        assigned = await self.role_repo.count_users_with_role(role.id)
        if assigned:
            raise ConflictError(
                f"Cannot delete role {role.name}: it is assigned to {assigned} user(s)"
            )

        role_name = role.name
        role_ref = str(role.id)
        for other in await self.role_repo.get_all_roles():
            if other.id != role.id and role_ref in (other.inherits_from or []):
                other.inherits_from = [p for p in other.inherits_from if p != role_ref]

        await self.role_repo.delete(role)
        await self.session.commit()
        await cache.delete(ROLES_CACHE_KEY)

        logger.info(f"Role deleted: {role_name} ({role_id}) by {actor.id}")
        await self.audit_service.create_audit_log(
            AuditAction.ROLE_DELETE,
            user_id=actor.id,
            user_email=actor.email,
            resource_type="role",
            resource_id=role_id,
            resource_name=role_name,
            client=client,
        )
