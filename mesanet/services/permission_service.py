"""
Permission service for role-based access control.

This module resolves the effective permission set of a user from the roles
assigned to them, following role inheritance.

Inheritance Model:
    - A role grants its own ``permissions``
    - When ``inherits`` is set, it also grants everything its parents grant
    - Parents are the ids listed in ``inherits_from``; an empty list means
      every active role with a strictly lower ``hierarchy_level``
    - Inactive or unresolvable roles grant nothing
    - Cycles are cut by tracking visited roles

Usage:
    permission_service = PermissionService(session)
    permissions = await permission_service.compute_effective_permissions(user)
    if not has_permission(permissions, Permission.ROLE_CREATE):
        raise ForbiddenError(...)
"""

import logging
import uuid
from collections.abc import Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.exceptions import BadRequestError
from mesanet.models.enums import Permission, is_permission
from mesanet.models.user import Role, User
from mesanet.repositories.role_repository import RoleRepository

logger = logging.getLogger(__name__)


def explicit_parent_ids(role: Role) -> list[uuid.UUID]:
    """Parent ids listed in ``inherits_from``; malformed entries are skipped."""
    parents = []
    for raw in role.inherits_from or []:
        try:
            parents.append(uuid.UUID(str(raw)))
        except ValueError:
            logger.warning(f"Role {role.name} has malformed parent reference '{raw}'")
    return parents


def _parent_ids(role: Role, roles_by_id: Mapping[uuid.UUID, Role]) -> list[uuid.UUID]:
    """Direct parents of a role, honoring the implicit lower-level rule."""
    if role.inherits_from:
        return explicit_parent_ids(role)

    return [
        other.id
        for other in roles_by_id.values()
        if other.is_active and other.hierarchy_level < role.hierarchy_level
    ]


def list_permissions(
    role: Role,
    roles_by_id: Mapping[uuid.UUID, Role],
    _visited: set[uuid.UUID] | None = None,
) -> frozenset[Permission]:
    """
    Permissions granted by a role, including inherited ones.

    Args:
        role: Role to resolve
        roles_by_id: Every known role, keyed by id

    Returns:
        Set of catalog permissions; identifiers unknown to the catalog are
        ignored

    Example:
        >>> list_permissions(manager, {r.id: r for r in roles})
        frozenset({<Permission.USER_READ: 'user:read'>, ...})
    """
    visited = _visited if _visited is not None else set()
    if role.id in visited:
        return frozenset()
    visited.add(role.id)

    granted = {Permission(p) for p in role.permissions or [] if is_permission(p)}

    if role.inherits:
        for parent_id in _parent_ids(role, roles_by_id):
            parent = roles_by_id.get(parent_id)
            if parent is None or not parent.is_active:
                continue
            granted |= list_permissions(parent, roles_by_id, visited)

    return frozenset(granted)


def has_permission(permissions: Iterable[Permission], required: Permission) -> bool:
    """Return True if ``required`` is in ``permissions``."""
    return required in set(permissions)


def has_any_permission(permissions: Iterable[Permission], required: Iterable[Permission]) -> bool:
    """Return True if at least one of ``required`` is held."""
    held = set(permissions)
    return any(p in held for p in required)


def has_all_permissions(permissions: Iterable[Permission], required: Iterable[Permission]) -> bool:
    """Return True if every one of ``required`` is held."""
    return set(required).issubset(set(permissions))


def validate_inheritance(
    role_id: uuid.UUID | None,
    inherits_from: Iterable[uuid.UUID],
    roles_by_id: Mapping[uuid.UUID, Role],
    *,
    hierarchy_level: int | None = None,
    inherits: bool | None = None,
) -> None:
    """
    Reject a role definition that would introduce an inheritance cycle.

    The role is placed in the graph with its proposed parents, level and
    ``inherits`` flag, then every edge reachable from it is followed.
    Explicit ``inherits_from`` edges always count. A role with ``inherits``
    set and no explicit parents points at every role with a lower level,
    active or not, so that reactivating a role cannot close a loop.
    Reaching the role again means the write would create a cycle.

    Args:
        role_id: Role being written (None for a role not yet created)
        inherits_from: Proposed parent ids
        roles_by_id: Every known role, keyed by id
        hierarchy_level: Proposed level (defaults to the stored one, or 0)
        inherits: Proposed flag (defaults to the stored one, or False)

    Raises:
        BadRequestError: On self-inheritance, unknown parents or a cycle
    """
    parents = list(inherits_from)
    if role_id is not None and role_id in parents:
        raise BadRequestError("Circular inheritance detected")
    if any(parent_id not in roles_by_id for parent_id in parents):
        raise BadRequestError("One or more parent roles not found")

    stored = roles_by_id.get(role_id) if role_id is not None else None
    if hierarchy_level is None:
        hierarchy_level = stored.hierarchy_level if stored is not None else 0
    if inherits is None:
        inherits = stored.inherits if stored is not None else False

    node_id = role_id if role_id is not None else uuid.uuid4()
    graph: dict[uuid.UUID, tuple[int, bool, list[uuid.UUID]]] = {
        role.id: (role.hierarchy_level, role.inherits, explicit_parent_ids(role))
        for role in roles_by_id.values()
    }
    graph[node_id] = (hierarchy_level, inherits, parents)

    def edges(current_id: uuid.UUID) -> list[uuid.UUID]:
        level, implicit, explicit = graph[current_id]
        if explicit:
            return explicit
        if not implicit:
            return []
        return [other_id for other_id, node in graph.items() if node[0] < level]

    stack = list(edges(node_id))
    seen: set[uuid.UUID] = set()
    while stack:
        current_id = stack.pop()
        if current_id == node_id:
            raise BadRequestError("Circular inheritance detected")
        if current_id in seen or current_id not in graph:
            continue
        seen.add(current_id)
        stack.extend(edges(current_id))


class PermissionService:
    """
    Resolves effective permissions against the stored role table.

    The role table is small, so it is loaded once per resolution and
    inheritance is walked in memory.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize permission service.

        Args:
            session: Async database session
        """
        self.session = session
        self.role_repo = RoleRepository(session)

    async def roles_by_id(self) -> dict[uuid.UUID, Role]:
        """Every role keyed by id."""
        return {role.id: role for role in await self.role_repo.get_all_roles()}

    async def compute_effective_permissions(self, user: User) -> frozenset[Permission]:
        """
        Union of the permissions granted by the user's active roles.

        Args:
            user: User with roles loaded

        Returns:
            Effective permission set (empty for a user without active roles)
        """
        active_roles = [role for role in user.roles if role.is_active]
        if not active_roles:
            return frozenset()

        roles_by_id = await self.roles_by_id()
        effective: set[Permission] = set()
        for role in active_roles:
            effective |= list_permissions(role, roles_by_id)
        return frozenset(effective)
