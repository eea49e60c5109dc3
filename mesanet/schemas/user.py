"""
User administration schemas.

This module provides request bodies and responses for role assignment,
suspension and user listing.
"""

from pydantic import Field

from mesanet.schemas.auth import UserResponse
from mesanet.schemas.common import CamelModel


class AssignRolesRequest(CamelModel):
    """Request body for PATCH /auth/users/{id}: the complete new role set."""

    roles: list[str] = Field(..., max_length=20)


class SuspendRequest(CamelModel):
    """Request body for PATCH /auth/users/{id}/suspend."""

    is_active: bool
    reason: str | None = Field(default=None, max_length=500)


class SuspendResponse(CamelModel):
    """Outcome of a suspension or activation."""

    user: UserResponse
    message: str


class UserListResponse(CamelModel):
    """One page of users."""

    users: list[UserResponse]
    total: int
    limit: int
    skip: int
