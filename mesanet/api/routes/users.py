"""
User administration API routes.

This module provides REST endpoints for:
- Listing users
- Replacing a user's roles
- Suspending and reactivating accounts
"""

import uuid

from fastapi import APIRouter
from pydantic import Field

from mesanet.api.pipeline import RequestContext, RouteConfig, guarded
from mesanet.models.enums import Permission
from mesanet.schemas.auth import UserResponse
from mesanet.schemas.common import CamelModel
from mesanet.schemas.user import (
    AssignRolesRequest,
    SuspendRequest,
    SuspendResponse,
    UserListResponse,
)
from mesanet.services.user_service import UserService

router = APIRouter(prefix="/auth/users", tags=["Users"])


class UserListQuery(CamelModel):
    """Pagination for GET /auth/users."""

    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1, le=200)


@router.get("", summary="List users")
@guarded(RouteConfig(require_permission=Permission.USER_LIST, query=UserListQuery))
async def list_users(ctx: RequestContext) -> UserListResponse:
    return await UserService(ctx.db).list_users(skip=ctx.query.skip, limit=ctx.query.limit)


@router.patch("/{user_id}", summary="Replace a user's roles")
@guarded(
    RouteConfig(
        require_permission=Permission.ROLE_ASSIGN,
        parser=AssignRolesRequest,
        params={"user_id": uuid.UUID},
    )
)
async def assign_roles(ctx: RequestContext) -> UserResponse:
    """
    Set the complete role list of a user.

    Each added and each removed role is audited separately, and the user is
    notified by email.
    """
    user = await UserService(ctx.db).assign_roles(
        ctx.params["user_id"], ctx.body.roles, ctx.user, ctx.client
    )
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/suspend", summary="Suspend or reactivate a user")
@guarded(
    RouteConfig(
        require_permission=Permission.USER_UPDATE,
        parser=SuspendRequest,
        params={"user_id": uuid.UUID},
    )
)
async def set_user_active(ctx: RequestContext) -> SuspendResponse:
    """Suspending signs the user out of every session."""
    return await UserService(ctx.db).set_active(
        ctx.params["user_id"],
        ctx.body.is_active,
        ctx.user,
        reason=ctx.body.reason,
        client=ctx.client,
    )
