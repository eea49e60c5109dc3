"""
Role management API routes.

This module provides REST endpoints for listing, creating, updating and
deleting roles. System roles can only have their hierarchy level changed.
"""

import uuid

from fastapi import APIRouter

from mesanet.api.pipeline import RequestContext, RouteConfig, guarded
from mesanet.models.enums import Permission
from mesanet.schemas.common import MessageResponse
from mesanet.schemas.role import RoleCreate, RoleResponse, RoleUpdate
from mesanet.services.role_service import RoleService

router = APIRouter(prefix="/roles", tags=["Roles"])


@router.get("", summary="List roles")
@guarded(RouteConfig(require_permission=Permission.ROLE_READ))
async def list_roles(ctx: RequestContext) -> list[RoleResponse]:
    """All roles, highest hierarchy level first."""
    return await RoleService(ctx.db).list_roles()


@router.post("", status_code=201, summary="Create a role")
@guarded(
    RouteConfig(
        require_permission=Permission.ROLE_CREATE,
        parser=RoleCreate,
        status_code=201,
    )
)
async def create_role(ctx: RequestContext) -> RoleResponse:
    role = await RoleService(ctx.db).create_role(ctx.body, ctx.user, ctx.client)
    return RoleResponse.model_validate(role)


@router.patch("/{role_id}", summary="Update a role")
@guarded(
    RouteConfig(
        require_permission=Permission.ROLE_UPDATE,
        parser=RoleUpdate,
        params={"role_id": uuid.UUID},
    )
)
async def update_role(ctx: RequestContext) -> RoleResponse:
    role = await RoleService(ctx.db).update_role(
        ctx.params["role_id"], ctx.body, ctx.user, ctx.client
    )
    return RoleResponse.model_validate(role)


@router.delete("/{role_id}", summary="Delete a role")
@guarded(
    RouteConfig(
        require_permission=Permission.ROLE_DELETE,
        params={"role_id": uuid.UUID},
    )
)
async def delete_role(ctx: RequestContext) -> MessageResponse:
    """Fails with 409 while any user is still assigned the role."""
    await RoleService(ctx.db).delete_role(ctx.params["role_id"], ctx.user, ctx.client)
    return MessageResponse(message="Role deleted successfully")
