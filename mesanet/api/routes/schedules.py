"""
Schedule API routes.

This module provides REST endpoints for creating shifts, listing the
shifts visible to the caller, and reading, editing or deleting one shift.
"""

import uuid

from fastapi import APIRouter

from mesanet.api.pipeline import RequestContext, RouteConfig, guarded
from mesanet.models.enums import Permission
from mesanet.schemas.common import MessageResponse
from mesanet.schemas.schedule import (
    ScheduleCreate,
    ScheduleQuery,
    ScheduleUpdate,
    ShiftResponse,
)
from mesanet.services.schedule_service import ScheduleService

router = APIRouter(prefix="/timesheets/schedules", tags=["Schedules"])


@router.post("", status_code=201, summary="Schedule a shift")
@guarded(
    RouteConfig(
        require_permission=Permission.SHIFT_CREATE_ANY,
        parser=ScheduleCreate,
        status_code=201,
    )
)
async def create_schedule(ctx: RequestContext) -> ShiftResponse:
    """
    Create a shift for an employee.

    Overlapping an existing scheduled shift of the same employee is rejected
    unless `overrideAllowed` is true and the caller holds `shift:update:any`.
    """
    shift = await ScheduleService(ctx.db).create_schedule(
        ctx.body, ctx.user, ctx.auth.permissions, ctx.client
    )
    return ShiftResponse.model_validate(shift)


@router.get("", summary="List shifts")
@guarded(
    RouteConfig(
        require_any_permission=(Permission.SHIFT_READ_OWN, Permission.SHIFT_READ_ANY),
        query=ScheduleQuery,
    )
)
async def list_schedules(ctx: RequestContext) -> list[ShiftResponse]:
    """Callers without `shift:read:any` only see their own shifts."""
    shifts = await ScheduleService(ctx.db).list_schedules(
        ctx.user, ctx.auth.permissions, ctx.query
    )
    return [ShiftResponse.model_validate(s) for s in shifts]


@router.get("/{shift_id}", summary="Get a shift")
@guarded(
    RouteConfig(
        require_permission=Permission.SHIFT_READ_ANY,
        params={"shift_id": uuid.UUID},
    )
)
async def get_schedule(ctx: RequestContext) -> ShiftResponse:
    shift = await ScheduleService(ctx.db).get_schedule(ctx.params["shift_id"])
    return ShiftResponse.model_validate(shift)


@router.patch("/{shift_id}", summary="Reschedule or edit a shift")
@guarded(
    RouteConfig(
        require_permission=Permission.SHIFT_UPDATE_ANY,
        parser=ScheduleUpdate,
        params={"shift_id": uuid.UUID},
    )
)
async def update_schedule(ctx: RequestContext) -> ShiftResponse:
    """
    Apply the supplied fields to a shift.

    A shift that stays scheduled is checked against the employee's other
    scheduled shifts unless `overrideAllowed` is true.
    """
    shift = await ScheduleService(ctx.db).update_schedule(
        ctx.params["shift_id"], ctx.body, ctx.user, ctx.auth.permissions, ctx.client
    )
    return ShiftResponse.model_validate(shift)


@router.delete("/{shift_id}", summary="Delete a shift")
@guarded(
    RouteConfig(
        require_permission=Permission.SHIFT_DELETE_ANY,
        params={"shift_id": uuid.UUID},
    )
)
async def delete_schedule(ctx: RequestContext) -> MessageResponse:
    await ScheduleService(ctx.db).delete_schedule(ctx.params["shift_id"], ctx.user, ctx.client)
    return MessageResponse(message="Shift deleted successfully")
