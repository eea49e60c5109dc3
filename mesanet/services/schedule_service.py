"""
Schedule service for employee shifts.

Shifts of one employee never overlap unless an authorized manager
explicitly overrides the check.
"""

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.exceptions import BadRequestError, NotFoundError
from mesanet.models.enums import AuditAction, Permission, ShiftStatus
from mesanet.models.shift import Shift
from mesanet.models.user import User
from mesanet.repositories.shift_repository import ShiftRepository
from mesanet.repositories.user_repository import UserRepository
from mesanet.schemas.schedule import ScheduleCreate, ScheduleQuery, ScheduleUpdate
from mesanet.services.audit_service import AuditService, ClientInfo

logger = logging.getLogger(__name__)


def _snapshot(shift: Shift) -> dict[str, Any]:
    """Audit-friendly view of a shift's mutable fields."""
    return {
        "user_id": str(shift.user_id),
        "scheduled_start": shift.scheduled_start.isoformat(),
        "scheduled_end": shift.scheduled_end.isoformat(),
        "status": shift.status.value,
        "location_id": shift.location_id,
        "notes": shift.notes,
    }


class ScheduleService:
    """Service class for scheduling, listing, rescheduling and deleting shifts."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.shift_repo = ShiftRepository(session)
        self.user_repo = UserRepository(session)
        self.audit_service = AuditService(session)

    async def create_schedule(
        self,
        data: ScheduleCreate,
        actor: User,
        actor_permissions: frozenset[Permission],
        client: ClientInfo | None = None,
    ) -> Shift:
        """
        Schedule a shift for an employee.

        Args:
            data: Shift window and details
            actor: Manager creating the shift
            actor_permissions: Effective permissions of the actor
            client: Request details for the audit entry

        Raises:
            BadRequestError: If the window is empty or overlaps another
                scheduled shift of the employee
            NotFoundError: If the employee does not exist
        """
        if data.scheduled_end <= data.scheduled_start:
            raise BadRequestError("Scheduled end time must be after start time")

        employee = await self.user_repo.get_by_id(data.user_id)
        if employee is None:
            raise NotFoundError("User")

        may_override = data.override_allowed and Permission.SHIFT_UPDATE_ANY in actor_permissions
        if not may_override:
            clash = await self.shift_repo.find_overlapping(
                employee.id, data.scheduled_start, data.scheduled_end
            )
            if clash is not None:
                raise BadRequestError("Employee already has a scheduled shift during this time")

        shift = await self.shift_repo.add(
            Shift(
                user_id=employee.id,
                location_id=data.location_id,
                scheduled_start=data.scheduled_start,
                scheduled_end=data.scheduled_end,
                notes=data.notes,
                status=ShiftStatus.SCHEDULED,
                created_by=actor.id,
            )
        )
        await self.session.commit()
        logger.info(f"Shift {shift.id} scheduled for {employee.id} by {actor.id}")

        await self.audit_service.create_audit_log(
            AuditAction.SHIFT_CREATE,
            user_id=actor.id,
            user_email=actor.email,
            resource_type="shift",
            resource_id=shift.id,
            resource_name=employee.email,
            details={
                "start": shift.scheduled_start.isoformat(),
                "end": shift.scheduled_end.isoformat(),
                "override": may_override,
            },
            client=client,
        )
        return shift

    async def list_schedules(
        self,
        actor: User,
        actor_permissions: frozenset[Permission],
        query: ScheduleQuery,
    ) -> list[Shift]:
        """
        List shifts visible to the actor.

        Holders of ``shift:read:any`` see every employee (optionally
        filtered by ``user_id``); everyone else sees only their own shifts.
        """
        if Permission.SHIFT_READ_ANY in actor_permissions:
            user_id = query.user_id
        else:
            user_id = actor.id

        return await self.shift_repo.list_shifts(
            user_id=user_id,
            start=query.start,
            end=query.end,
            offset=query.skip,
            limit=query.limit,
        )

    async def get_schedule(self, shift_id: uuid.UUID) -> Shift:
        """
        Get a shift by id.

        Raises:
            NotFoundError: If the shift does not exist
        """
        shift = await self.shift_repo.get_by_id(shift_id)
        if shift is None:
            raise NotFoundError("Shift")
        return shift

    async def update_schedule(
        self,
        shift_id: uuid.UUID,
        data: ScheduleUpdate,
        actor: User,
        actor_permissions: frozenset[Permission],
        client: ClientInfo | None = None,
    ) -> Shift:
        """
        Apply the supplied fields to a shift.

        A shift that is scheduled after the change is checked for overlaps
        against the employee's other scheduled shifts, unless the override
        applies as on create.

        Raises:
            NotFoundError: If the shift does not exist
            BadRequestError: If the window is empty or overlaps another
                scheduled shift of the employee
        """
        shift = await self.get_schedule(shift_id)
        fields = set(data.model_fields_set)
        before = _snapshot(shift)

        start = data.scheduled_start or shift.scheduled_start
        end = data.scheduled_end or shift.scheduled_end
        status = data.status or shift.status
        if end <= start:
            raise BadRequestError("Scheduled end time must be after start time")

        may_override = data.override_allowed and Permission.SHIFT_UPDATE_ANY in actor_permissions
        rescheduled = bool(fields & {"scheduled_start", "scheduled_end", "status"})
        if status == ShiftStatus.SCHEDULED and rescheduled and not may_override:
            clash = await self.shift_repo.find_overlapping(
                shift.user_id, start, end, exclude_id=shift.id
            )
            if clash is not None:
                raise BadRequestError("Employee already has a scheduled shift during this time")

        shift.scheduled_start = start
        shift.scheduled_end = end
        shift.status = status
        if "location_id" in fields:
            shift.location_id = data.location_id
        if "notes" in fields:
            shift.notes = data.notes

        shift = await self.shift_repo.update(shift)
        await self.session.commit()
        logger.info(f"Shift {shift.id} updated by {actor.id}")

        after = _snapshot(shift)
        await self.audit_service.create_audit_log(
            AuditAction.SHIFT_UPDATE,
            user_id=actor.id,
            user_email=actor.email,
            resource_type="shift",
            resource_id=shift.id,
            changes={
                key: {"before": before[key], "after": after[key]}
                for key in after
                if before[key] != after[key]
            },
            details={"override": may_override},
            client=client,
        )
        return shift

    async def delete_schedule(
        self,
        shift_id: uuid.UUID,
        actor: User,
        client: ClientInfo | None = None,
    ) -> None:
        """Permanently delete a shift."""
        shift = await self.get_schedule(shift_id)
        snapshot = _snapshot(shift)

        await self.shift_repo.delete(shift)
        await self.session.commit()
        logger.info(f"Shift {shift_id} deleted by {actor.id}")

        await self.audit_service.create_audit_log(
            AuditAction.SHIFT_DELETE,
            user_id=actor.id,
            user_email=actor.email,
            resource_type="shift",
            resource_id=shift_id,
            details=snapshot,
            client=client,
        )
