"""
Shift repository for database operations.

This module provides the overlap query used to keep an employee's
scheduled shifts disjoint, plus windowed listing.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.models.enums import ShiftStatus
from mesanet.models.shift import Shift
from mesanet.repositories.base import BaseRepository


class ShiftRepository(BaseRepository[Shift]):
    """Repository for Shift model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Shift, session)

    async def find_overlapping(
        self,
        user_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_id: uuid.UUID | None = None,
    ) -> Shift | None:
        """
        Find a scheduled shift of the user intersecting [start, end).

        Two windows overlap when each starts before the other ends;
        back-to-back shifts do not overlap. ``exclude_id`` leaves out the
        shift being rescheduled.

        Returns:
            The first overlapping shift, or None
        """
        query = select(Shift).where(
            Shift.user_id == user_id,
            Shift.status == ShiftStatus.SCHEDULED,
            Shift.scheduled_start < end,
            Shift.scheduled_end > start,
        )
        if exclude_id is not None:
            query = query.where(Shift.id != exclude_id)

        result = await self.session.execute(query.order_by(Shift.scheduled_start).limit(1))
        return result.scalar_one_or_none()

    async def list_shifts(
        self,
        user_id: uuid.UUID | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[Shift]:
        """
        List shifts ordered by start time.

        Args:
            user_id: Restrict to one employee
            start, end: Return shifts intersecting this window
        """
        query = select(Shift)
        if user_id is not None:
            query = query.where(Shift.user_id == user_id)
        if start is not None:
            query = query.where(Shift.scheduled_end > start)
        if end is not None:
            query = query.where(Shift.scheduled_start < end)

        result = await self.session.execute(
            query.order_by(Shift.scheduled_start).offset(offset).limit(limit)
        )
        return list(result.scalars().all())
