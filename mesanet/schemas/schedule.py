"""
Schedule (shift) schemas.

Timestamps must carry a timezone offset; they are stored in UTC.
"""

import uuid
from datetime import datetime

from pydantic import AwareDatetime, Field

from mesanet.models.enums import ShiftStatus
from mesanet.schemas.common import CamelModel


class ScheduleCreate(CamelModel):
    """Request body for POST /timesheets/schedules."""

    user_id: uuid.UUID
    location_id: str | None = Field(default=None, max_length=64)
    scheduled_start: AwareDatetime
    scheduled_end: AwareDatetime
    notes: str | None = Field(default=None, max_length=1000)
    override_allowed: bool = False


class ScheduleQuery(CamelModel):
    """Query parameters for GET /timesheets/schedules."""

    user_id: uuid.UUID | None = None
    start: AwareDatetime | None = None
    end: AwareDatetime | None = None
    limit: int = Field(default=100, ge=1, le=500)
    skip: int = Field(default=0, ge=0)


class ShiftResponse(CamelModel):
    """Shift as returned by the API."""

    id: uuid.UUID
    user_id: uuid.UUID
    location_id: str | None = None
    scheduled_start: datetime
    scheduled_end: datetime
    notes: str | None = None
    status: ShiftStatus
    created_by: uuid.UUID | None = None
    created_at: datetime


class ScheduleUpdate(CamelModel):
    """
    Request body for PATCH /timesheets/schedules/{id}.

    Only supplied fields are applied. The employee cannot be changed.
    """

    location_id: str | None = Field(default=None, max_length=64)
    scheduled_start: AwareDatetime | None = None
    scheduled_end: AwareDatetime | None = None
    notes: str | None = Field(default=None, max_length=1000)
    status: ShiftStatus | None = None
    override_allowed: bool = False
