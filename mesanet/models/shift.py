"""
Shift model for employee scheduling.

A shift is a scheduled working window for one employee. Two scheduled
shifts of the same employee must not overlap; the check lives in
ScheduleService because it spans rows.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mesanet.models.base import Base, UTCDateTime
from mesanet.models.enums import ShiftStatus, enum_values
from mesanet.models.mixins import TimestampMixin


class Shift(Base, TimestampMixin):
    """
    Scheduled shift.

    Attributes:
        user_id: Employee the shift is scheduled for
        location_id: Optional reference to a work location
        scheduled_start, scheduled_end: UTC window; end is after start
        notes: Free text for the employee
        status: scheduled, completed or cancelled
        created_by: Manager who created the shift
    """

    __tablename__ = "shifts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    scheduled_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ShiftStatus] = mapped_column(
        Enum(ShiftStatus, name="shift_status_enum", values_callable=enum_values),
        nullable=False,
        default=ShiftStatus.SCHEDULED,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (
        CheckConstraint("scheduled_end > scheduled_start", name="window_order"),
        Index("ix_shifts_user_window", "user_id", "scheduled_start", "scheduled_end"),
    )

    def __repr__(self) -> str:
        return (
            f"Shift(id={self.id}, user_id={self.user_id}, "
            f"{self.scheduled_start.isoformat()}..{self.scheduled_end.isoformat()})"
        )
