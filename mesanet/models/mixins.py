"""
Reusable mixins for database models.

This module provides:
- TimestampMixin: created_at and updated_at timestamps
"""

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from mesanet.models.base import UTCDateTime, utcnow


class TimestampMixin:
    """
    Mixin to add timestamp columns to models.

    Adds:
    - created_at: Timestamp when record was created (auto-set)
    - updated_at: Timestamp when record was last updated (auto-updated)

    Both timestamps use UTC timezone.

    Usage:
        class Role(Base, TimestampMixin):
            __tablename__ = "roles"
            name: Mapped[str]
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
