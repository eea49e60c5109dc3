"""
AuditLog model for the security audit trail.

This module implements immutable audit logging for:
- Authentication events (login, logout, failed login, password reset)
- Two-factor lifecycle changes
- Role and account administration
- Access-control denials

Audit logs are WRITE-ONCE - they cannot be modified or deleted after creation.
Actor and resource references are weak (no foreign keys), so deleting a role
or user never cascades into the trail.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, Enum, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mesanet.models.base import Base, JSONType, UTCDateTime, utcnow
from mesanet.models.enums import AuditAction, AuditSeverity, enum_values


class AuditLog(Base):
    """
    Immutable audit log entry.

    Attributes:
        id: UUID primary key
        action: What happened (AuditAction)
        severity: info, warning, error or critical
        user_id: Actor (None for anonymous or system actions)
        user_email: Actor email at the time of the event
        resource_type: Kind of entity affected (e.g. "user", "role")
        resource_id: Identifier of the affected entity
        resource_name: Display name of the affected entity
        details: Free-form JSON metadata
        changes: Before/after values for updates
        ip_address, user_agent, request_id: Request context
        success: Whether the audited action succeeded
        error_message: Failure reason when success is False
        created_at: Insertion time
    """

    __tablename__ = "audit_logs"

    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action_enum", values_callable=enum_values),
        nullable=False,
        index=True,
    )
    severity: Mapped[AuditSeverity] = mapped_column(
        Enum(AuditSeverity, name="audit_severity_enum", values_callable=enum_values),
        nullable=False,
        default=AuditSeverity.INFO,
        index=True,
    )

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    user_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    resource_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    resource_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    changes: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        index=True,
    )

    __table_args__ = (
        Index("ix_audit_logs_user_created", "user_id", "created_at"),
        Index("ix_audit_logs_action_created", "action", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"AuditLog(id={self.id}, action={self.action.value}, "
            f"user_id={self.user_id}, success={self.success})"
        )
