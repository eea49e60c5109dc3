"""
Audit log schemas for API responses and filtering.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from mesanet.models.enums import AuditAction, AuditSeverity
from mesanet.schemas.common import CamelModel


class AuditLogQuery(CamelModel):
    """
    Query parameters for GET /audit-logs.

    Attributes:
        user_id: Actor filter
        action: Action filter (e.g. "user:login")
        severity: Severity filter
        resource_type: Resource kind filter (e.g. "role")
        success: Outcome filter
        start_date, end_date: Inclusive creation-time window
        limit: Page size (1-500, default 100)
        skip: Number of entries to skip
    """

    user_id: uuid.UUID | None = None
    action: AuditAction | None = None
    severity: AuditSeverity | None = None
    resource_type: str | None = Field(default=None, max_length=50)
    success: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int = Field(default=100, ge=1, le=500)
    skip: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_date_range(self) -> "AuditLogQuery":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class AuditStatsQuery(CamelModel):
    """Query parameters for GET /audit-logs/stats."""

    start_date: datetime | None = None
    end_date: datetime | None = None


class AuditLogResponse(CamelModel):
    """Audit log entry as returned by the API."""

    id: uuid.UUID
    action: AuditAction
    severity: AuditSeverity
    user_id: uuid.UUID | None = None
    user_email: str | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    resource_name: str | None = None
    details: dict[str, Any] | None = None
    changes: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None
    success: bool
    error_message: str | None = None
    created_at: datetime


class AuditLogPage(CamelModel):
    """One page of audit log entries."""

    logs: list[AuditLogResponse]
    total: int
    limit: int
    skip: int
    has_more: bool


class AuditStatsResponse(CamelModel):
    """Aggregate counts over the audit trail."""

    by_action: dict[str, int]
    by_severity: dict[str, int]
    failed_logins: int
    total: int
