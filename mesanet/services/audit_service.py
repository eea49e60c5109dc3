"""
Audit service for the security audit trail.

This module provides:
- Audit log creation that never fails the calling operation
- Filtered, paginated audit log search
- Aggregate statistics (by action, by severity, failed logins)

All audit logs are immutable - they cannot be modified or deleted after creation.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.models.audit_log import AuditLog
from mesanet.models.enums import AuditAction, AuditSeverity
from mesanet.repositories.audit_repository import AuditLogRepository
from mesanet.schemas.audit import (
    AuditLogPage,
    AuditLogQuery,
    AuditLogResponse,
    AuditStatsResponse,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientInfo:
    """Request details copied into audit entries."""

    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None


class AuditService:
    """
    Service class for audit logging operations.

    This service handles:
    - Recording security and administrative events
    - Audit log retrieval with filtering
    - Summary statistics for administrators
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize AuditService.

        Args:
            session: Async database session
        """
        self.session = session
        self.audit_repo = AuditLogRepository(session)

    async def create_audit_log(
        self,
        action: AuditAction,
        *,
        user_id: uuid.UUID | None = None,
        user_email: str | None = None,
        resource_type: str | None = None,
        resource_id: Any = None,
        resource_name: str | None = None,
        details: dict[str, Any] | None = None,
        changes: dict[str, Any] | None = None,
        client: ClientInfo | None = None,
        severity: AuditSeverity = AuditSeverity.INFO,
        success: bool = True,
        error_message: str | None = None,
    ) -> AuditLog | None:
        """
        Record an audit event and commit it.

        The entry is committed on the caller's session, so any pending work
        of the caller is committed with it. Failures are logged and the
        session is rolled back; the audited operation itself is never
        failed by auditing.

        Args:
            action: What happened
            user_id: Actor (None for anonymous events)
            user_email: Actor email at the time of the event
            resource_type: Kind of entity affected (e.g. "role")
            resource_id: Identifier of the entity affected
            resource_name: Display name of the entity affected
            details: Free-form metadata
            changes: Before/after values for updates
            client: IP address, user agent and request id
            severity: Severity level
            success: Whether the audited action succeeded
            error_message: Failure reason when success is False

        Returns:
            Created AuditLog, or None if it could not be written

        Example:
            await audit_service.create_audit_log(
                AuditAction.ROLE_CREATE,
                user_id=actor.id,
                user_email=actor.email,
                resource_type="role",
                resource_id=role.id,
                resource_name=role.name,
                client=ctx.client,
            )
        """
        client = client or ClientInfo()
        audit_log = AuditLog(
            action=action,
            severity=severity,
            user_id=user_id,
            user_email=user_email,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            resource_name=resource_name,
            details=details,
            changes=changes,
            ip_address=client.ip_address,
            user_agent=client.user_agent[:500] if client.user_agent else None,
            request_id=client.request_id,
            success=success,
            error_message=error_message,
        )
        try:
            await self.audit_repo.add(audit_log)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Failed to write audit log for {action.value}: {e}", exc_info=True)
            await self.session.rollback()
            return None

        logger.debug(
            f"Audit log created: user={user_id}, action={action.value}, "
            f"resource={resource_type}:{resource_id}, success={success}"
        )
        return audit_log

    async def search(self, query: AuditLogQuery) -> AuditLogPage:
        """
        Search audit logs, newest first.

        Args:
            query: Filters and pagination

        Returns:
            Page of logs with the total count and whether more pages exist
        """
        logs, total = await self.audit_repo.search(
            skip=query.skip,
            limit=query.limit,
            user_id=query.user_id,
            action=query.action,
            severity=query.severity,
            resource_type=query.resource_type,
            success=query.success,
            start_date=query.start_date,
            end_date=query.end_date,
        )
        return AuditLogPage(
            logs=[AuditLogResponse.model_validate(log) for log in logs],
            total=total,
            limit=query.limit,
            skip=query.skip,
            has_more=query.skip + len(logs) < total,
        )

    async def stats(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> AuditStatsResponse:
        """Counts by action and severity plus failed logins in the window."""
        by_action = await self.audit_repo.count_by(AuditLog.action, start_date, end_date)
        by_severity = await self.audit_repo.count_by(AuditLog.severity, start_date, end_date)

        return AuditStatsResponse(
            by_action={_enum_value(k): v for k, v in by_action.items()},
            by_severity={_enum_value(k): v for k, v in by_severity.items()},
            failed_logins=by_action.get(AuditAction.USER_LOGIN_FAILED, 0),
            total=sum(by_action.values()),
        )


def _enum_value(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value)
