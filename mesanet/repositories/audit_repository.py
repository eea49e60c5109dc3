"""
Audit log repository for database operations.

This module provides database operations for the AuditLog model.
Audit logs are IMMUTABLE - this repository only supports CREATE and READ.
No UPDATE or DELETE operations are allowed.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.models.audit_log import AuditLog
from mesanet.models.enums import AuditAction, AuditSeverity


class AuditLogRepository:
    """
    Repository for AuditLog model operations.

    Does NOT inherit from BaseRepository because audit logs are immutable
    and have different access patterns (no updates or deletes).
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize AuditLogRepository.

        Args:
            session: Async database session
        """
        self.session = session

    async def add(self, audit_log: AuditLog) -> AuditLog:
        """
        Persist an audit log entry.

        Args:
            audit_log: AuditLog instance to persist

        Returns:
            Persisted AuditLog instance
        """
        self.session.add(audit_log)
        await self.session.flush()
        return audit_log

    @staticmethod
    def _apply_filters(
        query: Select[Any],
        user_id: uuid.UUID | None = None,
        action: AuditAction | None = None,
        severity: AuditSeverity | None = None,
        resource_type: str | None = None,
        success: bool | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Select[Any]:
        if user_id is not None:
            query = query.where(AuditLog.user_id == user_id)
        if action is not None:
            query = query.where(AuditLog.action == action)
        if severity is not None:
            query = query.where(AuditLog.severity == severity)
        if resource_type is not None:
            query = query.where(AuditLog.resource_type == resource_type)
        if success is not None:
            query = query.where(AuditLog.success.is_(success))
        if start_date is not None:
            query = query.where(AuditLog.created_at >= start_date)
        if end_date is not None:
            query = query.where(AuditLog.created_at <= end_date)
        return query

    async def search(
        self,
        skip: int = 0,
        limit: int = 100,
        **filters: Any,
    ) -> tuple[list[AuditLog], int]:
        """
        Search audit logs, newest first.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            **filters: user_id, action, severity, resource_type, success,
                start_date, end_date (all optional)

        Returns:
            Tuple of (matching page of logs, total matching count)
        """
        query = self._apply_filters(select(AuditLog), **filters)
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id).offset(skip).limit(limit)
        result = await self.session.execute(query)

        count_query = self._apply_filters(select(func.count()).select_from(AuditLog), **filters)
        total = (await self.session.execute(count_query)).scalar_one()

        return list(result.scalars().all()), total

    async def count_by(
        self,
        column: Any,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[Any, int]:
        """
        Count entries grouped by a column.

        Args:
            column: AuditLog.action or AuditLog.severity
            start_date, end_date: Optional window

        Returns:
            Mapping of column value to count
        """
        query = select(column, func.count()).select_from(AuditLog)
        query = self._apply_filters(query, start_date=start_date, end_date=end_date)
        result = await self.session.execute(query.group_by(column))
        return {value: count for value, count in result.all()}
