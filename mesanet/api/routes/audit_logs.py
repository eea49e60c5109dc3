"""
Audit log API routes.

This module provides REST endpoints for searching the audit trail and
reading summary statistics. Both require ``audit:log:read``.
"""

from fastapi import APIRouter

from mesanet.api.pipeline import RequestContext, RouteConfig, guarded
from mesanet.models.enums import Permission
from mesanet.schemas.audit import AuditLogPage, AuditLogQuery, AuditStatsQuery, AuditStatsResponse
from mesanet.services.audit_service import AuditService

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])


@router.get("", summary="Search audit logs")
@guarded(RouteConfig(require_permission=Permission.AUDIT_LOG_READ, query=AuditLogQuery))
async def search_audit_logs(ctx: RequestContext) -> AuditLogPage:
    """
    Search the audit trail, newest first.

    **Query Parameters:**
    - userId, action, severity, resourceType, success: Filters
    - startDate, endDate: Creation-time window (ISO 8601)
    - limit: Page size, 1-500 (default 100)
    - skip: Entries to skip (default 0)
    """
    return await AuditService(ctx.db).search(ctx.query)


@router.get("/stats", summary="Audit statistics")
@guarded(RouteConfig(require_permission=Permission.AUDIT_LOG_READ, query=AuditStatsQuery))
async def audit_stats(ctx: RequestContext) -> AuditStatsResponse:
    return await AuditService(ctx.db).stats(ctx.query.start_date, ctx.query.end_date)
