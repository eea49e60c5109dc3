"""
Health Check Endpoints
"""

import logging
from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text

from mesanet.core.cache import cache
from mesanet.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check() -> dict[str, Any]:
    """
    Basic liveness check.

    Returns:
        Envelope with application name, version and environment
    """
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.version,
            "environment": settings.environment,
        },
        "messages": [],
    }


@router.get("/ready")
async def readiness_check(request: Request) -> dict[str, Any]:
    """
    Readiness check.

    Verifies database connectivity and reports whether the cache is
    connected. A missing cache degrades performance but not correctness,
    so only the database decides readiness.
    """
    db_healthy = False
    sessionmaker = getattr(request.app.state, "sessionmaker", None)
    if sessionmaker is not None:
        try:
            async with sessionmaker() as session:
                await session.execute(text("SELECT 1"))
            db_healthy = True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")

    return {
        "success": True,
        "data": {
            "status": "ready" if db_healthy else "degraded",
            "checks": {
                "database": "ok" if db_healthy else "unavailable",
                "cache": "ok" if cache.is_available else "unavailable",
            },
        },
        "messages": [],
    }
