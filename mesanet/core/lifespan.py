"""
Application lifespan: startup and shutdown of shared resources.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mesanet.core.cache import cache
from mesanet.core.config import settings
from mesanet.core.database import close_database_connection, create_database_engine
from mesanet.core.tasks import task_queue
from mesanet.services.role_service import RoleService

logger = logging.getLogger(__name__)


# ============================================================================
# Lifespan Context Manager
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore
    """
    Lifespan context manager for startup and shutdown events.

    Handles:
    - Database engine creation and storage in app.state
    - Session factory creation
    - Cache connection
    - Seeding of the system roles
    - Draining background tasks and releasing resources on shutdown
    """
    logger.info(f"Starting {settings.app_name} v{settings.version}")
    logger.info(f"Environment: {settings.environment}")

    engine = create_database_engine()
    app.state.sessionmaker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    logger.info("Sessionmaker created successfully")

    await cache.connect()

    async with app.state.sessionmaker() as session:
        await RoleService(session).ensure_system_roles()

    yield

    logger.info("Shutting down application")
    await task_queue.drain()
    await cache.close()
    await close_database_connection(engine)
    app.state.sessionmaker = None
