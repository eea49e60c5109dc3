"""
Session repository for database operations.

This module provides database operations for the Session model:
- Lookup of active sessions by token hash
- Atomic revocation (single session or all of a user's sessions)
- Activity heartbeat updates

Revocation is always a single conditional UPDATE rather than
read-modify-write, so concurrent revocations cannot race.
"""

import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.models.session import Session
from mesanet.repositories.base import BaseRepository


class SessionRepository(BaseRepository[Session]):
    """Repository for Session model operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Session, session)

    async def get_active_by_token_hash(self, token_hash: str) -> Session | None:
        """
        Get an active, unexpired session by token hash.

        Args:
            token_hash: SHA-256 hash of the session token

        Returns:
            Session instance or None if missing, revoked or expired
        """
        result = await self.session.execute(
            select(Session).where(
                Session.token_hash == token_hash,
                Session.is_active.is_(True),
                Session.expires_at > datetime.now(UTC),
            )
        )
        return result.scalar_one_or_none()

    async def list_active_for_user(self, user_id: uuid.UUID) -> list[Session]:
        """Active, unexpired sessions of a user, most recently active first."""
        result = await self.session.execute(
            select(Session)
            .where(
                Session.user_id == user_id,
                Session.is_active.is_(True),
                Session.expires_at > datetime.now(UTC),
            )
            .order_by(Session.last_active_at.desc())
        )
        return list(result.scalars().all())

    async def touch(self, session_id: uuid.UUID, min_interval: timedelta) -> bool:
        """
        Refresh last_active_at if it is older than ``min_interval``.

        Returns:
            True if the row was updated
        """
        now = datetime.now(UTC)
        result = await self.session.execute(
            update(Session)
            .where(
                Session.id == session_id,
                Session.is_active.is_(True),
                Session.last_active_at < now - min_interval,
            )
            .values(last_active_at=now)
        )
        return result.rowcount == 1

    async def revoke(self, session_id: uuid.UUID, user_id: uuid.UUID | None = None) -> bool:
        """
        Revoke one session.

        Args:
            session_id: Session to revoke
            user_id: If given, only revoke when the session belongs to this user

        Returns:
            True if an active session was revoked, False otherwise
        """
        stmt = (
            update(Session)
            .where(Session.id == session_id, Session.is_active.is_(True))
            .values(is_active=False, revoked_at=datetime.now(UTC))
        )
        if user_id is not None:
            stmt = stmt.where(Session.user_id == user_id)

        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def revoke_all_for_user(
        self,
        user_id: uuid.UUID,
        except_session_id: uuid.UUID | None = None,
    ) -> int:
        """
        Revoke every active session of a user.

        Args:
            user_id: Owner of the sessions
            except_session_id: Optional session to keep active

        Returns:
            Number of sessions revoked
        """
        stmt = (
            update(Session)
            .where(Session.user_id == user_id, Session.is_active.is_(True))
            .values(is_active=False, revoked_at=datetime.now(UTC))
        )
        if except_session_id is not None:
            stmt = stmt.where(Session.id != except_session_id)

        result = await self.session.execute(stmt)
        return result.rowcount
