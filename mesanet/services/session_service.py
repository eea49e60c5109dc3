"""
Session service for server-tracked login sessions.

This module provides:
- Session creation at login (signed token + stored hash + device metadata)
- Token validation with a throttled activity heartbeat
- Listing and revocation of a user's sessions

The token itself is never stored; lookups go through its SHA-256 hash.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.core.config import settings
from mesanet.core.security import TOKEN_TYPE_SESSION, create_session_token, decode_token, hash_token
from mesanet.models.session import Session
from mesanet.models.user import User
from mesanet.repositories.session_repository import SessionRepository
from mesanet.repositories.user_repository import UserRepository
from mesanet.schemas.auth import SessionResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceInfo:
    """Device details derived from a User-Agent header."""

    device_type: str = "unknown"
    browser: str | None = None
    os: str | None = None


# Order matters: Edge and Opera UAs also contain "Chrome", Chrome contains "Safari"
_BROWSERS = (
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/")),
    ("Safari", re.compile(r"Safari/")),
)

_OPERATING_SYSTEMS = (
    ("iOS", re.compile(r"iPhone|iPad|iPod")),
    ("Android", re.compile(r"Android")),
    ("Windows", re.compile(r"Windows")),
    ("macOS", re.compile(r"Mac OS X|Macintosh")),
    ("Linux", re.compile(r"Linux")),
)


def parse_user_agent(user_agent: str | None) -> DeviceInfo:
    """
    Classify a User-Agent string.

    Args:
        user_agent: Raw header value

    Returns:
        DeviceInfo with device_type one of mobile, tablet, desktop, bot or
        unknown

    Example:
        >>> parse_user_agent("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) ...")
        DeviceInfo(device_type='mobile', browser='Safari', os='iOS')
    """
    if not user_agent:
        return DeviceInfo()

    if re.search(r"bot|crawler|spider|curl|python-requests|httpx", user_agent, re.IGNORECASE):
        device_type = "bot"
    elif re.search(r"iPad|Tablet", user_agent):
        device_type = "tablet"
    elif re.search(r"Mobi|iPhone|Android", user_agent):
        device_type = "mobile"
    elif re.search(r"Windows|Macintosh|X11|Linux", user_agent):
        device_type = "desktop"
    else:
        device_type = "unknown"

    browser = next((name for name, pattern in _BROWSERS if pattern.search(user_agent)), None)
    os_name = next(
        (name for name, pattern in _OPERATING_SYSTEMS if pattern.search(user_agent)), None
    )
    return DeviceInfo(device_type=device_type, browser=browser, os=os_name)


@dataclass(frozen=True)
class SessionIdentity:
    """A validated session and its owner."""

    user: User
    session_id: uuid.UUID


class SessionService:
    """
    Service class for session operations.

    This service handles:
    - Creating sessions and issuing their tokens
    - Resolving a token to its session and active user
    - Listing and revoking sessions
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize SessionService.

        Args:
            session: Async database session
        """
        self.session = session
        self.session_repo = SessionRepository(session)
        self.user_repo = UserRepository(session)

    async def create_session(
        self,
        user: User,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[Session, str]:
        """
        Create a session for a user who has completed every login factor.

        The row is flushed, not committed; the caller commits it together
        with the rest of the login.

        Args:
            user: Authenticated user
            ip_address: Client IP address
            user_agent: Client User-Agent header

        Returns:
            Tuple of (Session row, session token to set as cookie)
        """
        session_id = uuid.uuid4()
        token, expires_at = create_session_token(user.id, session_id)
        device = parse_user_agent(user_agent)

        row = await self.session_repo.add(
            Session(
                id=session_id,
                user_id=user.id,
                token_hash=hash_token(token),
                ip_address=ip_address,
                user_agent=user_agent[:500] if user_agent else None,
                device_type=device.device_type,
                browser=device.browser,
                os=device.os,
                is_active=True,
                last_active_at=datetime.now(UTC),
                expires_at=expires_at,
            )
        )
        logger.info(f"Session created: {row.id} for user {user.id} ({device.device_type})")
        return row, token

    async def validate(self, token: str) -> SessionIdentity | None:
        """
        Resolve a session token to its active user.

        Checks, in order: signature, expiry and type of the token; an active,
        unexpired stored session with the token's hash; an existing, active
        owner. Refreshes ``last_active_at`` when it is stale.

        Args:
            token: Raw session token

        Returns:
            SessionIdentity, or None if any check fails
        """
        claims = decode_token(token, TOKEN_TYPE_SESSION)
        if claims is None:
            return None

        row = await self.session_repo.get_active_by_token_hash(hash_token(token))
        if row is None:
            return None

        user = await self.user_repo.get_by_id(row.user_id)
        if user is None or not user.is_active:
            return None

        await self._touch(row)
        return SessionIdentity(user=user, session_id=row.id)

    async def _touch(self, row: Session) -> None:
        """Best-effort activity heartbeat; never fails the request."""
        interval = timedelta(seconds=settings.session_touch_interval_seconds)
        if row.last_active_at > datetime.now(UTC) - interval:
            return
        try:
            if await self.session_repo.touch(row.id, interval):
                await self.session.commit()
        except Exception as e:
            logger.warning(f"Failed to update session activity for {row.id}: {e}")
            await self.session.rollback()

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        current_session_id: uuid.UUID | None = None,
    ) -> list[SessionResponse]:
        """
        Active sessions of a user, most recently active first.

        Args:
            user_id: Owner
            current_session_id: Session making the request (flagged is_current)
        """
        rows = await self.session_repo.list_active_for_user(user_id)
        return [
            SessionResponse.model_validate(row).model_copy(
                update={"is_current": row.id == current_session_id}
            )
            for row in rows
        ]

    async def revoke(self, session_id: uuid.UUID, user_id: uuid.UUID | None = None) -> bool:
        """
        Revoke one session.

        Args:
            session_id: Session to revoke
            user_id: If given, only a session owned by this user is revoked

        Returns:
            True if an active session was revoked
        """
        revoked = await self.session_repo.revoke(session_id, user_id)
        await self.session.commit()
        if revoked:
            logger.info(f"Session revoked: {session_id}")
        return revoked

    async def revoke_by_token(self, token: str) -> Session | None:
        """
        Revoke the session bound to a token.

        Returns:
            The revoked Session, or None if no active session matched
        """
        row = await self.session_repo.get_active_by_token_hash(hash_token(token))
        if row is None:
            return None
        if not await self.revoke(row.id):
            return None
        return row

    async def revoke_all_for_user(
        self,
        user_id: uuid.UUID,
        except_session_id: uuid.UUID | None = None,
    ) -> int:
        """
        Revoke every active session of a user.

        The statement is flushed with the caller's transaction; the caller
        commits.

        Returns:
            Number of sessions revoked
        """
        count = await self.session_repo.revoke_all_for_user(user_id, except_session_id)
        if count:
            logger.info(f"Revoked {count} session(s) for user {user_id}")
        return count
