"""
User administration service.

This module provides:
- Paginated user listing
- Role assignment (replace a user's role set)
- Account suspension and reactivation
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.exceptions import BadRequestError, NotFoundError
from mesanet.models.enums import AuditAction, AuditSeverity
from mesanet.models.user import User
from mesanet.repositories.role_repository import RoleRepository
from mesanet.repositories.user_repository import UserRepository
from mesanet.schemas.auth import UserResponse
from mesanet.schemas.user import SuspendResponse, UserListResponse
from mesanet.services.audit_service import AuditService, ClientInfo
from mesanet.services.notification_service import NotificationService
from mesanet.services.session_service import SessionService

logger = logging.getLogger(__name__)


class UserService:
    """
    Service class for user administration.

    This service handles:
    - Listing users with their roles
    - Assigning roles
    - Suspending and activating accounts
    """

    def __init__(self, session: AsyncSession, notifications: NotificationService | None = None):
        """
        Initialize UserService.

        Args:
            session: Async database session
            notifications: Email notifications (defaults to the queued sender)
        """
        self.session = session
        self.user_repo = UserRepository(session)
        self.role_repo = RoleRepository(session)
        self.audit_service = AuditService(session)
        self.session_service = SessionService(session)
        self.notifications = notifications or NotificationService()

    async def get_user(self, user_id: uuid.UUID) -> User:
        """
        Get a user by id.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    async def list_users(self, skip: int = 0, limit: int = 50) -> UserListResponse:
        """List users (newest first) with their role names."""
        users, total = await self.user_repo.list_users(offset=skip, limit=limit)
        return UserListResponse(
            users=[UserResponse.model_validate(u) for u in users],
            total=total,
            limit=limit,
            skip=skip,
        )

    async def assign_roles(
        self,
        target_id: uuid.UUID,
        role_names: list[str],
        actor: User,
        client: ClientInfo | None = None,
    ) -> User:
        """
        Replace a user's roles with ``role_names``.

        One audit entry is written per added role and per removed role.

        Args:
            target_id: User to update
            role_names: Complete new set of role names
            actor: Administrator making the change
            client: Request details for the audit entries

        Returns:
            Updated user

        Raises:
            NotFoundError: If the user does not exist
            BadRequestError: If any role name is unknown
        """
        user = await self.get_user(target_id)

        wanted = list(dict.fromkeys(role_names))
        roles = await self.role_repo.get_by_names(wanted)
        if len(roles) != len(wanted):
            raise BadRequestError("One or more roles not found")

        before = set(user.role_names)
        after = {role.name for role in roles}
        added = sorted(after - before)
        removed = sorted(before - after)

        user.roles = sorted(roles, key=lambda r: r.name)
        user = await self.user_repo.update(user)
        await self.session.commit()
        logger.info(f"Roles of user {user.id} set to {sorted(after)} by {actor.id}")

        changes = ((AuditAction.ROLE_ASSIGN, added), (AuditAction.ROLE_UNASSIGN, removed))
        for action, names in changes:
            for name in names:
                await self.audit_service.create_audit_log(
                    action,
                    user_id=actor.id,
                    user_email=actor.email,
                    resource_type="user",
                    resource_id=user.id,
                    resource_name=user.email,
                    details={"role": name},
                    client=client,
                )

        if added or removed:
            self.notifications.send_role_changed(user, added, removed)
        return user

    async def set_active(
        self,
        target_id: uuid.UUID,
        is_active: bool,
        actor: User,
        reason: str | None = None,
        client: ClientInfo | None = None,
    ) -> SuspendResponse:
        """
        Suspend or reactivate an account.

        Suspension revokes every session of the user.

        Raises:
            BadRequestError: If an administrator tries to suspend themself
            NotFoundError: If the user does not exist
        """
        if not is_active and target_id == actor.id:
            raise BadRequestError("You cannot suspend your own account")

        user = await self.get_user(target_id)
        user.is_active = is_active
        revoked = 0
        if not is_active:
            revoked = await self.session_service.revoke_all_for_user(user.id)
        user = await self.user_repo.update(user)
        await self.session.commit()

        if is_active:
            action, message = AuditAction.USER_ACTIVATE, "User account activated successfully"
        else:
            action, message = AuditAction.USER_DEACTIVATE, "User account suspended successfully"

        logger.info(f"{message}: {user.id} by {actor.id}")
        await self.audit_service.create_audit_log(
            action,
            user_id=actor.id,
            user_email=actor.email,
            resource_type="user",
            resource_id=user.id,
            resource_name=user.email,
            details={"reason": reason, "sessions_revoked": revoked},
            severity=AuditSeverity.INFO if is_active else AuditSeverity.WARNING,
            client=client,
        )
        self.notifications.send_account_status(user, is_active, reason)

        return SuspendResponse(user=UserResponse.model_validate(user), message=message)
