"""
Unit tests for RoleService.

The role repository and audit service are replaced with mocks.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from mesanet.exceptions import AlreadyExistsError
from mesanet.models.user import User
from mesanet.schemas.role import RoleCreate
from mesanet.services.role_service import RoleService


@pytest.fixture
def service():
    roles = RoleService(AsyncMock())
    roles.role_repo = AsyncMock()
    roles.role_repo.get_all_roles.return_value = []
    roles.audit_service = AsyncMock()
    return roles


class TestCreateRole:
    """Test name uniqueness on create."""

    @pytest.mark.asyncio
    async def test_name_taken_concurrently_is_a_conflict(self, service):
        # Setup: the lookup finds nothing, then the insert trips the unique index
        service.role_repo.get_by_name.return_value = None
        service.role_repo.add.side_effect = IntegrityError(
            "INSERT INTO roles", {}, Exception("duplicate key value")
        )

        # Execute
        with pytest.raises(AlreadyExistsError) as exc_info:
            await service.create_role(
                RoleCreate(name="SHIFT_LEAD", permissions=["shift:read:any"]),
                User(email="root@example.com"),
            )

        # Verify
        assert exc_info.value.message == "Role SHIFT_LEAD already exists"
        service.session.rollback.assert_awaited_once()
        service.audit_service.create_audit_log.assert_not_awaited()
