"""
Unit tests for AuditService.

All tests are fully mocked - no database or external dependencies.
"""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from mesanet.models.audit_log import AuditLog
from mesanet.models.enums import AuditAction, AuditSeverity
from mesanet.schemas.audit import AuditLogQuery
from mesanet.services.audit_service import AuditService, ClientInfo


@pytest.fixture
def mock_session():
    """Create a mock AsyncSession."""
    return AsyncMock()


@pytest.fixture
def mock_audit_repo():
    """Create a mock AuditLogRepository."""
    return AsyncMock()


@pytest.fixture
def audit_service(mock_session, mock_audit_repo):
    """Create AuditService with mocked dependencies."""
    with patch(
        "mesanet.services.audit_service.AuditLogRepository", return_value=mock_audit_repo
    ):
        service = AuditService(mock_session)
    return service


def make_log(action: AuditAction = AuditAction.USER_LOGIN) -> AuditLog:
    return AuditLog(
        id=uuid.uuid4(),
        action=action,
        severity=AuditSeverity.INFO,
        success=True,
        created_at=datetime.now(UTC),
    )


class TestCreateAuditLog:
    """Test the core create_audit_log method."""

    @pytest.mark.asyncio
    async def test_creates_and_commits_entry(
        self, audit_service, mock_audit_repo, mock_session
    ):
        # Setup
        user_id = uuid.uuid4()
        role_id = uuid.uuid4()
        client = ClientInfo(ip_address="192.168.1.1", user_agent="Mozilla/5.0", request_id="r-1")

        # Execute
        result = await audit_service.create_audit_log(
            AuditAction.ROLE_CREATE,
            user_id=user_id,
            user_email="admin@example.com",
            resource_type="role",
            resource_id=role_id,
            resource_name="AUDITOR",
            details={"permissions": ["audit:log:read"]},
            client=client,
        )

        # Verify
        assert result is not None
        assert result.action == AuditAction.ROLE_CREATE
        assert result.resource_id == str(role_id)
        assert result.ip_address == "192.168.1.1"
        assert result.request_id == "r-1"
        assert result.severity == AuditSeverity.INFO
        assert result.success is True
        mock_audit_repo.add.assert_awaited_once_with(result)
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_long_user_agent_is_truncated(self, audit_service):
        client = ClientInfo(user_agent="x" * 2000)

        result = await audit_service.create_audit_log(AuditAction.USER_LOGIN, client=client)

        assert len(result.user_agent) == 500

    @pytest.mark.asyncio
    async def test_storage_failure_returns_none(
        self, audit_service, mock_audit_repo, mock_session
    ):
        """Auditing never fails the audited operation."""
        # Setup
        mock_session.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

        # Execute
        result = await audit_service.create_audit_log(
            AuditAction.USER_LOGIN_FAILED,
            user_email="someone@example.com",
            success=False,
        )

        # Verify
        assert result is None
        mock_session.rollback.assert_awaited_once()


class TestSearch:
    """Test paginated search."""

    @pytest.mark.asyncio
    async def test_has_more_when_total_exceeds_page(self, audit_service, mock_audit_repo):
        mock_audit_repo.search.return_value = ([make_log(), make_log()], 5)

        page = await audit_service.search(AuditLogQuery(limit=2, skip=0))

        assert page.total == 5
        assert page.has_more is True
        assert len(page.logs) == 2

    @pytest.mark.asyncio
    async def test_last_page(self, audit_service, mock_audit_repo):
        mock_audit_repo.search.return_value = ([make_log()], 3)

        page = await audit_service.search(AuditLogQuery(limit=2, skip=2))

        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_filters_are_passed_through(self, audit_service, mock_audit_repo):
        mock_audit_repo.search.return_value = ([], 0)
        user_id = uuid.uuid4()

        await audit_service.search(
            AuditLogQuery(user_id=user_id, action=AuditAction.ROLE_DELETE, success=False)
        )

        kwargs = mock_audit_repo.search.await_args.kwargs
        assert kwargs["user_id"] == user_id
        assert kwargs["action"] == AuditAction.ROLE_DELETE
        assert kwargs["success"] is False
        assert kwargs["limit"] == 100


class TestStats:
    """Test aggregate statistics."""

    @pytest.mark.asyncio
    async def test_counts_and_failed_logins(self, audit_service, mock_audit_repo):
        mock_audit_repo.count_by.side_effect = [
            {AuditAction.USER_LOGIN: 3, AuditAction.USER_LOGIN_FAILED: 2},
            {AuditSeverity.INFO: 3, AuditSeverity.WARNING: 2},
        ]

        stats = await audit_service.stats()

        assert stats.by_action == {"user:login": 3, "user:login:failed": 2}
        assert stats.by_severity == {"info": 3, "warning": 2}
        assert stats.failed_logins == 2
        assert stats.total == 5
