"""
Integration tests for authentication routes.

Tests cover:
- User registration
- Login and logout (cookie and Bearer credentials)
- Current user and session management
- Email verification and password reset
- Response envelope and error cases
"""

import uuid
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from mesanet.core.config import settings
from mesanet.models.audit_log import AuditLog
from mesanet.models.enums import AuditAction
from mesanet.models.user import User

API = settings.api_prefix
PASSWORD = "Str0ng!Passw0rd"

REGISTRATION = {
    "firstName": "Nina",
    "lastName": "Newcomer",
    "email": "Nina@Example.com",
    "password": PASSWORD,
}


# ============================================================================
# Registration Tests
# ============================================================================
class TestRegistration:
    """Test user registration endpoint."""

    @pytest.mark.asyncio
    async def test_register_success(self, async_client: AsyncClient, db_session):
        """Registration creates an unverified USER and audits it."""
        response = await async_client.post(f"{API}/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["messages"] == []
        data = body["data"]
        assert data["email"] == "nina@example.com"
        assert data["firstName"] == "Nina"
        assert data["roles"] == ["USER"]
        assert data["emailVerified"] is False
        assert data["twoFactorEnabled"] is False
        assert "passwordHash" not in data

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.USER_REGISTER)
        )
        assert result.scalar_one().user_email == "nina@example.com"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, async_client: AsyncClient, test_user):
        response = await async_client.post(
            f"{API}/auth/register",
            json={**REGISTRATION, "email": "TestUser@example.com"},
        )

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "CONFLICT"
        assert body["messages"] == ["An account with this email already exists"]

    @pytest.mark.asyncio
    async def test_register_weak_password(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/auth/register",
            json={**REGISTRATION, "password": "weakpass"},
        )

        assert response.status_code == 400
        messages = response.json()["messages"]
        assert "Password must contain at least one uppercase letter" in messages
        assert "Password must contain at least one digit" in messages

    @pytest.mark.asyncio
    async def test_register_breached_password(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/auth/register",
            json={**REGISTRATION, "password": "Password1!"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "UNPROCESSABLE_ENTITY"

    @pytest.mark.asyncio
    async def test_register_invalid_email(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/auth/register",
            json={**REGISTRATION, "email": "not-an-email"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "BAD_REQUEST"
        assert any(message.startswith("email:") for message in body["messages"])

    @pytest.mark.asyncio
    async def test_register_missing_fields(self, async_client: AsyncClient):
        response = await async_client.post(f"{API}/auth/register", json={})

        assert response.status_code == 400
        messages = response.json()["messages"]
        assert any(message.startswith("firstName:") for message in messages)
        assert any(message.startswith("password:") for message in messages)

    @pytest.mark.asyncio
    async def test_register_malformed_json(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/auth/register",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["messages"] == ["Invalid JSON in request body"]


# ============================================================================
# Login / Logout Tests
# ============================================================================
class TestLogin:
    """Test the password login step."""

    @pytest.mark.asyncio
    async def test_login_sets_session_cookie(self, async_client: AsyncClient, test_user):
        response = await async_client.post(
            f"{API}/auth/login",
            json={"email": "testuser@example.com", "password": PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["requiresTwoFactor"] is False
        assert data["user"]["email"] == "testuser@example.com"

        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{settings.session_cookie_name}=")
        assert "HttpOnly" in cookie
        assert "SameSite=strict" in cookie

    @pytest.mark.asyncio
    async def test_login_wrong_password_is_audited(
        self, async_client: AsyncClient, test_user, db_session
    ):
        response = await async_client.post(
            f"{API}/auth/login",
            json={"email": "testuser@example.com", "password": "Wrong!Passw0rd"},
        )

        assert response.status_code == 401
        assert response.json()["messages"] == ["Invalid email or password"]
        assert settings.session_cookie_name not in response.cookies

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.USER_LOGIN_FAILED)
        )
        entry = result.scalar_one()
        assert entry.success is False
        assert entry.user_id == test_user.id

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/auth/login",
            json={"email": "ghost@example.com", "password": PASSWORD},
        )

        assert response.status_code == 401
        assert response.json()["messages"] == ["Invalid email or password"]

    @pytest.mark.asyncio
    async def test_login_unverified_email(self, async_client: AsyncClient, make_user):
        await make_user("unverified@example.com", email_verified=False)

        response = await async_client.post(
            f"{API}/auth/login",
            json={"email": "unverified@example.com", "password": PASSWORD},
        )

        assert response.status_code == 403
        assert response.json()["messages"] == [
            "Please verify your email address before signing in"
        ]

    @pytest.mark.asyncio
    async def test_login_suspended_account(self, async_client: AsyncClient, make_user):
        await make_user("suspended@example.com", is_active=False)

        response = await async_client.post(
            f"{API}/auth/login",
            json={"email": "suspended@example.com", "password": PASSWORD},
        )

        assert response.status_code == 403
        assert response.json()["messages"] == ["Your account has been suspended"]


class TestLogout:
    """Test logout."""

    @pytest.mark.asyncio
    async def test_logout_revokes_session(self, async_client: AsyncClient, test_user, login):
        headers = await login("testuser@example.com")

        response = await async_client.post(f"{API}/auth/logout", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Successfully logged out."

        after = await async_client.get(f"{API}/auth/me", headers=headers)
        assert after.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_requires_authentication(self, async_client: AsyncClient):
        response = await async_client.post(f"{API}/auth/logout")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "code": "UNAUTHORIZED",
            "messages": ["Authentication required"],
        }


# ============================================================================
# Current User and Session Tests
# ============================================================================
class TestCurrentUser:
    """Test /auth/me and session listing."""

    @pytest.mark.asyncio
    async def test_me_with_bearer_token(self, async_client: AsyncClient, test_user, login):
        headers = await login("testuser@example.com")

        response = await async_client.get(f"{API}/auth/me", headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == str(test_user.id)
        assert data["user"]["roles"] == ["USER"]
        assert data["permissions"] == sorted(data["permissions"])
        assert "session:read:own" in data["permissions"]
        assert "role:create" not in data["permissions"]

    @pytest.mark.asyncio
    async def test_me_with_session_cookie(self, async_client: AsyncClient, test_user):
        await async_client.post(
            f"{API}/auth/login",
            json={"email": "testuser@example.com", "password": PASSWORD},
        )

        response = await async_client.get(f"{API}/auth/me")

        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "testuser@example.com"

    @pytest.mark.asyncio
    async def test_me_with_invalid_token(self, async_client: AsyncClient):
        response = await async_client.get(
            f"{API}/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_sessions_marks_current(self, async_client: AsyncClient, test_user, login):
        first = await login("testuser@example.com")
        await login("testuser@example.com")

        response = await async_client.get(f"{API}/auth/me/sessions", headers=first)

        assert response.status_code == 200
        sessions = response.json()["data"]
        assert len(sessions) == 2
        assert sum(1 for s in sessions if s["isCurrent"]) == 1
        assert all(s["deviceType"] == "bot" for s in sessions)

    @pytest.mark.asyncio
    async def test_revoke_other_session(self, async_client: AsyncClient, test_user, login):
        first = await login("testuser@example.com")
        second = await login("testuser@example.com")
        sessions = (await async_client.get(f"{API}/auth/me/sessions", headers=first)).json()
        other = next(s for s in sessions["data"] if not s["isCurrent"])

        response = await async_client.delete(
            f"{API}/auth/me/sessions/{other['id']}", headers=first
        )

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Session revoked successfully."
        assert (await async_client.get(f"{API}/auth/me", headers=second)).status_code == 401
        assert (await async_client.get(f"{API}/auth/me", headers=first)).status_code == 200

    @pytest.mark.asyncio
    async def test_revoke_session_of_other_user(
        self, async_client: AsyncClient, test_user, manager_user, login
    ):
        user_headers = await login("testuser@example.com")
        manager_headers = await login("manager@example.com")
        sessions = await async_client.get(f"{API}/auth/me/sessions", headers=manager_headers)
        manager_session = sessions.json()["data"][0]["id"]

        response = await async_client.delete(
            f"{API}/auth/me/sessions/{manager_session}", headers=user_headers
        )

        assert response.status_code == 404
        assert response.json()["messages"] == ["Session not found"]

    @pytest.mark.asyncio
    async def test_revoke_unknown_and_malformed_session(
        self, async_client: AsyncClient, test_user, login
    ):
        headers = await login("testuser@example.com")

        unknown = await async_client.delete(
            f"{API}/auth/me/sessions/{uuid.uuid4()}", headers=headers
        )
        malformed = await async_client.delete(f"{API}/auth/me/sessions/abc", headers=headers)

        assert unknown.status_code == 404
        assert malformed.status_code == 400
        assert malformed.json()["messages"] == ["Invalid session_id"]


# ============================================================================
# Email Verification and Password Reset Tests
# ============================================================================
class TestEmailVerification:
    """Test email verification with emailed codes."""

    @pytest.mark.asyncio
    async def test_verify_email_then_login(self, async_client: AsyncClient):
        with patch("mesanet.services.auth_service.generate_email_code", return_value="246810"):
            await async_client.post(f"{API}/auth/register", json=REGISTRATION)

        response = await async_client.post(
            f"{API}/auth/verify-email/verify",
            json={"email": "nina@example.com", "code": "246810"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Email verified successfully."

        login = await async_client.post(
            f"{API}/auth/login", json={"email": "nina@example.com", "password": PASSWORD}
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, async_client: AsyncClient):
        with patch("mesanet.services.auth_service.generate_email_code", return_value="246810"):
            await async_client.post(f"{API}/auth/register", json=REGISTRATION)
        payload = {"email": "nina@example.com", "code": "246810"}

        first = await async_client.post(f"{API}/auth/verify-email/verify", json=payload)
        second = await async_client.post(f"{API}/auth/verify-email/verify", json=payload)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["messages"] == ["Invalid or expired verification code"]

    @pytest.mark.asyncio
    async def test_resent_code_replaces_previous(self, async_client: AsyncClient):
        with patch("mesanet.services.auth_service.generate_email_code", return_value="111111"):
            await async_client.post(f"{API}/auth/register", json=REGISTRATION)
        with patch("mesanet.services.auth_service.generate_email_code", return_value="222222"):
            await async_client.post(
                f"{API}/auth/verify-email/send-code", json={"email": "nina@example.com"}
            )

        old = await async_client.post(
            f"{API}/auth/verify-email/verify",
            json={"email": "nina@example.com", "code": "111111"},
        )
        new = await async_client.post(
            f"{API}/auth/verify-email/verify",
            json={"email": "nina@example.com", "code": "222222"},
        )

        assert old.status_code == 400
        assert new.status_code == 200

    @pytest.mark.asyncio
    async def test_send_code_does_not_reveal_accounts(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/auth/verify-email/send-code", json={"email": "ghost@example.com"}
        )

        assert response.status_code == 200
        assert "If an account with this email exists" in response.json()["data"]["message"]


class TestPasswordReset:
    """Test password reset with emailed codes."""

    @pytest.mark.asyncio
    async def test_reset_password_revokes_sessions(
        self, async_client: AsyncClient, test_user, login, db_session
    ):
        # Setup
        old_headers = await login("testuser@example.com")
        with patch("mesanet.services.auth_service.generate_email_code", return_value="135790"):
            sent = await async_client.post(
                f"{API}/auth/forgot-password/send-code",
                json={"email": "testuser@example.com"},
            )
        assert sent.status_code == 200

        # Execute
        response = await async_client.post(
            f"{API}/auth/forgot-password/reset-password",
            json={
                "email": "testuser@example.com",
                "code": "135790",
                "newPassword": "N3w!Passw0rd#",
            },
        )

        # Verify
        assert response.status_code == 200
        assert (await async_client.get(f"{API}/auth/me", headers=old_headers)).status_code == 401

        old_login = await async_client.post(
            f"{API}/auth/login", json={"email": "testuser@example.com", "password": PASSWORD}
        )
        assert old_login.status_code == 401
        await login("testuser@example.com", "N3w!Passw0rd#")

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.USER_PASSWORD_RESET)
        )
        assert result.scalar_one().details["sessions_revoked"] == 1

    @pytest.mark.asyncio
    async def test_reset_with_wrong_code(self, async_client: AsyncClient, test_user):
        response = await async_client.post(
            f"{API}/auth/forgot-password/reset-password",
            json={
                "email": "testuser@example.com",
                "code": "000000",
                "newPassword": "N3w!Passw0rd#",
            },
        )

        assert response.status_code == 400
        assert response.json()["messages"] == ["Invalid or expired verification code"]

    @pytest.mark.asyncio
    async def test_reset_with_weak_password_keeps_code(
        self, async_client: AsyncClient, test_user, db_session
    ):
        with patch("mesanet.services.auth_service.generate_email_code", return_value="135790"):
            await async_client.post(
                f"{API}/auth/forgot-password/send-code",
                json={"email": "testuser@example.com"},
            )

        weak = await async_client.post(
            f"{API}/auth/forgot-password/reset-password",
            json={"email": "testuser@example.com", "code": "135790", "newPassword": "weakpass"},
        )
        strong = await async_client.post(
            f"{API}/auth/forgot-password/reset-password",
            json={
                "email": "testuser@example.com",
                "code": "135790",
                "newPassword": "N3w!Passw0rd#",
            },
        )

        assert weak.status_code == 400
        assert strong.status_code == 200
        user = await db_session.get(User, test_user.id)
        assert user.password_hash != test_user.password_hash


# ============================================================================
# Envelope and Middleware Tests
# ============================================================================
class TestEnvelope:
    """Responses outside the pipeline still use the envelope."""

    @pytest.mark.asyncio
    async def test_unknown_route(self, async_client: AsyncClient):
        response = await async_client.get(f"{API}/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "code": "NOT_FOUND",
            "messages": ["Not Found"],
        }

    @pytest.mark.asyncio
    async def test_request_id_and_security_headers(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Request-ID": "trace-123"})

        assert response.headers["X-Request-ID"] == "trace-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Cache-Control"] == "no-store"

    @pytest.mark.asyncio
    async def test_malformed_request_id_is_replaced(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Request-ID": "x" * 65})

        request_id = response.headers["X-Request-ID"]
        assert request_id != "x" * 65
        assert uuid.UUID(request_id)
