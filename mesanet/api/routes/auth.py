"""
Authentication API routes.

This module provides REST endpoints for:
- User registration
- Login (password step and two-factor step) and logout
- Email verification and password reset with emailed codes
- The current user and their sessions
"""

import logging
import uuid

from fastapi import APIRouter

from mesanet.api.pipeline import RequestContext, RouteConfig, guarded
from mesanet.core.config import settings
from mesanet.core.rate_limit import limiter
from mesanet.exceptions import NotFoundError
from mesanet.models.enums import AuditAction, Permission
from mesanet.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SecondFactorRequest,
    SendCodeRequest,
    SessionResponse,
    UserResponse,
    VerifyEmailRequest,
)
from mesanet.schemas.common import MessageResponse
from mesanet.services.audit_service import AuditService
from mesanet.services.auth_service import AuthService, LoginResult
from mesanet.services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _start_session(ctx: RequestContext, result: LoginResult) -> LoginResponse:
    """Set the session cookie for a completed login."""
    ctx.set_cookie(
        settings.session_cookie_name,
        result.session_token,
        max_age=settings.session_max_age_seconds,
    )
    return LoginResponse(
        requires_two_factor=False,
        user=UserResponse.model_validate(result.user),
    )


# =============================================================================
# Registration and Login
# =============================================================================


@router.post(
    "/register",
    status_code=201,
    summary="Register a new user",
    description="""
    Register a new account with email and password.

    **Password Requirements:**
    - Minimum 8 characters
    - At least 1 uppercase letter, 1 lowercase letter, 1 digit and 1 special character
    - Not on the list of known breached passwords

    A verification code is emailed to the address.

    **Rate Limit:** Configurable via RATE_LIMIT_REGISTER (default: 3/hour)
    """,
)
@limiter.limit(settings.rate_limit_register)
@guarded(RouteConfig(parser=RegisterRequest, status_code=201))
async def register(ctx: RequestContext) -> UserResponse:
    user = await AuthService(ctx.db).register(ctx.body, ctx.client)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    summary="Sign in with email and password",
    description="""
    Check the password. When two-factor authentication is enabled the
    response has `requiresTwoFactor: true` and a short-lived pending cookie;
    finish with `POST /auth/login/verify-2fa`. Otherwise the session cookie
    is set.

    **Rate Limit:** Configurable via RATE_LIMIT_LOGIN (default: 5/15minute)
    """,
)
@limiter.limit(settings.rate_limit_login)
@guarded(RouteConfig(parser=LoginRequest))
async def login(ctx: RequestContext) -> LoginResponse:
    result = await AuthService(ctx.db).login(ctx.body, ctx.client)

    if result.requires_two_factor:
        ctx.set_cookie(
            settings.pending_session_cookie_name,
            result.pending_token,
            max_age=settings.pending_session_expire_minutes * 60,
        )
        return LoginResponse(requires_two_factor=True)

    return _start_session(ctx, result)


@router.post(
    "/login/verify-2fa",
    summary="Complete a two-factor login",
)
@limiter.limit(settings.rate_limit_two_factor)
@guarded(RouteConfig(parser=SecondFactorRequest))
async def verify_login_two_factor(ctx: RequestContext) -> LoginResponse:
    """Verify a TOTP code or backup code for a pending login."""
    result = await AuthService(ctx.db).verify_login_two_factor(
        ctx.cookie(settings.pending_session_cookie_name),
        token=ctx.body.token,
        backup_code=ctx.body.backup_code,
        client=ctx.client,
    )
    ctx.delete_cookie(settings.pending_session_cookie_name)
    return _start_session(ctx, result)


@router.post("/logout", summary="Sign out of the current session")
@guarded(RouteConfig(require_auth=True))
async def logout(ctx: RequestContext) -> MessageResponse:
    message = await AuthService(ctx.db).logout(ctx.session_token, ctx.user, ctx.client)
    ctx.delete_cookie(settings.session_cookie_name)
    return MessageResponse(message=message)


# =============================================================================
# Email Verification and Password Reset
# =============================================================================


@router.post("/verify-email/send-code", summary="Email a verification code")
@limiter.limit(settings.rate_limit_email_code)
@guarded(RouteConfig(parser=SendCodeRequest))
async def send_verification_code(ctx: RequestContext) -> MessageResponse:
    message = await AuthService(ctx.db).send_verification_code(ctx.body.email)
    return MessageResponse(message=message)


@router.post("/verify-email/verify", summary="Verify an email address")
@limiter.limit(settings.rate_limit_two_factor)
@guarded(RouteConfig(parser=VerifyEmailRequest))
async def verify_email(ctx: RequestContext) -> MessageResponse:
    message = await AuthService(ctx.db).verify_email(ctx.body.email, ctx.body.code, ctx.client)
    return MessageResponse(message=message)


@router.post("/forgot-password/send-code", summary="Email a password reset code")
@limiter.limit(settings.rate_limit_email_code)
@guarded(RouteConfig(parser=SendCodeRequest))
async def send_password_reset_code(ctx: RequestContext) -> MessageResponse:
    message = await AuthService(ctx.db).send_password_reset_code(ctx.body.email)
    return MessageResponse(message=message)


@router.post("/forgot-password/reset-password", summary="Reset a password with a code")
@limiter.limit(settings.rate_limit_two_factor)
@guarded(RouteConfig(parser=ResetPasswordRequest))
async def reset_password(ctx: RequestContext) -> MessageResponse:
    """Set a new password; every existing session is signed out."""
    message = await AuthService(ctx.db).reset_password(
        ctx.body.email, ctx.body.code, ctx.body.new_password, ctx.client
    )
    return MessageResponse(message=message)


# =============================================================================
# Current User and Sessions
# =============================================================================


@router.get("/me", summary="Current user and effective permissions")
@guarded(RouteConfig(require_permission=Permission.SESSION_READ_OWN))
async def get_me(ctx: RequestContext) -> MeResponse:
    return MeResponse(
        user=UserResponse.model_validate(ctx.user),
        permissions=sorted(p.value for p in ctx.auth.permissions),
    )


@router.get("/me/sessions", summary="List my active sessions")
@guarded(RouteConfig(require_permission=Permission.SESSION_READ_OWN))
async def list_my_sessions(ctx: RequestContext) -> list[SessionResponse]:
    return await SessionService(ctx.db).list_for_user(ctx.user.id, ctx.auth.session_id)


@router.delete("/me/sessions/{session_id}", summary="Revoke one of my sessions")
@guarded(
    RouteConfig(
        require_permission=Permission.SESSION_REVOKE_OWN,
        params={"session_id": uuid.UUID},
    )
)
async def revoke_my_session(ctx: RequestContext) -> MessageResponse:
    """Revoke a session owned by the caller; revoking the current one signs out."""
    session_id = ctx.params["session_id"]
    if not await SessionService(ctx.db).revoke(session_id, user_id=ctx.user.id):
        raise NotFoundError("Session")

    await AuditService(ctx.db).create_audit_log(
        AuditAction.SESSION_REVOKE,
        user_id=ctx.user.id,
        user_email=ctx.user.email,
        resource_type="session",
        resource_id=session_id,
        client=ctx.client,
    )
    if session_id == ctx.auth.session_id:
        ctx.delete_cookie(settings.session_cookie_name)
    return MessageResponse(message="Session revoked successfully.")
