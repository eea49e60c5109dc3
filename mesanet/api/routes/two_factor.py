"""
Two-factor authentication API routes.

This module provides REST endpoints for:
- Starting setup and enabling two-factor with a TOTP code
- Validating a code (fresh verification for sensitive client flows)
- Disabling two-factor and regenerating backup codes
- Reading the two-factor status
"""

from fastapi import APIRouter

from mesanet.api.pipeline import RequestContext, RouteConfig, guarded
from mesanet.core.config import settings
from mesanet.core.rate_limit import limiter
from mesanet.schemas.auth import (
    BackupCodesResponse,
    SecondFactorRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
    TwoFactorTokenRequest,
)
from mesanet.schemas.common import MessageResponse
from mesanet.services.two_factor_service import TwoFactorService

router = APIRouter(prefix="/auth/2fa", tags=["Two-Factor Authentication"])


@router.post("/setup", summary="Start two-factor setup")
@guarded(RouteConfig(require_auth=True))
async def setup(ctx: RequestContext) -> TwoFactorSetupResponse:
    """
    Generate a TOTP secret and provisioning URI.

    The secret is shown only in this response. Two-factor stays disabled
    until a code is verified with `POST /auth/2fa/verify`.
    """
    return await TwoFactorService(ctx.db).setup(ctx.user)


@router.post("/verify", summary="Enable two-factor with a TOTP code")
@limiter.limit(settings.rate_limit_two_factor)
@guarded(RouteConfig(require_auth=True, parser=TwoFactorTokenRequest))
async def verify(ctx: RequestContext) -> BackupCodesResponse:
    """Returns the backup codes; they are never shown again."""
    return await TwoFactorService(ctx.db).verify_and_enable(ctx.user, ctx.body.token, ctx.client)


@router.post("/validate", summary="Validate a second factor")
@limiter.limit(settings.rate_limit_two_factor)
@guarded(RouteConfig(require_auth=True, parser=SecondFactorRequest))
async def validate(ctx: RequestContext) -> MessageResponse:
    await TwoFactorService(ctx.db).verify_second_factor(
        ctx.user, ctx.body.token, ctx.body.backup_code, ctx.client
    )
    return MessageResponse(message="Verification successful")


@router.post("/disable", summary="Disable two-factor")
@limiter.limit(settings.rate_limit_two_factor)
@guarded(RouteConfig(require_auth=True, parser=SecondFactorRequest))
async def disable(ctx: RequestContext) -> MessageResponse:
    await TwoFactorService(ctx.db).disable(
        ctx.user, ctx.body.token, ctx.body.backup_code, ctx.client
    )
    return MessageResponse(message="Two-factor authentication disabled")


@router.post("/backup-codes", summary="Regenerate backup codes")
@limiter.limit(settings.rate_limit_two_factor)
@guarded(RouteConfig(require_auth=True, parser=SecondFactorRequest))
async def regenerate_backup_codes(ctx: RequestContext) -> BackupCodesResponse:
    return await TwoFactorService(ctx.db).regenerate_backup_codes(
        ctx.user, ctx.body.token, ctx.body.backup_code, ctx.client
    )


@router.get("/status", summary="Two-factor status")
@guarded(RouteConfig(require_auth=True))
async def status(ctx: RequestContext) -> TwoFactorStatusResponse:
    return await TwoFactorService(ctx.db).status(ctx.user)
