"""
Authorization pipeline for API routes.

Every route handler is written as ``async def handler(ctx) -> data`` and
wrapped with ``guarded(RouteConfig(...))``. The wrapper runs the same
steps, strictly in order, for every route:

1. Resolve the caller from the session cookie or a Bearer token
2. Require a caller when the route needs authentication or permissions
3. Check the required permissions (denials are audited)
4. Parse and validate the JSON body and the query string
5. Convert path parameters
6. Invoke the handler with a RequestContext
7. Map errors to the response envelope and wrap successful results

Usage:
    @router.post("/roles", status_code=201)
    @guarded(RouteConfig(require_permission=Permission.ROLE_CREATE, parser=RoleCreate,
                         status_code=201))
    async def create_role(ctx: RequestContext) -> RoleResponse:
        ...

The wrapped endpoint exposes ``request`` and the database dependency, so
slowapi's ``@limiter.limit`` can be stacked on top of it.
"""

import json
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from mesanet.core.config import settings
from mesanet.core.database import get_db
from mesanet.core.handlers import GENERIC_ERROR_MESSAGE, error_response, format_validation_errors
from mesanet.exceptions import (
    AppException,
    BadRequestError,
    ForbiddenError,
    InternalServerError,
    UnauthorizedError,
)
from mesanet.models.enums import AuditAction, AuditSeverity, Permission
from mesanet.models.user import User
from mesanet.services.audit_service import AuditService, ClientInfo
from mesanet.services.permission_service import (
    PermissionService,
    has_all_permissions,
    has_any_permission,
    has_permission,
)
from mesanet.services.session_service import SessionService

logger = logging.getLogger(__name__)

# Swagger UI padlock; the session cookie is tried first
bearer_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="Session token (alternative to the session cookie)",
    auto_error=False,
)

Converter = Callable[[str], Any]


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class RouteConfig:
    """
    Declarative guard for one route.

    Attributes:
        require_auth: The caller must be signed in
        require_permission: Single permission the caller must hold
        require_permissions: Permissions the caller must all hold
        require_any_permission: Permissions of which the caller needs one
        parser: Pydantic model validating the JSON body
        query: Pydantic model validating the query string
        params: Path parameter name -> converter (e.g. ``{"role_id": uuid.UUID}``)
        optional_auth: Resolve the caller if credentials are present, but
            do not require them
        status_code: Status of a successful response

    Raises:
        TypeError: On misconfiguration, when the route module is imported
    """

    require_auth: bool = False
    require_permission: Permission | None = None
    require_permissions: tuple[Permission, ...] = ()
    require_any_permission: tuple[Permission, ...] = ()
    parser: type[BaseModel] | None = None
    query: type[BaseModel] | None = None
    params: Mapping[str, Converter] = field(default_factory=dict)
    optional_auth: bool = False
    status_code: int = 200

    def __post_init__(self) -> None:
        for name in ("require_auth", "optional_auth"):
            if not isinstance(getattr(self, name), bool):
                raise TypeError(f"RouteConfig.{name} must be a bool")

        if self.require_permission is not None and not isinstance(
            self.require_permission, Permission
        ):
            raise TypeError("RouteConfig.require_permission must be a Permission")

        for name in ("require_permissions", "require_any_permission"):
            value = getattr(self, name)
            if isinstance(value, (str, bytes)) or not all(
                isinstance(p, Permission) for p in value
            ):
                raise TypeError(f"RouteConfig.{name} must be a sequence of Permission")
            object.__setattr__(self, name, tuple(value))

        for name in ("parser", "query"):
            model = getattr(self, name)
            if model is not None and not (
                isinstance(model, type) and issubclass(model, BaseModel)
            ):
                raise TypeError(f"RouteConfig.{name} must be a pydantic model class")

        if not isinstance(self.params, Mapping) or not all(
            isinstance(k, str) and callable(v) for k, v in self.params.items()
        ):
            raise TypeError("RouteConfig.params must map names to callables")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

        if (
            not isinstance(self.status_code, int)
            or isinstance(self.status_code, bool)
            or not 100 <= self.status_code <= 599
        ):
            raise TypeError("RouteConfig.status_code must be an HTTP status code")

    @property
    def requires_caller(self) -> bool:
        """True when an anonymous request must be rejected."""
        return bool(
            self.require_auth
            or self.require_permission
            or self.require_permissions
            or self.require_any_permission
        )


# =============================================================================
# Request Context
# =============================================================================


@dataclass(frozen=True)
class AuthContext:
    """The resolved caller."""

    user: User
    session_id: uuid.UUID
    permissions: frozenset[Permission]
    roles: tuple[str, ...]


@dataclass
class RequestContext:
    """
    Everything a handler may use.

    Attributes:
        request: Raw Starlette request
        db: Database session for this request
        client: IP address, user agent and request id
        auth: Resolved caller (None for anonymous requests)
        body: Validated body model (when the route has a parser)
        query: Validated query model (when the route has one)
        params: Converted path parameters
    """

    request: Request
    db: AsyncSession
    client: ClientInfo
    auth: AuthContext | None = None
    body: Any = None
    query: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    _cookies: list[tuple[str, str | None, int | None]] = field(default_factory=list)

    @property
    def user(self) -> User:
        """The signed-in user; only valid on authenticated routes."""
        if self.auth is None:
            raise UnauthorizedError("Authentication required")
        return self.auth.user

    @property
    def session_token(self) -> str | None:
        """Raw session credential presented by the caller."""
        return extract_session_token(self.request)

    def cookie(self, name: str) -> str | None:
        return self.request.cookies.get(name)

    def set_cookie(self, name: str, value: str, max_age: int) -> None:
        """Queue a cookie to be set on the success response."""
        self._cookies.append((name, value, max_age))

    def delete_cookie(self, name: str) -> None:
        """Queue a cookie deletion on the success response."""
        self._cookies.append((name, None, None))

    def apply_cookies(self, response: JSONResponse) -> None:
        for name, value, max_age in self._cookies:
            if value is None:
                response.delete_cookie(
                    name,
                    path="/",
                    secure=settings.cookie_secure,
                    httponly=True,
                    samesite="strict",
                )
            else:
                response.set_cookie(
                    name,
                    value,
                    max_age=max_age,
                    path="/",
                    secure=settings.cookie_secure,
                    httponly=True,
                    samesite="strict",
                )


def extract_session_token(request: Request) -> str | None:
    """Session token from the session cookie, else from a Bearer header."""
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token

    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def client_info(request: Request) -> ClientInfo:
    """Request details recorded in audit entries."""
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
        request_id=getattr(request.state, "request_id", None),
    )


# =============================================================================
# Pipeline Steps
# =============================================================================


async def _resolve_identity(request: Request, db: AsyncSession) -> AuthContext | None:
    token = extract_session_token(request)
    if not token:
        return None

    identity = await SessionService(db).validate(token)
    if identity is None:
        return None

    permissions = await PermissionService(db).compute_effective_permissions(identity.user)
    return AuthContext(
        user=identity.user,
        session_id=identity.session_id,
        permissions=permissions,
        roles=tuple(identity.user.role_names),
    )


async def _check_permissions(config: RouteConfig, ctx: RequestContext) -> None:
    auth = ctx.auth
    message = None
    required: list[str] = []

    if config.require_permission and not has_permission(
        auth.permissions, config.require_permission
    ):
        message = f"Missing required permission: {config.require_permission.value}"
        required = [config.require_permission.value]
    elif config.require_permissions and not has_all_permissions(
        auth.permissions, config.require_permissions
    ):
        message = "Missing required permissions"
        required = [p.value for p in config.require_permissions]
    elif config.require_any_permission and not has_any_permission(
        auth.permissions, config.require_any_permission
    ):
        message = "Missing required permissions"
        required = [p.value for p in config.require_any_permission]

    if message is None:
        return

    logger.warning(f"Access denied for user {auth.user.id} on {ctx.request.url.path}: {message}")
    await AuditService(ctx.db).create_audit_log(
        AuditAction.ACCESS_DENIED,
        user_id=auth.user.id,
        user_email=auth.user.email,
        resource_type="route",
        resource_name=f"{ctx.request.method} {ctx.request.url.path}",
        details={"required": required},
        severity=AuditSeverity.WARNING,
        success=False,
        error_message=message,
        client=ctx.client,
    )
    raise ForbiddenError(message)


async def _parse_body(request: Request, parser: type[BaseModel]) -> BaseModel:
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except ValueError:
        raise BadRequestError("Invalid JSON in request body") from None

    try:
        return parser.model_validate(payload)
    except ValidationError as e:
        raise BadRequestError("Validation failed", format_validation_errors(e.errors())) from None


def _parse_query(request: Request, model: type[BaseModel]) -> BaseModel:
    try:
        return model.model_validate(dict(request.query_params))
    except ValidationError as e:
        raise BadRequestError("Validation failed", format_validation_errors(e.errors())) from None


def _convert_params(request: Request, converters: Mapping[str, Converter]) -> dict[str, Any]:
    converted = {}
    for name, convert in converters.items():
        try:
            converted[name] = convert(request.path_params[name])
        except (KeyError, TypeError, ValueError):
            raise BadRequestError(f"Invalid {name}") from None
    return converted


# =============================================================================
# Decorator
# =============================================================================

Handler = Callable[[RequestContext], Awaitable[Any]]


def guarded(config: RouteConfig) -> Callable[[Handler], Callable[..., Awaitable[JSONResponse]]]:
    """
    Wrap a handler in the authorization pipeline.

    Args:
        config: Guard for the route

    Returns:
        Decorator producing a FastAPI endpoint
    """
    if not isinstance(config, RouteConfig):
        raise TypeError("guarded() expects a RouteConfig")

    def decorator(handler: Handler) -> Callable[..., Awaitable[JSONResponse]]:
        async def endpoint(
            request: Request,
            db: AsyncSession = Depends(get_db),
            credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        ) -> JSONResponse:
            # credentials only registers the security scheme; extract_session_token reads it
            ctx = RequestContext(request=request, db=db, client=client_info(request))
            try:
                if config.requires_caller or config.optional_auth:
                    ctx.auth = await _resolve_identity(request, db)
                if config.requires_caller and ctx.auth is None:
                    raise UnauthorizedError("Authentication required")
                if config.requires_caller:
                    await _check_permissions(config, ctx)
                if config.parser is not None:
                    ctx.body = await _parse_body(request, config.parser)
                if config.query is not None:
                    ctx.query = _parse_query(request, config.query)
                ctx.params = _convert_params(request, config.params)

                result = await handler(ctx)
            except AppException as e:
                logger.info(f"{request.method} {request.url.path} -> {e.error_code}: {e.message}")
                return error_response(e)
            except Exception as e:
                logger.error(
                    f"Unexpected error in {request.method} {request.url.path}: {e}",
                    exc_info=True,
                )
                await db.rollback()
                return error_response(InternalServerError(GENERIC_ERROR_MESSAGE))

            response = JSONResponse(
                status_code=config.status_code,
                content={"success": True, "data": jsonable_encoder(result), "messages": []},
            )
            ctx.apply_cookies(response)
            return response

        endpoint.__name__ = handler.__name__
        endpoint.__qualname__ = handler.__qualname__
        endpoint.__doc__ = handler.__doc__
        endpoint.__module__ = handler.__module__
        return endpoint

    return decorator
