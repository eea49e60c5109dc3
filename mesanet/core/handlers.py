"""
Exception handlers for FastAPI application.

Every error leaving the application uses the response envelope
``{"success": false, "code": ..., "messages": [...]}``. Routes built with the
authorization pipeline map their own errors; these handlers cover what
happens outside it (unknown routes, query validation, rate limiting,
failures in middleware or dependencies).

This module provides:
- Custom application exception handler (AppException)
- Starlette HTTP exception handler (404/405 and friends)
- Pydantic validation error handler (RequestValidationError)
- General unhandled exception handler (Exception)
- Rate limit exceeded handler (RateLimitExceeded)
"""

import logging
from collections.abc import Sequence
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from mesanet.exceptions import (
    AppException,
    BadRequestError,
    InternalServerError,
    TooManyRequestsError,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"

_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "UNPROCESSABLE_ENTITY",
    429: "TOO_MANY_REQUESTS",
}


def error_response(exc: AppException) -> JSONResponse:
    """Render an application exception as an envelope response."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def format_validation_errors(errors: Sequence[dict[str, Any]]) -> list[str]:
    """
    Format pydantic errors as ``"field.path: message"`` strings.

    Request-location prefixes added by FastAPI ("body", "query", "path")
    are dropped so messages name only the field.
    """
    messages = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        field = ".".join(loc)
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return messages


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    logger.warning(f"Application exception: {exc.error_code} - {exc.message}")
    return error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle Starlette HTTP exceptions such as unknown routes."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "code": _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            "messages": [str(exc.detail)],
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI request validation errors (query and path parameters)."""
    messages = format_validation_errors(exc.errors())
    logger.warning(f"Validation error: {messages}")
    return error_response(BadRequestError("Validation failed", messages))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Logs the full error and returns a generic message; internal details
    never reach the client.
    """
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_response(InternalServerError(GENERIC_ERROR_MESSAGE))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    logger.warning(
        f"Rate limit exceeded: {request.client.host if request.client else 'unknown'} "
        f"({exc.detail})"
    )
    response = error_response(
        TooManyRequestsError("Rate limit exceeded. Please try again later.")
    )
    response.status_code = status.HTTP_429_TOO_MANY_REQUESTS
    return response
