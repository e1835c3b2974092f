"""Domain errors and their HTTP mapping.

Every failure leaving the API has the shape:

    {"error": {"code": "CONFLICT", "message": "...", "details": {}}}

Codes are stable and machine-readable; messages are for humans. No stack
traces or storage details are exposed.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_body(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message, "details": self.details}}


class Unauthorized(AppError):
    """Missing, malformed or expired credential, or inactive user/company."""

    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AppError):
    """Caller's role does not allow the action within its own tenant."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AppError):
    """Entity absent, or not visible to the caller's tenant."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(AppError):
    """Duplicate unique field, no-op transition or referential block."""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class ValidationFailure(AppError):
    """Malformed input."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class RateLimited(AppError):
    """Fixed window exceeded for the caller's key."""

    code = "RATE_LIMITED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, reset_at: datetime) -> None:
        super().__init__("Too many requests", {"reset_at": reset_at.isoformat()})
        self.reset_at = reset_at


def error_response(exc: AppError, headers: dict[str, str] | None = None) -> JSONResponse:
    """Render a domain error as a JSON response."""
    response_headers = dict(headers or {})
    if isinstance(exc, Unauthorized):
        response_headers.setdefault("WWW-Authenticate", "Bearer")
    return JSONResponse(exc.to_body(), status_code=exc.status_code, headers=response_headers)


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(exc)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    failure = ValidationFailure(
        "Request validation failed",
        {"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]},
    )
    return error_response(failure)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(AppError("An internal error occurred"))


def install_error_handlers(app: FastAPI) -> None:
    """Register handlers mapping domain errors to the standard body."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
