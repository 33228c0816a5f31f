"""Error taxonomy and the terminal JSON error handlers.

Every failure that reaches a client is rendered as
``{"success": false, "message": ..., "error": <kind>}`` so the admin portal
and the user app can rely on one envelope regardless of where the request
was stopped.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error rendered with the JSON error envelope."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def to_content(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, "error": self.kind}


class AuthenticationError(AppError):
    """Base for failures of the auth gate (401)."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized to access this route"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Unauthenticated(AuthenticationError):
    """No bearer credential was presented."""


class TokenRevoked(AuthenticationError):
    """The credential is on the blacklist."""

    default_message = "Token is invalid. Please log in again."


class TokenInvalid(AuthenticationError):
    """Bad signature, wrong token type, or expired credential."""

    default_message = "Invalid token"


class UserNotFound(AuthenticationError):
    """The token subject no longer resolves to a user."""

    default_message = "User no longer exists"


class InvalidCredentials(AuthenticationError):
    """Login with an unknown email or a wrong password."""

    default_message = "Invalid credentials"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed to access this route"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class BadRequest(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class RateLimited(AppError):
    """Request quota exceeded for the current window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests, please try again later."

    def __init__(
        self,
        message: str | None = None,
        reset_time: datetime | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message)
        self.reset_time = reset_time
        self.retry_after = retry_after

    @property
    def headers(self) -> dict[str, str] | None:
        if self.retry_after is None:
            return None
        return {"Retry-After": str(self.retry_after)}

    def to_content(self) -> dict[str, Any]:
        content = super().to_content()
        if self.reset_time is not None:
            content["resetTime"] = self.reset_time.isoformat()
        return content


class StoreUnavailable(AppError):
    """An infrastructure dependency (database or token store) is unreachable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"


def error_response(exc: AppError) -> JSONResponse:
    """Render an AppError with the shared envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
        headers=exc.headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append({"field": location, "message": error.get("msg", "Invalid value")})
    message = errors[0]["message"] if errors else "Validation failed"
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": message,
            "error": "ValidationError",
            "errors": errors,
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the terminal error handlers on the application."""
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
