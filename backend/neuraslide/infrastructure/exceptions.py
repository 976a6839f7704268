"""
Global exception handling for NeuraSlide API.

Every failure leaves the API as an error envelope. Errors that already carry
a status pass through unchanged; anything else is logged with its traceback
and reported as a generic 500 so internals never reach the client.
"""

from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from neuraslide.infrastructure.responses import error_response

logger = structlog.get_logger(__name__)


class NeuraSlideError(Exception):
    """Base exception for classified application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)


class ValidationError(NeuraSlideError):
    """Input failed validation. Always reported as "Validation failed"."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, errors: Optional[List[str]] = None, message: Optional[str] = None):
        super().__init__(message=message, errors=errors)


class BadRequestError(NeuraSlideError):
    """Well-formed input that the operation cannot accept."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class AuthenticationError(NeuraSlideError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class AuthorizationError(NeuraSlideError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class NotFoundError(NeuraSlideError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(NeuraSlideError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class InternalError(NeuraSlideError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


class ExternalServiceError(InternalError):
    """An upstream API (OpenAI, Instagram) failed after retries."""

    def __init__(self, service: str, message: Optional[str] = None):
        self.service = service
        super().__init__(message or f"{service} is temporarily unavailable")


async def _neuraslide_exception_handler(request: Request, exc: NeuraSlideError) -> JSONResponse:
    """Handle classified application errors."""
    logger.warning(
        "request_failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        message=exc.message,
        path=request.url.path,
        method=request.method,
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return error_response(exc.message, exc.status_code, errors=exc.errors, headers=headers)


async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    logger.error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )
    return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def _describe_request_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    msg = error.get("msg", "Invalid value")
    return f"{location}: {msg}" if location else msg


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map request parsing failures onto the validation envelope."""
    errors = [_describe_request_error(e) for e in exc.errors()]
    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=errors,
    )
    return error_response("Validation failed", status.HTTP_400_BAD_REQUEST, errors=errors)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle routing-level HTTP exceptions (unknown path, bad method)."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = f"Route {request.method} {request.url.path} not found"
    return error_response(message, exc.status_code, headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(NeuraSlideError, _neuraslide_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _global_exception_handler)
    logger.info("exception_handlers_registered")
