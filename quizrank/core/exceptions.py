"""
Error taxonomy and the JSON error envelope

Every failure leaves the API as
``{"error": {"code", "message", "details", "path", "method", "request_id"}}``.
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizrank.core.config import settings

logger = logging.getLogger(__name__)


class QuizRankException(Exception):
    """Base class; subclasses pin the HTTP status and error code"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_ERROR"
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class DatabaseException(QuizRankException):
    error_code = "DATABASE_ERROR"
    default_message = "Database operation failed"


class AuthenticationException(QuizRankException):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_ERROR"
    default_message = "Access Denied, Please login"


class AuthorizationException(QuizRankException):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "AUTHORIZATION_ERROR"
    default_message = "Insufficient permissions"


class ValidationException(QuizRankException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class CategoryMismatchException(QuizRankException):
    """Question does not belong to the category being played"""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "CATEGORY_MISMATCH"
    default_message = "Question does not belong to this category"


class NotFoundException(QuizRankException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{resource} not found", details)


class UnavailableException(QuizRankException):
    """A backing service (ranking store, cache) cannot be reached"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "SERVICE_UNAVAILABLE"

    def __init__(
        self,
        service: str,
        message: str = "unavailable",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.service = service
        super().__init__(f"{service} {message}", details)


def create_error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    error = {
        "code": error_code,
        "message": message,
        "details": details or {},
        "path": str(request.url),
        "method": request.method,
    }
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        error["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": error})


async def quizrank_exception_handler(request: Request, exc: QuizRankException) -> JSONResponse:
    server_side = exc.status_code >= 500
    logger.log(
        logging.ERROR if server_side else logging.WARNING,
        f"{exc.error_code}: {exc.message}",
        extra={"status_code": exc.status_code, "details": exc.details, "path": request.url.path},
    )
    if server_side and settings.SENTRY_DSN:
        sentry_sdk.capture_exception(exc)

    return create_error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (404 on unknown paths, 405) in the same envelope"""
    logger.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        extra={"path": request.url.path},
    )
    return create_error_response(request, exc.status_code, "HTTP_ERROR", str(exc.detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Request validation failed", extra={"errors": errors, "path": request.url.path})

    return create_error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ValidationException.error_code,
        "Request validation failed",
        {"errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__}: {exc}",
        extra={"path": request.url.path},
        exc_info=exc,
    )
    if settings.SENTRY_DSN:
        sentry_sdk.capture_exception(exc)

    # Internal detail stays out of production responses
    message = "An unexpected error occurred" if settings.is_production() else str(exc)
    return create_error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(QuizRankException, quizrank_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
