"""Application exceptions and handlers for consistent error responses.

Every failure leaves the API in the same envelope:

    {"error": {"code": "...", "message": "...", "details": {...}}}
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class LeadDeskException(Exception):
    """Base exception for LeadDesk application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class BusinessLogicError(LeadDeskException):
    """Exception for business rule violations (conflicts, blocked deletes)."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
        )


class ResourceNotFoundError(LeadDeskException):
    """Exception for resources not found (or outside the caller's view)."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class ProfileNotFoundError(LeadDeskException):
    """Authenticated user has no directory profile."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            message=f"No profile found for user {user_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="PROFILE_NOT_FOUND",
        )


class PermissionDeniedError(LeadDeskException):
    """Caller attempted an action not granted by their permissions."""

    def __init__(
        self,
        message: str = "Permission denied",
        module: str | None = None,
        action: str | None = None,
    ):
        self.module = module
        self.action = action
        details = None
        if module or action:
            details = {"module": module, "action": action}
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
            details=details,
        )


class StoreUnavailableError(LeadDeskException):
    """The persistence layer could not be reached or timed out."""

    def __init__(self, message: str = "Data store temporarily unavailable"):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="STORE_UNAVAILABLE",
        )


class AdminValidationError(LeadDeskException):
    """Invalid administration input, rejected before any store call."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR",
            details={"field": field} if field else None,
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    error = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


def _request_info(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def leaddesk_exception_handler(
    request: Request,
    exc: LeadDeskException,
) -> JSONResponse:
    """Render any LeadDeskException in the error envelope."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.error_code} on {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, **_request_info(request)},
    )
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_info(request))

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": f"HTTP_{exc.status_code}", "message": str(exc.detail)}},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Flatten pydantic errors into {field, message, type} entries."""
    errors = [
        {
            "field": " -> ".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Validation error on {request.url.path}: {len(errors)} problem(s)",
        extra=_request_info(request),
    )
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


# Substring of the driver message → (error code, client message)
INTEGRITY_VIOLATIONS = (
    ("unique", "DUPLICATE_RECORD", "A record with this value already exists"),
    ("foreign key", "FOREIGN_KEY_VIOLATION", "Record is referenced by or references another record"),
    ("not null", "NULL_VALUE_NOT_ALLOWED", "Required field is missing"),
)


async def integrity_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Constraint violations are client errors; the driver text stays in the log."""
    driver_message = str(getattr(exc, "orig", None) or exc)
    logger.error(
        f"Integrity error on {request.url.path}: {driver_message}",
        extra=_request_info(request),
    )

    lowered = driver_message.lower()
    for needle, error_code, message in INTEGRITY_VIOLATIONS:
        if needle in lowered:
            break
    else:
        error_code, message = "INTEGRITY_ERROR", "Database constraint violation"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """A connectivity failure that escaped `store_errors` still answers 503."""
    return await leaddesk_exception_handler(request, StoreUnavailableError())


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.url.path}",
        extra=_request_info(request),
        exc_info=exc,
    )
    # Internal details never reach the client
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(LeadDeskException, leaddesk_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
