"""Sakuin API error handling.

Maps sakuin exceptions onto the error envelope (see sakuin.api.error_model)
with request_id tracing.

Global exception handlers:
- SakuinError: Domain errors, mapped through ERROR_STATUS
- HTTPException: FastAPI/Starlette HTTP exceptions
- RequestValidationError: Pydantic validation errors
- Exception: Catch-all for unhandled exceptions (fail closed, no stack traces)
"""

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sakuin.api.error_model import get_error_code_for_status, make_error_response
from sakuin.errors import (
    AllocationError,
    InvalidContentTypeError,
    InvalidMetadataError,
    MalformedBodyError,
    MergeTypeConflictError,
    MissingBoundaryError,
    MissingObjectPartError,
    SakuinError,
)
from sakuin.storage.errors import (
    DocumentNotFoundError,
    InvalidIdentifierError,
    ObjectNotFoundError,
    StorageBackendError,
)

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error envelope schema."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


# Most specific first; the first isinstance match wins.
ERROR_STATUS: tuple[tuple[type[SakuinError], int, str], ...] = (
    (ObjectNotFoundError, 404, "OBJECT_NOT_FOUND"),
    (DocumentNotFoundError, 404, "DOCUMENT_NOT_FOUND"),
    (InvalidContentTypeError, 400, "INVALID_CONTENT_TYPE"),
    (MissingBoundaryError, 400, "MISSING_BOUNDARY"),
    (InvalidMetadataError, 400, "INVALID_METADATA"),
    (MalformedBodyError, 400, "MALFORMED_BODY"),
    (MissingObjectPartError, 400, "MISSING_OBJECT_PART"),
    (InvalidIdentifierError, 400, "INVALID_IDENTIFIER"),
    (AllocationError, 500, "ALLOCATION_FAILED"),
    (MergeTypeConflictError, 500, "MERGE_TYPE_CONFLICT"),
    (StorageBackendError, 500, "STORAGE_BACKEND_ERROR"),
)


def status_for_error(exc: SakuinError) -> tuple[int, str]:
    """Return (http_status, code) for a sakuin error."""
    for error_type, status, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status, code
    return 500, "INTERNAL_ERROR"


def _details_for_error(exc: SakuinError) -> dict[str, Any] | None:
    details: dict[str, Any] = {}
    if exc.id:
        details["id"] = exc.id
    if isinstance(exc, InvalidContentTypeError):
        details["content_type"] = exc.content_type
    return details or None


async def sakuin_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for SakuinError.

    Client errors carry the error message and safe details. Server errors
    are logged and answered with a generic message.
    """
    assert isinstance(exc, SakuinError)

    status, code = status_for_error(exc)
    request_id = getattr(request.state, "request_id", None)

    if status >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
            extra={"request_id": request_id},
        )
        return make_error_response(
            request,
            code=code,
            message="An internal error occurred",
            http_status=status,
            details=None,
        )

    logger.warning(
        "%s on %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc,
        extra={"request_id": request_id},
    )
    return make_error_response(
        request,
        code=code,
        message=exc.message,
        http_status=status,
        details=_details_for_error(exc),
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for HTTPException."""
    assert isinstance(exc, HTTPException)

    code = get_error_code_for_status(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return make_error_response(
        request,
        code=code,
        message=message,
        http_status=exc.status_code,
        details=None,
    )


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for RequestValidationError.

    Reports field locations and messages only, not raw input values.
    """
    assert isinstance(exc, RequestValidationError)

    safe_details: list[dict[str, Any]] = []
    for error in exc.errors():
        loc = error.get("loc", ())
        safe_loc = [str(part) for part in loc if part not in ("body", "query", "path")]
        safe_details.append(
            {
                "field": ".".join(safe_loc) if safe_loc else "request",
                "message": error.get("msg", "Validation error"),
            }
        )

    return make_error_response(
        request,
        code="REQUEST_VALIDATION_FAILED",
        message="Request validation failed",
        http_status=422,
        details={"errors": safe_details} if safe_details else None,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler for unhandled exceptions.

    Fails closed: returns 500 with a generic message and logs the traceback.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"request_id": request_id},
    )

    return make_error_response(
        request,
        code="INTERNAL_ERROR",
        message="An internal error occurred",
        http_status=500,
        details=None,
    )
