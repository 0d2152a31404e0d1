"""
Exception handlers.

Every error response has the same shape:
``{code, error, message, correlation_id, details}`` where ``message`` is
localized from the Accept-Language header (ru or ky, default from settings).
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from instabook.lib.catalog import get_default_catalog
from instabook.lib.errors import AppException, BookingError, BookingValidationError
from instabook.lib.logging import get_logger
from instabook.models.enums import Language

logger = get_logger(__name__)


SUPPORTED_LANGUAGES = {language.value for language in Language}


def request_language(request: Request) -> Optional[str]:
    """Primary Accept-Language tag if it is a supported language."""
    header = request.headers.get("Accept-Language", "")
    for part in header.split(","):
        tag = part.split(";")[0].strip().lower()[:2]
        if tag in SUPPORTED_LANGUAGES:
            return tag
    return None


def _error_body(
    request: Request,
    code: str,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    body = {
        "code": code,
        "error": error,
        "message": message,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
    }
    if details:
        body["details"] = details
    return body


async def booking_exception_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Booking errors: stable code plus a localized message."""
    catalog = get_default_catalog()
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"Booking error: {exc.message}",
        extra={
            "code": exc.code,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(
            request,
            code=exc.code,
            error=exc.message,
            message=exc.localized(catalog, exc.language or request_language(request)),
            details=exc.details,
        ),
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Non-booking application errors."""
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"Application error: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, code="APP_ERROR", error=exc.message, message=exc.message, details=exc.details),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Request body/query validation errors become 400 VALIDATION_ERROR, or
    INVALID_ADDRESS when only the address is malformed.
    """
    errors = []
    for error in exc.errors():
        errors.append({
            "loc": [str(part) for part in error["loc"]],
            "msg": error["msg"],
            "type": error["type"],
        })

    address_only = bool(errors) and all("address" in error["loc"] for error in errors)
    booking_error = BookingValidationError(
        message="Validation error",
        details={"errors": errors},
        code="INVALID_ADDRESS" if address_only else None,
        message_key="invalid_address" if address_only else None,
    )

    logger.warning(
        "Validation error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": errors,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(
            request,
            code=booking_error.code,
            error=booking_error.message,
            message=booking_error.localized(get_default_catalog(), request_language(request)),
            details=booking_error.details,
        ),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, code="HTTP_ERROR", error=str(exc.detail), message=str(exc.detail)),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler for unhandled exceptions.

    Logs full stack trace and returns generic error message.
    """
    logger.error(
        f"Unhandled exception: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )
    catalog = get_default_catalog()
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            code="INTERNAL_ERROR",
            error="Internal server error",
            message=catalog.message("booking_failed", request_language(request)),
        ),
    )
