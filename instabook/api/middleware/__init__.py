"""
API middleware module.
"""
from instabook.api.middleware.error_handler import (
    app_exception_handler,
    booking_exception_handler,
    http_exception_handler,
    request_language,
    unhandled_exception_handler,
    validation_exception_handler,
)

__all__ = [
    "app_exception_handler",
    "booking_exception_handler",
    "http_exception_handler",
    "request_language",
    "unhandled_exception_handler",
    "validation_exception_handler",
]
