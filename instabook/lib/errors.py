"""
Application exception hierarchy.

Every booking error carries a stable machine-readable ``code`` and a
``message_key`` that the locale catalog resolves to a human message in the
caller's language.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from fastapi import status

if TYPE_CHECKING:
    from instabook.lib.catalog import LocaleCatalog


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class BookingError(AppException):
    """Base class for errors surfaced by the booking engine."""

    code = "BOOKING_ERROR"
    message_key = "booking_failed"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    # Language of the originating request, preferred when rendering the message
    language: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
        message_key: Optional[str] = None,
    ):
        if code:
            self.code = code
        if message_key:
            self.message_key = message_key
        super().__init__(
            message=message or self.message_key.replace("_", " ").capitalize(),
            status_code=self.default_status,
            details=details,
        )

    def localized(self, catalog: "LocaleCatalog", language: Optional[str] = None) -> str:
        """Human message in ``language``, falling back to the catalog default."""
        return catalog.message(self.message_key, language)


class BookingValidationError(BookingError):
    """Malformed booking payload or address."""

    code = "VALIDATION_ERROR"
    message_key = "invalid_request"
    default_status = status.HTTP_400_BAD_REQUEST


class NotFound(BookingError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"
    message_key = "not_found"
    default_status = status.HTTP_404_NOT_FOUND
    resource = "Resource"

    def __init__(self, resource_id: Optional[str] = None):
        message = f"{self.resource} not found"
        if resource_id:
            message = f"{self.resource} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            details={"resource": self.resource, "resource_id": resource_id},
        )


class ServiceNotFound(NotFound):
    code = "SERVICE_NOT_FOUND"
    message_key = "service_not_found"
    resource = "Service"


class ProviderNotFound(NotFound):
    code = "MASTER_NOT_FOUND"
    message_key = "master_not_found"
    resource = "Master"


class ClientNotFound(NotFound):
    code = "CLIENT_NOT_FOUND"
    message_key = "client_not_found"
    resource = "Client"


class BookingNotFound(NotFound):
    code = "BOOKING_NOT_FOUND"
    message_key = "booking_not_found"
    resource = "Booking"


class SlotNotAvailable(BookingError):
    """Requested time slot cannot be booked."""

    code = "SLOT_NOT_AVAILABLE"
    message_key = "slot_not_available"
    default_status = status.HTTP_409_CONFLICT

    def __init__(self, reason: str, alternatives: Optional[List[datetime]] = None):
        self.reason = reason
        self.alternatives = list(alternatives or [])
        super().__init__(
            message=f"Slot not available: {reason}",
            details={
                "reason": reason,
                "suggestions": [slot.isoformat() for slot in self.alternatives],
            },
        )


class InvalidStatusTransition(BookingError):
    code = "INVALID_STATUS_TRANSITION"
    message_key = "invalid_status_transition"
    default_status = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Cannot move booking from {current} to {target}",
            details={"current": current, "target": target},
        )


class InvalidPhone(BookingError):
    code = "INVALID_PHONE"
    message_key = "invalid_phone"
    default_status = status.HTTP_400_BAD_REQUEST


class TemplateNotFound(BookingError):
    code = "TEMPLATE_NOT_FOUND"
    message_key = "template_not_found"
    default_status = status.HTTP_404_NOT_FOUND


class AvailabilityLookupFailed(BookingError):
    code = "AVAILABILITY_LOOKUP_FAILED"
    message_key = "temporarily_unavailable"
    default_status = status.HTTP_503_SERVICE_UNAVAILABLE


class PersistenceError(BookingError):
    code = "PERSISTENCE_ERROR"
    message_key = "temporarily_unavailable"
    default_status = status.HTTP_503_SERVICE_UNAVAILABLE


class TransportError(BookingError):
    code = "TRANSPORT_ERROR"
    message_key = "notification_failed"
    default_status = status.HTTP_502_BAD_GATEWAY
