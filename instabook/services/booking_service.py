"""
Instant booking use case.

Validates the request, checks the master's availability, prices the booking,
persists it as already confirmed, and notifies both sides. Notification
problems never fail a booking: it is committed by then, so degraded delivery
is only logged and reported back.
"""
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Mapping, Optional, TypeVar, Union

from pydantic import ValidationError

from instabook.lib.catalog import LocaleCatalog
from instabook.lib.errors import (
    BookingError,
    BookingNotFound,
    BookingValidationError,
    ClientNotFound,
    InvalidStatusTransition,
    PersistenceError,
    ProviderNotFound,
    ServiceNotFound,
    SlotNotAvailable,
)
from instabook.lib.logging import get_logger
from instabook.lib.metrics import MetricsCollector, get_metrics_collector
from instabook.models.bookings import Booking
from instabook.models.enums import BookingStatus, Language, ReminderKind
from instabook.repositories.booking_repository import BookingRepository
from instabook.schemas.bookings import InstantBookingRequest
from instabook.schemas.notifications import BookingConfirmationResult, SendResult
from instabook.services.availability_service import AvailabilityChecker
from instabook.services.notification_service import NotificationDispatcher
from instabook.services.pricing_service import PricingEngine


logger = get_logger(__name__)

T = TypeVar("T")

_ID_ALPHABET = string.ascii_lowercase + string.digits

# Timestamp column stamped when a booking enters each status
_STATUS_TIMESTAMPS = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


def generate_booking_id(now: datetime) -> str:
    """``kg_booking_<epoch ms>_<9 random chars>``"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"kg_booking_{int(now.timestamp() * 1000)}_{suffix}"


@dataclass
class InstantBookingResult:
    """A created booking plus what the client app shows next."""

    booking: Booking
    payment_instructions: str
    next_steps: List[str]
    message: str
    booking_link: str
    notifications: Optional[BookingConfirmationResult] = None

    @property
    def notifications_degraded(self) -> bool:
        return self.notifications is None or self.notifications.degraded


class InstantBookingService:
    """
    Orchestrates instant booking creation and follow-up actions.

    Args:
        repository: Persistence collaborator
        availability: Slot checker
        pricing: Price calculator
        dispatcher: SMS notifications
        catalog: Localized texts
        clock: Returns the current UTC time
        id_factory: Builds booking IDs from the creation time
        metrics: Counter sink
    """

    def __init__(
        self,
        repository: BookingRepository,
        availability: AvailabilityChecker,
        pricing: PricingEngine,
        dispatcher: NotificationDispatcher,
        catalog: LocaleCatalog,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Callable[[datetime], str] = generate_booking_id,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.repository = repository
        self.availability = availability
        self.pricing = pricing
        self.dispatcher = dispatcher
        self.catalog = catalog
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory
        self.metrics = metrics or get_metrics_collector()

    async def _load(self, fetch: Callable[[str], Awaitable[Optional[T]]], key: str) -> Optional[T]:
        try:
            return await fetch(key)
        except Exception as e:
            logger.error(f"Repository lookup failed: {e}", extra={"key": key}, exc_info=True)
            raise PersistenceError(message="Repository lookup failed", details={"key": key}) from e

    async def create_instant_booking(
        self,
        client_id: str,
        payload: Union[InstantBookingRequest, Mapping[str, Any]],
    ) -> InstantBookingResult:
        """
        Create and confirm a booking in one step.

        Raises:
            BookingValidationError: malformed payload or address
            ServiceNotFound: unknown service or instant booking disabled
            ProviderNotFound: unknown master
            SlotNotAvailable: outside working hours or time conflict
            ClientNotFound: unknown client profile
            AvailabilityLookupFailed: master's bookings could not be read
            PersistenceError: the booking could not be stored
        """
        try:
            request = self._parse_request(payload)
            result = await self._create(client_id, request)
        except BookingError as e:
            if e.language is None:
                e.language = self._requested_language(payload)
            self.metrics.increment_bookings(e.reason if isinstance(e, SlotNotAvailable) else e.code)
            raise

        self.metrics.increment_bookings("created")
        return result

    @staticmethod
    def _requested_language(payload: Union[InstantBookingRequest, Mapping[str, Any]]) -> Optional[Language]:
        """Language the client asked for, if the payload names a supported one."""
        if isinstance(payload, InstantBookingRequest):
            return payload.language
        try:
            return Language(payload.get("language"))
        except ValueError:
            return None

    @staticmethod
    def _parse_request(payload: Union[InstantBookingRequest, Mapping[str, Any]]) -> InstantBookingRequest:
        if isinstance(payload, InstantBookingRequest):
            return payload
        try:
            return InstantBookingRequest.model_validate(payload)
        except ValidationError as e:
            code = "INVALID_ADDRESS" if any(err["loc"][:1] == ("address",) for err in e.errors()) else None
            raise BookingValidationError(
                message="Invalid booking request",
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
                code=code,
                message_key="invalid_address" if code else None,
            ) from e

    async def _create(self, client_id: str, request: InstantBookingRequest) -> InstantBookingResult:
        service = await self._load(self.repository.get_service, request.service_id)
        if service is None or not service.instant_booking_enabled:
            raise ServiceNotFound(request.service_id)

        provider = await self._load(self.repository.get_provider_profile, request.provider_id)
        if provider is None:
            raise ProviderNotFound(request.provider_id)

        availability = await self.availability.check_availability(
            provider_id=request.provider_id,
            requested_start=request.scheduled_start,
            duration_minutes=request.duration_minutes,
            region=request.region,
        )
        if not availability.available:
            raise SlotNotAvailable(reason=availability.reason, alternatives=availability.alternatives)

        price = self.pricing.compute_price(
            base_price=service.base_price,
            duration_minutes=request.duration_minutes,
            region=request.region,
            payment_method=request.payment_method,
            urgency=request.urgency,
        )

        client = await self._load(self.repository.get_client_profile, client_id)
        if client is None:
            raise ClientNotFound(client_id)

        now = self._clock()
        booking = Booking(
            id=self._id_factory(now),
            client_id=client_id,
            provider_id=request.provider_id,
            service_id=request.service_id,
            scheduled_start=request.scheduled_start,
            duration_minutes=request.duration_minutes,
            payment_method=request.payment_method,
            payment_status=self.catalog.initial_payment_status(request.payment_method),
            address=request.address.model_dump(mode="json"),
            region=request.region,
            language=request.language,
            urgency=request.urgency,
            base_price=price.base_price_computed,
            regional_multiplier=price.regional_multiplier,
            urgency_multiplier=price.urgency_multiplier,
            payment_multiplier=price.payment_multiplier,
            total_price=price.total,
            commission=price.commission,
            client_notes=request.client_notes,
            status=BookingStatus.CONFIRMED,
            created_at=now,
            updated_at=now,
            confirmed_at=now,
        )

        try:
            booking = await self.repository.create_booking(booking)
        except SlotNotAvailable as e:
            raise SlotNotAvailable(
                reason=e.reason,
                alternatives=self.availability.suggest_alternatives(request.scheduled_start, request.region),
            ) from e
        except BookingError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to persist booking: {e}",
                extra={"booking_id": booking.id, "provider_id": booking.provider_id},
                exc_info=True,
            )
            raise PersistenceError(
                message="Failed to persist booking",
                details={"booking_id": booking.id},
            ) from e

        logger.info(
            "Instant booking created",
            extra={
                "booking_id": booking.id,
                "provider_id": booking.provider_id,
                "client_id": client_id,
                "region": request.region.value,
                "total_price": str(price.total),
            },
        )

        notifications: Optional[BookingConfirmationResult] = None
        try:
            notifications = await self.dispatcher.send_booking_confirmation(booking, provider, client)
        except Exception as e:
            logger.error(
                f"Booking notifications failed: {e}",
                extra={"booking_id": booking.id},
                exc_info=True,
            )

        return InstantBookingResult(
            booking=booking,
            payment_instructions=self.catalog.payment_instructions(request.payment_method, request.language),
            next_steps=self.catalog.next_steps(request.language),
            message=self.catalog.message("booking_created", request.language),
            booking_link=self.dispatcher.booking_link(booking.id),
            notifications=notifications,
        )

    async def send_reminder(self, booking_id: str, kind: Union[ReminderKind, str]) -> SendResult:
        """
        Send a follow-up SMS for an existing booking.

        ``booking`` re-sends the confirmation pair and reports the client
        side; ``reminder`` and ``payment`` go to the client only.
        """
        try:
            kind = ReminderKind(kind)
        except ValueError as e:
            raise BookingValidationError(
                message=f"Unknown reminder kind: {kind}",
                details={"kind": str(kind)},
            ) from e

        booking = await self._load(self.repository.get_booking, booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)

        client = await self._load(self.repository.get_client_profile, booking.client_id)
        if client is None:
            raise ClientNotFound(booking.client_id)

        if kind is ReminderKind.PAYMENT:
            return await self.dispatcher.send_payment_reminder(booking, client)

        provider = await self._load(self.repository.get_provider_profile, booking.provider_id)
        if provider is None:
            raise ProviderNotFound(booking.provider_id)

        if kind is ReminderKind.REMINDER:
            return await self.dispatcher.send_booking_reminder(booking, provider, client)

        confirmation = await self.dispatcher.send_booking_confirmation(booking, provider, client)
        return confirmation.client_result

    async def transition_status(self, booking_id: str, new_status: Union[BookingStatus, str]) -> Booking:
        """
        Move a booking along its lifecycle.

        Raises:
            BookingNotFound: unknown booking
            InvalidStatusTransition: the move is not allowed from the current status
        """
        try:
            target = BookingStatus(new_status)
        except ValueError as e:
            raise BookingValidationError(
                message=f"Unknown booking status: {new_status}",
                details={"status": str(new_status)},
            ) from e

        booking = await self._load(self.repository.get_booking, booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)

        current = BookingStatus(booking.status)
        if not current.can_transition_to(target):
            raise InvalidStatusTransition(current=current.value, target=target.value)

        fields = {"status": target}
        stamp = _STATUS_TIMESTAMPS.get(target)
        if stamp:
            fields[stamp] = self._clock()

        try:
            updated = await self.repository.update_booking(booking_id, fields)
        except Exception as e:
            raise PersistenceError(
                message="Failed to update booking status",
                details={"booking_id": booking_id},
            ) from e
        if updated is None:
            raise BookingNotFound(booking_id)

        logger.info(
            f"Booking {booking_id} moved from {current.value} to {target.value}",
            extra={"booking_id": booking_id},
        )
        return updated
