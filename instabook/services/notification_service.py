"""
SMS notification dispatch for bookings.

Renders localized templates, fits them to the recipient carrier's length
limit, hands them to an SMS transport, and records one delivery log entry per
attempt. Sends never raise: every outcome comes back as a ``SendResult``.

Transports: Twilio (production) and console (development).
"""
import asyncio
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from instabook.lib.catalog import CarrierProfile, LanguageLike, LocaleCatalog
from instabook.lib.errors import BookingError, InvalidPhone, TransportError
from instabook.lib.logging import get_logger
from instabook.lib.metrics import MetricsCollector, get_metrics_collector
from instabook.lib.phone import PhoneClassifier
from instabook.lib.settings import settings
from instabook.models.bookings import Booking
from instabook.models.enums import NotificationPriority
from instabook.models.profiles import ClientProfile, ProviderProfile
from instabook.repositories.booking_repository import BookingRepository
from instabook.schemas.notifications import (
    BookingConfirmationResult,
    BulkSendResult,
    DeliveryLogEntry,
    DeliveryStats,
    SendRequest,
    SendResult,
    TransportResult,
)


logger = get_logger(__name__)


PRIORITY_CLASSES = {
    NotificationPriority.HIGH: "Transactional",
    NotificationPriority.NORMAL: "Promotional",
}

UNKNOWN_CARRIER = "unknown"
ELLIPSIS = "..."

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """
    Substitute ``{name}`` placeholders.

    Placeholders without a matching variable are left as is.
    """
    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


def truncate_message(message: str, max_length: int) -> str:
    """Cut ``message`` to ``max_length`` characters, ending with an ellipsis when cut."""
    if len(message) <= max_length:
        return message
    return message[: max_length - len(ELLIPSIS)] + ELLIPSIS


class SMSTransport(ABC):
    """
    Abstract SMS gateway.
    """

    name = "abstract"

    @abstractmethod
    async def send_message(
        self,
        address: str,
        body: str,
        priority_class: str,
        metadata: Dict[str, str],
    ) -> TransportResult:
        """
        Send one SMS.

        Args:
            address: Phone number in E.164 format
            body: Final message text
            priority_class: Transactional or Promotional
            metadata: Carrier, template, language and sender ID

        Returns:
            TransportResult with the gateway message ID or an error
        """


class TwilioSMSTransport(SMSTransport):
    """
    Twilio SMS transport.

    The Twilio client is blocking, so each send runs in a worker thread.
    """

    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[Client] = None,
    ):
        self.from_number = from_number
        self.client = client or Client(account_sid, auth_token)
        logger.info("Twilio SMS transport initialized")

    async def send_message(
        self,
        address: str,
        body: str,
        priority_class: str,
        metadata: Dict[str, str],
    ) -> TransportResult:
        try:
            msg = await asyncio.to_thread(
                self.client.messages.create,
                body=body,
                from_=self.from_number,
                to=address,
            )
        except TwilioException as e:
            logger.error(
                f"Failed to send SMS via Twilio: {e}",
                extra={"carrier": metadata.get("carrier"), "priority_class": priority_class},
            )
            return TransportResult(error=str(e))

        logger.info(
            f"SMS sent via Twilio: {msg.sid}",
            extra={"carrier": metadata.get("carrier"), "priority_class": priority_class},
        )
        return TransportResult(message_id=msg.sid)


class ConsoleSMSTransport(SMSTransport):
    """
    Console transport for development/testing.
    Prints messages instead of sending them.
    """

    name = "console"

    async def send_message(
        self,
        address: str,
        body: str,
        priority_class: str,
        metadata: Dict[str, str],
    ) -> TransportResult:
        message_id = f"console-{uuid4().hex[:12]}"
        print("\n" + "=" * 60)
        print(f"SMS to {PhoneClassifier.mask(address)} [{priority_class}]:")
        print(f"   {body}")
        print("=" * 60 + "\n")
        logger.info(
            "SMS logged to console",
            extra={"message_id": message_id, "template": metadata.get("template")},
        )
        return TransportResult(message_id=message_id)


def get_sms_transport() -> SMSTransport:
    """Transport selected by the SMS_PROVIDER setting."""
    if settings.sms_provider == "twilio" and settings.twilio_account_sid:
        return TwilioSMSTransport(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
        )
    logger.info("Using console SMS transport (dev mode)")
    return ConsoleSMSTransport()


class NotificationDispatcher:
    """
    Templated, carrier-aware SMS delivery with delivery logging.

    Args:
        transport: SMS gateway
        repository: Stores delivery log entries
        catalog: Templates and languages
        classifier: Phone validation and carrier detection
        sender_id: Alphanumeric sender ID passed to the transport
        default_max_length: Length limit when the carrier is unknown
        default_encoding: Encoding when the carrier is unknown
        batch_size: Messages sent concurrently per bulk batch
        batch_delay_seconds: Pause between bulk batches
        frontend_url: Base URL for booking links
        sleep: Awaitable pause, replaced in tests
        clock: Returns the current UTC time
        metrics: Counter sink
    """

    def __init__(
        self,
        transport: SMSTransport,
        repository: BookingRepository,
        catalog: LocaleCatalog,
        classifier: PhoneClassifier,
        sender_id: str = settings.sms_sender_id,
        default_max_length: int = settings.default_sms_max_length,
        default_encoding: str = settings.default_sms_encoding,
        batch_size: int = settings.sms_batch_size,
        batch_delay_seconds: float = settings.sms_batch_delay_seconds,
        frontend_url: str = settings.frontend_url,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Optional[Callable[[], datetime]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.transport = transport
        self.repository = repository
        self.catalog = catalog
        self.classifier = classifier
        self.sender_id = sender_id
        self.default_max_length = default_max_length
        self.default_encoding = default_encoding
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.frontend_url = frontend_url.rstrip("/")
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.metrics = metrics or get_metrics_collector()

    def booking_link(self, booking_id: str) -> str:
        return f"{self.frontend_url}/bookings/{booking_id}"

    def _fit_to_carrier(self, message: str, carrier: Optional[CarrierProfile]) -> str:
        max_length = carrier.max_length if carrier else self.default_max_length
        return truncate_message(message, max_length)

    async def send(
        self,
        phone: str,
        template_id: str,
        language: LanguageLike = None,
        variables: Optional[Mapping[str, Any]] = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
    ) -> SendResult:
        """
        Send one templated SMS.

        Invalid phones and unknown templates fail without touching the
        transport. Exactly one delivery log entry is written per call.

        Returns:
            SendResult; never raises
        """
        lang = self.catalog.language_code(language)
        normalized = self.classifier.normalize(phone)
        carrier = self.classifier.classify_carrier(normalized)
        carrier_key = carrier.key if carrier else UNKNOWN_CARRIER
        message_length: Optional[int] = None

        try:
            if not self.classifier.validate(phone):
                raise InvalidPhone(
                    message="Invalid phone number",
                    details={"phone": PhoneClassifier.mask(phone or "")},
                )

            template = self.catalog.template(template_id, lang)
            body = self._fit_to_carrier(render_template(template, variables or {}), carrier)
            message_length = len(body)

            transport_result = await self.transport.send_message(
                address=normalized,
                body=body,
                priority_class=PRIORITY_CLASSES[NotificationPriority(priority)],
                metadata={
                    "sender_id": self.sender_id,
                    "carrier": carrier_key,
                    "template": template_id,
                    "language": lang,
                    "encoding": carrier.encoding if carrier else self.default_encoding,
                },
            )
            if not transport_result.ok:
                raise TransportError(message=transport_result.error)

            result = SendResult(
                success=True,
                message_id=transport_result.message_id,
                carrier=carrier_key,
                message_length=message_length,
            )
        except BookingError as e:
            logger.warning(
                f"SMS not sent: {e.message}",
                extra={"template": template_id, "error_code": e.code, "carrier": carrier_key},
            )
            result = SendResult(
                success=False,
                error=e.message,
                error_code=e.code,
                carrier=carrier_key,
                message_length=message_length,
            )
        except Exception as e:
            logger.error(
                f"SMS transport failed: {e}",
                extra={"template": template_id, "carrier": carrier_key},
                exc_info=True,
            )
            result = SendResult(
                success=False,
                error=str(e),
                error_code=TransportError.code,
                carrier=carrier_key,
                message_length=message_length,
            )

        await self._record_delivery(normalized, template_id, lang, result)
        return result

    async def _record_delivery(self, phone: str, template_id: str, language: str, result: SendResult) -> None:
        entry = DeliveryLogEntry(
            timestamp=self._clock(),
            masked_phone=PhoneClassifier.mask(phone or ""),
            carrier=result.carrier or UNKNOWN_CARRIER,
            template_id=template_id,
            language=language,
            success=result.success,
            error=result.error,
            message_length=result.message_length,
            message_id=result.message_id,
        )

        self.metrics.increment_sms(
            carrier=entry.carrier,
            template=template_id,
            status="sent" if result.success else "failed",
        )
        logger.info("sms_delivery", extra=entry.model_dump(mode="json"))

        try:
            await self.repository.append_delivery_log(entry)
        except Exception as e:
            logger.error(
                f"Failed to store SMS delivery log: {e}",
                extra={"template": template_id, "masked_phone": entry.masked_phone},
            )

    async def send_bulk(self, requests: Sequence[SendRequest]) -> BulkSendResult:
        """
        Send many messages in fixed-size batches.

        Messages inside a batch go out concurrently; batches run one after
        another with a pause between them (none after the last).
        """
        outcome = BulkSendResult()
        total = len(requests)

        for offset in range(0, total, self.batch_size):
            batch = requests[offset:offset + self.batch_size]
            outcome.batches += 1

            batch_results = await asyncio.gather(
                *(
                    self.send(
                        phone=request.phone,
                        template_id=request.template_id,
                        language=request.language,
                        variables=request.variables,
                        priority=request.priority,
                    )
                    for request in batch
                ),
                return_exceptions=True,
            )

            for item in batch_results:
                if isinstance(item, BaseException):
                    item = SendResult(success=False, error=str(item), error_code=TransportError.code)
                if item.success:
                    outcome.sent += 1
                else:
                    outcome.failed += 1
                outcome.results.append(item)

            if offset + self.batch_size < total:
                await self._sleep(self.batch_delay_seconds)

        logger.info(
            f"Bulk SMS complete: {outcome.sent} sent, {outcome.failed} failed",
            extra={"total": total, "batches": outcome.batches},
        )
        return outcome

    async def send_booking_confirmation(
        self,
        booking: Booking,
        provider: ProviderProfile,
        client: ClientProfile,
    ) -> BookingConfirmationResult:
        """
        Notify both sides of a new booking, each in their own language.

        The master gets ``new_booking`` with a link, the client gets
        ``booking_confirmed`` with the master's name and phone.
        """
        provider_language = provider.preferred_language or self.catalog.default_language
        client_language = client.preferred_language or self.catalog.default_language

        provider_result = await self.send(
            phone=provider.phone,
            template_id="new_booking",
            language=provider_language,
            variables={
                "clientName": client.display_name or PhoneClassifier.mask(client.phone),
                "datetime": self.catalog.format_datetime(booking.scheduled_start, provider_language),
                "link": self.booking_link(booking.id),
            },
            priority=NotificationPriority.HIGH,
        )
        client_result = await self.send(
            phone=client.phone,
            template_id="booking_confirmed",
            language=client_language,
            variables={
                "masterName": provider.display_name,
                "phone": provider.phone,
                "datetime": self.catalog.format_datetime(booking.scheduled_start, client_language),
            },
            priority=NotificationPriority.HIGH,
        )

        result = BookingConfirmationResult(provider_result=provider_result, client_result=client_result)
        if result.degraded:
            logger.warning(
                "Booking confirmation delivered partially",
                extra={
                    "booking_id": booking.id,
                    "provider_sms": provider_result.success,
                    "client_sms": client_result.success,
                },
            )
        return result

    async def send_booking_reminder(
        self,
        booking: Booking,
        provider: ProviderProfile,
        client: ClientProfile,
    ) -> SendResult:
        """Remind the client about the upcoming visit."""
        address = booking.address or {}
        return await self.send(
            phone=client.phone,
            template_id="booking_reminder",
            language=client.preferred_language or booking.language,
            variables={"address": address.get("value", ""), "phone": provider.phone},
            priority=NotificationPriority.HIGH,
        )

    async def send_payment_reminder(self, booking: Booking, client: ClientProfile) -> SendResult:
        """Remind the client to pay for the booking."""
        amount = Decimal(booking.total_price).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return await self.send(
            phone=client.phone,
            template_id="payment_reminder",
            language=client.preferred_language or booking.language,
            variables={"paymentMethod": booking.payment_method.value, "amount": str(amount)},
            priority=NotificationPriority.HIGH,
        )

    async def get_stats(self, date_from: date, date_to: date) -> DeliveryStats:
        """
        Aggregate delivery logs over an inclusive date range.

        Logs are read one day at a time; a day whose query fails is skipped.
        """
        stats = DeliveryStats()
        day = date_from
        while day <= date_to:
            try:
                entries: List[DeliveryLogEntry] = await self.repository.query_delivery_logs_for_day(day)
            except Exception as e:
                logger.error(
                    f"Failed to load SMS delivery logs for {day.isoformat()}: {e}",
                    extra={"day": day.isoformat()},
                )
                entries = []

            for entry in entries:
                if entry.success:
                    stats.total_sent += 1
                else:
                    stats.total_failed += 1
                stats.by_carrier[entry.carrier] = stats.by_carrier.get(entry.carrier, 0) + 1
                stats.by_template[entry.template_id] = stats.by_template.get(entry.template_id, 0) + 1
                stats.by_language[entry.language] = stats.by_language.get(entry.language, 0) + 1

            day += timedelta(days=1)
        return stats
