"""
Shared fixtures: in-memory repository, recording SMS transport, fixed clock.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set
from zoneinfo import ZoneInfo

import pytest

from instabook.lib.catalog import build_default_catalog
from instabook.lib.errors import SlotNotAvailable
from instabook.lib.metrics import MetricsCollector
from instabook.lib.phone import PhoneClassifier
from instabook.models.bookings import Booking
from instabook.models.enums import (
    BookingStatus,
    Language,
    PaymentMethod,
    PaymentStatus,
    Region,
    Urgency,
)
from instabook.models.profiles import ClientProfile, ProviderProfile
from instabook.models.services import Service
from instabook.repositories.booking_repository import (
    ACTIVE_STATUSES,
    BookingRepository,
    intervals_overlap,
)
from instabook.schemas.notifications import DeliveryLogEntry, TransportResult
from instabook.services.availability_service import AvailabilityChecker
from instabook.services.booking_service import InstantBookingService
from instabook.services.notification_service import NotificationDispatcher, SMSTransport
from instabook.services.pricing_service import PricingEngine


BISHKEK = ZoneInfo("Asia/Bishkek")
FIXED_NOW = datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc)

PROVIDER_PHONE = "+996770123456"
CLIENT_PHONE = "+996555987654"


class InMemoryBookingRepository(BookingRepository):
    """Dict-backed repository with switches for simulating outages."""

    def __init__(self):
        self.bookings: Dict[str, Booking] = {}
        self.services: Dict[str, Service] = {}
        self.providers: Dict[str, ProviderProfile] = {}
        self.clients: Dict[str, ClientProfile] = {}
        self.delivery_logs: List[DeliveryLogEntry] = []
        self.day_lookups: List[tuple] = []

        self.fail_day_lookups = False
        self.fail_create = False
        self.fail_log_append = False
        self.failing_log_days: Set[date] = set()

    async def create_booking(self, booking: Booking) -> Booking:
        if self.fail_create:
            raise RuntimeError("database unavailable")
        for existing in self.bookings.values():
            if (
                existing.provider_id == booking.provider_id
                and existing.status in ACTIVE_STATUSES
                and intervals_overlap(
                    booking.scheduled_start,
                    booking.scheduled_end,
                    existing.scheduled_start,
                    existing.scheduled_end,
                )
            ):
                raise SlotNotAvailable(reason="time_conflict")
        self.bookings[booking.id] = booking
        return booking

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    async def update_booking(self, booking_id: str, fields: Dict[str, Any]) -> Optional[Booking]:
        booking = self.bookings.get(booking_id)
        if booking is None:
            return None
        for key, value in fields.items():
            setattr(booking, key, value)
        return booking

    async def get_service(self, service_id: str) -> Optional[Service]:
        return self.services.get(service_id)

    async def get_provider_profile(self, provider_id: str) -> Optional[ProviderProfile]:
        return self.providers.get(provider_id)

    async def get_client_profile(self, client_id: str) -> Optional[ClientProfile]:
        return self.clients.get(client_id)

    async def get_provider_bookings_for_day(
        self,
        provider_id: str,
        day_start: datetime,
        day_end: datetime,
    ) -> List[Booking]:
        self.day_lookups.append((provider_id, day_start, day_end))
        if self.fail_day_lookups:
            raise RuntimeError("database unavailable")
        return [
            booking
            for booking in self.bookings.values()
            if booking.provider_id == provider_id
            and booking.status in ACTIVE_STATUSES
            and day_start <= booking.scheduled_start < day_end
        ]

    async def append_delivery_log(self, entry: DeliveryLogEntry) -> None:
        if self.fail_log_append:
            raise RuntimeError("log store unavailable")
        self.delivery_logs.append(entry)

    async def query_delivery_logs_for_day(self, day: date) -> List[DeliveryLogEntry]:
        if day in self.failing_log_days:
            raise RuntimeError("log store unavailable")
        return [
            entry
            for entry in self.delivery_logs
            if entry.timestamp.astimezone(timezone.utc).date() == day
        ]


class RecordingTransport(SMSTransport):
    """Records every message; selected addresses fail or raise."""

    name = "recording"

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.reject: Set[str] = set()
        self.explode: Set[str] = set()

    async def send_message(
        self,
        address: str,
        body: str,
        priority_class: str,
        metadata: Dict[str, str],
    ) -> TransportResult:
        if address in self.explode:
            raise ConnectionError("gateway timeout")
        self.sent.append({
            "address": address,
            "body": body,
            "priority_class": priority_class,
            "metadata": metadata,
        })
        if address in self.reject:
            return TransportResult(error="rejected by gateway")
        return TransportResult(message_id=f"msg-{len(self.sent)}")


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that only records delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def bishkek_time(day: int, hour: int, minute: int = 0) -> datetime:
    """January 2025 local Bishkek time."""
    return datetime(2025, 1, day, hour, minute, tzinfo=BISHKEK)


def make_booking(
    booking_id: str = "kg_booking_1_existing",
    provider_id: str = "master_1",
    client_id: str = "client_1",
    scheduled_start: Optional[datetime] = None,
    duration_minutes: int = 60,
    status: BookingStatus = BookingStatus.CONFIRMED,
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_MEETING,
    total_price: Decimal = Decimal("950"),
) -> Booking:
    return Booking(
        id=booking_id,
        client_id=client_id,
        provider_id=provider_id,
        service_id="svc_plumbing",
        scheduled_start=scheduled_start or bishkek_time(15, 10),
        duration_minutes=duration_minutes,
        payment_method=payment_method,
        payment_status=PaymentStatus.PENDING_MEETING,
        address={"type": "exact", "value": "ул. Киевская 95, кв. 12", "phone_confirmation": True},
        region=Region.BISHKEK,
        language=Language.RU,
        urgency=Urgency.NORMAL,
        base_price=Decimal("1000"),
        regional_multiplier=Decimal("1.0"),
        urgency_multiplier=Decimal("1.0"),
        payment_multiplier=Decimal("0.95"),
        total_price=total_price,
        commission=Decimal("19"),
        status=status,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
        confirmed_at=FIXED_NOW,
    )


@pytest.fixture
def catalog():
    return build_default_catalog()


@pytest.fixture
def classifier(catalog):
    return PhoneClassifier(carriers=catalog.carriers)


@pytest.fixture
def repository():
    repo = InMemoryBookingRepository()
    repo.services["svc_plumbing"] = Service(
        id="svc_plumbing",
        name="Сантехник",
        base_price=Decimal("1000"),
        price_per_hour=None,
        instant_booking_enabled=True,
        available_regions=["bishkek", "osh"],
        accepted_payment_methods=["cash_on_meeting", "o_money"],
    )
    repo.services["svc_manual"] = Service(
        id="svc_manual",
        name="Ремонт под ключ",
        base_price=Decimal("5000"),
        price_per_hour=None,
        instant_booking_enabled=False,
        available_regions=["bishkek"],
        accepted_payment_methods=["cash_on_meeting"],
    )
    repo.providers["master_1"] = ProviderProfile(
        id="master_1",
        phone=PROVIDER_PHONE,
        display_name="Азамат Токтогулов",
        preferred_language=Language.KY,
        working_regions=["bishkek"],
        accepted_payment_methods=["cash_on_meeting"],
        notify_sms=True,
        notify_push=True,
        notify_email=False,
    )
    repo.clients["client_1"] = ClientProfile(
        id="client_1",
        phone=CLIENT_PHONE,
        display_name="Айгуль",
        preferred_language=Language.RU,
        preferred_region=Region.BISHKEK,
        preferred_payment_method=PaymentMethod.CASH_ON_MEETING,
    )
    return repo


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def dispatcher(transport, repository, catalog, classifier, sleep, metrics):
    return NotificationDispatcher(
        transport=transport,
        repository=repository,
        catalog=catalog,
        classifier=classifier,
        sender_id="HandShake",
        default_max_length=160,
        batch_size=10,
        batch_delay_seconds=1.0,
        frontend_url="https://handshakeme.kg",
        sleep=sleep,
        clock=lambda: FIXED_NOW,
        metrics=metrics,
    )


@pytest.fixture
def availability(repository, catalog):
    return AvailabilityChecker(repository, catalog, alternative_count=3, alternative_increment_minutes=60)


@pytest.fixture
def booking_service(repository, availability, catalog, dispatcher, metrics):
    counter = iter(range(1, 1000))
    return InstantBookingService(
        repository=repository,
        availability=availability,
        pricing=PricingEngine(catalog),
        dispatcher=dispatcher,
        catalog=catalog,
        clock=lambda: FIXED_NOW,
        id_factory=lambda now: f"kg_booking_{int(now.timestamp() * 1000)}_test{next(counter):05d}",
        metrics=metrics,
    )


@pytest.fixture
def booking_payload():
    return {
        "providerId": "master_1",
        "serviceId": "svc_plumbing",
        "datetime": "2025-01-15T14:00:00+06:00",
        "duration": 60,
        "paymentMethod": "cash_on_meeting",
        "address": {
            "type": "landmark",
            "value": "Напротив ЦУМа, второй подъезд",
            "landmark": "ЦУМ",
        },
        "region": "bishkek",
        "language": "ru",
        "urgency": "normal",
    }


@pytest.fixture
def existing_booking(repository):
    booking = make_booking(scheduled_start=bishkek_time(15, 10), duration_minutes=60)
    repository.bookings[booking.id] = booking
    return booking
