"""
Persistence collaborator for the booking engine.

``BookingRepository`` is the interface the engine depends on; absent keys
return None rather than raising. ``SQLAlchemyBookingRepository`` implements it
on PostgreSQL through an AsyncSession.
"""
import asyncio
import hashlib
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from instabook.lib.errors import SlotNotAvailable
from instabook.lib.logging import get_logger
from instabook.lib.settings import settings
from instabook.models.bookings import Booking
from instabook.models.delivery_logs import SMSDeliveryLog
from instabook.models.enums import BookingStatus
from instabook.models.profiles import ClientProfile, ProviderProfile
from instabook.models.services import Service
from instabook.schemas.notifications import DeliveryLogEntry


logger = get_logger(__name__)


# Statuses that occupy a master's time
ACTIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)

# Longest bookable duration; bounds the look-back window of overlap queries
MAX_DURATION_MINUTES = 480


class BookingRepository(ABC):
    """
    Abstract persistence interface consumed by the booking engine.
    """

    @abstractmethod
    async def create_booking(self, booking: Booking) -> Booking:
        """Persist a new booking and return it."""

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Fetch a booking by ID."""

    @abstractmethod
    async def update_booking(self, booking_id: str, fields: Dict[str, Any]) -> Optional[Booking]:
        """Apply a partial update; returns None if the booking does not exist."""

    @abstractmethod
    async def get_service(self, service_id: str) -> Optional[Service]:
        """Fetch a service by ID."""

    @abstractmethod
    async def get_provider_profile(self, provider_id: str) -> Optional[ProviderProfile]:
        """Fetch a master profile by ID."""

    @abstractmethod
    async def get_client_profile(self, client_id: str) -> Optional[ClientProfile]:
        """Fetch a client profile by ID."""

    @abstractmethod
    async def get_provider_bookings_for_day(
        self,
        provider_id: str,
        day_start: datetime,
        day_end: datetime,
    ) -> List[Booking]:
        """Confirmed and in-progress bookings starting within [day_start, day_end)."""

    @abstractmethod
    async def append_delivery_log(self, entry: DeliveryLogEntry) -> None:
        """Append one SMS delivery log entry."""

    @abstractmethod
    async def query_delivery_logs_for_day(self, day: date) -> List[DeliveryLogEntry]:
        """All delivery log entries recorded on ``day`` (UTC)."""


def provider_lock_key(provider_id: str) -> int:
    """
    Consistent bigint key for pg_advisory_xact_lock, derived from the master ID.
    """
    hash_bytes = hashlib.sha256(provider_id.encode()).digest()[:8]
    lock_key = int.from_bytes(hash_bytes, byteorder="big", signed=False)
    # Postgres bigint is signed
    if lock_key > 2**63 - 1:
        lock_key -= 2**64
    return lock_key


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Open-interval overlap: touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


class SQLAlchemyBookingRepository(BookingRepository):
    """
    PostgreSQL-backed repository.

    ``create_booking`` serializes bookings per master with a transaction-scoped
    advisory lock and re-checks overlap before inserting, so two concurrent
    requests cannot both claim the same slot.

    Args:
        db: Async database session
        log_ttl_days: Retention for delivery log rows
        use_advisory_lock: Disable for databases without advisory locks
    """

    def __init__(
        self,
        db: AsyncSession,
        log_ttl_days: int = settings.delivery_log_ttl_days,
        use_advisory_lock: bool = True,
    ):
        self.db = db
        self.log_ttl = timedelta(days=log_ttl_days)
        self.use_advisory_lock = use_advisory_lock
        # AsyncSession forbids concurrent use; bulk SMS sends log in parallel
        self._log_lock = asyncio.Lock()

    async def create_booking(self, booking: Booking) -> Booking:
        try:
            if self.use_advisory_lock:
                await self.db.execute(
                    text("SELECT pg_advisory_xact_lock(:lock_key)"),
                    {"lock_key": provider_lock_key(booking.provider_id)},
                )

            conflicts = await self._find_overlapping(booking)
            if conflicts:
                logger.warning(
                    "Slot taken by a concurrent booking",
                    extra={
                        "booking_id": booking.id,
                        "provider_id": booking.provider_id,
                        "conflicting_booking_id": conflicts[0].id,
                    },
                )
                await self.db.rollback()
                raise SlotNotAvailable(reason="time_conflict")

            self.db.add(booking)
            await self.db.commit()
        except SlotNotAvailable:
            raise
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Booking persisted",
            extra={"booking_id": booking.id, "provider_id": booking.provider_id},
        )
        return booking

    async def _find_overlapping(self, booking: Booking) -> List[Booking]:
        requested_end = booking.scheduled_start + timedelta(minutes=booking.duration_minutes)
        stmt = (
            select(Booking)
            .where(
                Booking.provider_id == booking.provider_id,
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.scheduled_start < requested_end,
                Booking.scheduled_start > booking.scheduled_start - timedelta(minutes=MAX_DURATION_MINUTES),
            )
            .order_by(Booking.scheduled_start)
        )
        result = await self.db.execute(stmt)
        return [
            existing
            for existing in result.scalars().all()
            if intervals_overlap(
                booking.scheduled_start,
                requested_end,
                existing.scheduled_start,
                existing.scheduled_end,
            )
        ]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return await self.db.get(Booking, booking_id)

    async def update_booking(self, booking_id: str, fields: Dict[str, Any]) -> Optional[Booking]:
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            return None

        for key, value in fields.items():
            if key not in Booking.__table__.columns:
                raise ValueError(f"Unknown booking field: {key}")
            if value is not None:
                setattr(booking, key, value)
        booking.updated_at = datetime.now(timezone.utc)

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return booking

    async def get_service(self, service_id: str) -> Optional[Service]:
        return await self.db.get(Service, service_id)

    async def get_provider_profile(self, provider_id: str) -> Optional[ProviderProfile]:
        return await self.db.get(ProviderProfile, provider_id)

    async def get_client_profile(self, client_id: str) -> Optional[ClientProfile]:
        return await self.db.get(ClientProfile, client_id)

    async def get_provider_bookings_for_day(
        self,
        provider_id: str,
        day_start: datetime,
        day_end: datetime,
    ) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.provider_id == provider_id,
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.scheduled_start >= day_start,
                Booking.scheduled_start < day_end,
            )
            .order_by(Booking.scheduled_start)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def append_delivery_log(self, entry: DeliveryLogEntry) -> None:
        timestamp = entry.timestamp.astimezone(timezone.utc)
        row = SMSDeliveryLog(
            log_date=timestamp.date(),
            timestamp=timestamp,
            masked_phone=entry.masked_phone,
            carrier=entry.carrier,
            template_id=entry.template_id,
            language=entry.language,
            success=entry.success,
            error=entry.error,
            message_id=entry.message_id,
            message_length=entry.message_length,
            expires_at=timestamp + self.log_ttl,
        )
        async with self._log_lock:
            self.db.add(row)
            try:
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def query_delivery_logs_for_day(self, day: date) -> List[DeliveryLogEntry]:
        stmt = (
            select(SMSDeliveryLog)
            .where(SMSDeliveryLog.log_date == day)
            .order_by(SMSDeliveryLog.timestamp)
        )
        result = await self.db.execute(stmt)
        return [DeliveryLogEntry.model_validate(row) for row in result.scalars().all()]
