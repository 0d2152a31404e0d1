"""
Slot availability checks for instant bookings.

A slot is bookable when its local start hour is inside the region's working
hours and it does not overlap any confirmed or in-progress booking of the
master. When it is not bookable, a few naive alternative start times are
suggested; they are not re-checked against the master's calendar.
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from instabook.lib.catalog import LocaleCatalog, RegionalSettings
from instabook.lib.errors import AvailabilityLookupFailed
from instabook.lib.logging import get_logger
from instabook.lib.settings import settings
from instabook.models.bookings import Booking
from instabook.models.enums import Region
from instabook.repositories.booking_repository import BookingRepository, intervals_overlap
from instabook.schemas.bookings import AvailabilityResult


logger = get_logger(__name__)


OUTSIDE_WORKING_HOURS = "outside_working_hours"
TIME_CONFLICT = "time_conflict"


def has_conflict(
    requested_start: datetime,
    duration_minutes: int,
    existing: Iterable[Booking],
) -> Optional[Booking]:
    """
    First existing booking overlapping the requested interval, or None.

    Intervals are half-open, so a booking ending exactly when the requested
    one starts is not a conflict.
    """
    requested_end = requested_start + timedelta(minutes=duration_minutes)
    for booking in existing:
        if intervals_overlap(requested_start, requested_end, booking.scheduled_start, booking.scheduled_end):
            return booking
    return None


def suggest_alternatives(
    requested_start: datetime,
    regional: RegionalSettings,
    count: int = 3,
    increment_minutes: int = 60,
) -> List[datetime]:
    """
    Naive alternative start times in the region's timezone.

    Candidate ``i`` is ``requested_start + i * increment``. A candidate that
    lands after the working-hours end hour, or on a later date, is replaced by
    the next day at ``start_hour + (i - 1) * increment`` keeping the requested
    minute.
    """
    local = requested_start.astimezone(regional.tzinfo)
    step = timedelta(minutes=increment_minutes)
    next_day_opening = (local + timedelta(days=1)).replace(hour=regional.working_hours.start_hour)

    suggestions = []
    for i in range(1, count + 1):
        candidate = local + i * step
        if candidate.date() != local.date() or candidate.hour > regional.working_hours.end_hour:
            candidate = next_day_opening + (i - 1) * step
        suggestions.append(candidate)
    return suggestions


class AvailabilityChecker:
    """
    Decides whether a master can take a booking at the requested time.

    Read-only: the day-window lookup is delegated to the repository, and any
    repository failure surfaces as ``AvailabilityLookupFailed``.

    Args:
        repository: Persistence collaborator
        catalog: Regional working hours and timezones
        alternative_count: How many alternatives to suggest
        alternative_increment_minutes: Step between alternatives
    """

    def __init__(
        self,
        repository: BookingRepository,
        catalog: LocaleCatalog,
        alternative_count: int = settings.alternative_slot_count,
        alternative_increment_minutes: int = settings.alternative_slot_increment_minutes,
    ):
        self.repository = repository
        self.catalog = catalog
        self.alternative_count = alternative_count
        self.alternative_increment_minutes = alternative_increment_minutes

    def suggest_alternatives(self, requested_start: datetime, region: Region) -> List[datetime]:
        return suggest_alternatives(
            requested_start,
            self.catalog.regional_settings(region),
            count=self.alternative_count,
            increment_minutes=self.alternative_increment_minutes,
        )

    async def check_availability(
        self,
        provider_id: str,
        requested_start: datetime,
        duration_minutes: int,
        region: Region,
    ) -> AvailabilityResult:
        """
        Check a slot for a master.

        Raises:
            AvailabilityLookupFailed: if the master's bookings cannot be loaded
        """
        regional = self.catalog.regional_settings(region)
        local_start = requested_start.astimezone(regional.tzinfo)

        if not regional.working_hours.contains(local_start.hour):
            logger.info(
                "Requested slot outside working hours",
                extra={
                    "provider_id": provider_id,
                    "region": Region(region).value,
                    "local_hour": local_start.hour,
                },
            )
            return AvailabilityResult(
                available=False,
                reason=OUTSIDE_WORKING_HOURS,
                alternatives=self.suggest_alternatives(requested_start, region),
            )

        day_start = local_start.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1)

        try:
            existing = await self.repository.get_provider_bookings_for_day(provider_id, day_start, day_end)
        except Exception as e:
            logger.error(
                "Failed to load master bookings",
                extra={"provider_id": provider_id, "error": str(e)},
                exc_info=True,
            )
            raise AvailabilityLookupFailed(
                message=f"Could not load bookings for master {provider_id}",
                details={"provider_id": provider_id},
            ) from e

        conflict = has_conflict(requested_start, duration_minutes, existing)
        if conflict is not None:
            logger.info(
                "Requested slot conflicts with an existing booking",
                extra={"provider_id": provider_id, "conflicting_booking_id": conflict.id},
            )
            return AvailabilityResult(
                available=False,
                reason=TIME_CONFLICT,
                alternatives=self.suggest_alternatives(requested_start, region),
            )

        return AvailabilityResult(available=True)
