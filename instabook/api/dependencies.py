"""
API dependencies for FastAPI dependency injection.

Wires the engine components per request: one repository per database
session, with the static catalog, phone classifier and SMS transport shared
process-wide.
"""
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from instabook.lib.catalog import LocaleCatalog, get_default_catalog
from instabook.lib.db import get_db as get_db_session
from instabook.lib.phone import PhoneClassifier
from instabook.lib.settings import settings
from instabook.repositories.booking_repository import BookingRepository, SQLAlchemyBookingRepository
from instabook.services.availability_service import AvailabilityChecker
from instabook.services.booking_service import InstantBookingService
from instabook.services.notification_service import (
    NotificationDispatcher,
    SMSTransport,
    get_sms_transport as build_sms_transport,
)
from instabook.services.pricing_service import PricingEngine


# Re-export get_db for convenience
get_db = get_db_session


def get_catalog() -> LocaleCatalog:
    return get_default_catalog()


@lru_cache(maxsize=1)
def get_phone_classifier() -> PhoneClassifier:
    return PhoneClassifier(
        carriers=get_default_catalog().carriers,
        country_code=settings.country_calling_code,
        national_length=settings.national_number_length,
    )


@lru_cache(maxsize=1)
def get_sms_transport() -> SMSTransport:
    return build_sms_transport()


def get_repository(db: AsyncSession = Depends(get_db)) -> BookingRepository:
    return SQLAlchemyBookingRepository(db)


def get_dispatcher(
    repository: BookingRepository = Depends(get_repository),
    catalog: LocaleCatalog = Depends(get_catalog),
    classifier: PhoneClassifier = Depends(get_phone_classifier),
    transport: SMSTransport = Depends(get_sms_transport),
) -> NotificationDispatcher:
    return NotificationDispatcher(
        transport=transport,
        repository=repository,
        catalog=catalog,
        classifier=classifier,
    )


def get_booking_service(
    repository: BookingRepository = Depends(get_repository),
    catalog: LocaleCatalog = Depends(get_catalog),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> InstantBookingService:
    return InstantBookingService(
        repository=repository,
        availability=AvailabilityChecker(repository, catalog),
        pricing=PricingEngine(catalog),
        dispatcher=dispatcher,
        catalog=catalog,
    )


async def get_client_id(x_client_id: str = Header(default="", alias="X-Client-ID")) -> str:
    """
    Authenticated client ID set by the API gateway.

    Raises:
        HTTPException: 401 if the gateway did not identify the client
    """
    client_id = x_client_id.strip()
    if not client_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing client identity",
        )
    return client_id
