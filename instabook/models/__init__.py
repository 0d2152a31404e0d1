"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from instabook.models.bookings import Booking
from instabook.models.services import Service
from instabook.models.profiles import ProviderProfile, ClientProfile
from instabook.models.delivery_logs import SMSDeliveryLog

__all__ = [
    "Booking",
    "Service",
    "ProviderProfile",
    "ClientProfile",
    "SMSDeliveryLog",
]
