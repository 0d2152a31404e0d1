"""
Profile models - masters (service providers) and clients.
"""
from typing import Optional

from sqlalchemy import String, Boolean, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from instabook.lib.db import Base
from instabook.models.enums import Language, PaymentMethod, Region


class ProviderProfile(Base):
    """
    Master profile with contact and notification preferences.
    """
    __tablename__ = "provider_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    preferred_language: Mapped[Language] = mapped_column(
        SQLEnum(Language, name="language"),
        nullable=False,
        default=Language.RU,
    )
    working_regions: Mapped[list] = mapped_column(JSONB, nullable=False, default=lambda: ["bishkek"])
    accepted_payment_methods: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        default=lambda: ["cash_on_meeting"],
    )

    # Notification preferences
    notify_sms: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_push: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<ProviderProfile(id={self.id}, name={self.display_name})>"


class ClientProfile(Base):
    """
    Client profile with locale and payment defaults.
    """
    __tablename__ = "client_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    preferred_language: Mapped[Language] = mapped_column(
        SQLEnum(Language, name="language"),
        nullable=False,
        default=Language.RU,
    )
    preferred_region: Mapped[Region] = mapped_column(
        SQLEnum(Region, name="region"),
        nullable=False,
        default=Region.BISHKEK,
    )
    preferred_payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method"),
        nullable=False,
        default=PaymentMethod.CASH_ON_MEETING,
    )

    def __repr__(self) -> str:
        return f"<ClientProfile(id={self.id})>"
