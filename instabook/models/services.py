"""
Service model - services that can be booked instantly.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Numeric, Boolean
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from instabook.lib.db import Base


class Service(Base):
    """
    Service entity - read-only reference data for pricing and eligibility.
    """
    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # base_price is charged per hour of booked time; price_per_hour is display-only
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_per_hour: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    instant_booking_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    available_regions: Mapped[list] = mapped_column(JSONB, nullable=False, default=lambda: ["bishkek"])
    accepted_payment_methods: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        default=lambda: ["cash_on_meeting"],
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, instant={self.instant_booking_enabled})>"
