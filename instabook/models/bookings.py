"""
Booking model - instant bookings between clients and masters.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Integer, Numeric, DateTime, Enum as SQLEnum, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from instabook.lib.db import Base
from instabook.models.enums import (
    BookingStatus,
    Language,
    PaymentMethod,
    PaymentStatus,
    Region,
    Urgency,
)


class Booking(Base):
    """
    Booking entity - a confirmed reservation of a master's time.
    State machine: pending → confirmed → in_progress → completed (or cancelled).
    """
    __tablename__ = "bookings"

    # Opaque identifier, e.g. kg_booking_1736940600000_a1b2c3d4e
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    client_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False)
    service_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Timing
    scheduled_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    # Payment
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method"),
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status"),
        nullable=False,
    )

    # Location and locale
    address: Mapped[dict] = mapped_column(JSONB, nullable=False)
    region: Mapped[Region] = mapped_column(SQLEnum(Region, name="region"), nullable=False, index=True)
    language: Mapped[Language] = mapped_column(SQLEnum(Language, name="language"), nullable=False)
    urgency: Mapped[Urgency] = mapped_column(SQLEnum(Urgency, name="urgency"), nullable=False)

    # Pricing breakdown
    base_price: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    regional_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    urgency_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    payment_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)

    client_notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "duration_minutes >= 30 AND duration_minutes <= 480",
            name="booking_duration_range",
        ),
        Index("ix_bookings_provider_start", "provider_id", "scheduled_start"),
    )

    @property
    def scheduled_end(self) -> datetime:
        return self.scheduled_start + timedelta(minutes=self.duration_minutes)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status={self.status}, provider_id={self.provider_id})>"
