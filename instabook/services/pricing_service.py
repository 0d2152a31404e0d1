"""
Pricing engine.

Composes the final booking price from the service's hourly rate, the booked
duration, and three independent multipliers (region, urgency, payment method),
then derives the platform commission. Pure: no I/O and no clock reads.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from instabook.lib.catalog import LocaleCatalog
from instabook.models.enums import PaymentMethod, Region, Urgency
from instabook.schemas.bookings import PriceBreakdown


MINUTES_PER_HOUR = Decimal(60)
WHOLE_UNITS = Decimal("1")

Number = Union[Decimal, int, str]


def compute_price(
    base_price: Number,
    duration_minutes: int,
    region: Region,
    payment_method: PaymentMethod,
    urgency: Urgency,
    catalog: LocaleCatalog,
) -> PriceBreakdown:
    """
    Price a booking.

    total = round(base_price * duration/60 * regional * urgency * payment),
    rounded half away from zero to whole currency units. The commission is
    computed from the unrounded adjusted price and is not rounded.

    Args:
        base_price: Hourly rate of the service
        duration_minutes: Booked duration
        region: Market region of the booking
        payment_method: How the client pays
        urgency: How soon the client needs the master
        catalog: Multiplier and commission tables

    Returns:
        PriceBreakdown with every modifier used
    """
    duration_price = Decimal(base_price) * Decimal(duration_minutes) / MINUTES_PER_HOUR

    regional_multiplier = catalog.regional_settings(region).multiplier
    urgency_multiplier = catalog.urgency_multiplier(urgency)
    payment_multiplier = catalog.payment_multiplier(payment_method)
    commission_rate = catalog.commission_rate(payment_method)

    adjusted = duration_price * regional_multiplier * urgency_multiplier * payment_multiplier

    return PriceBreakdown(
        base_price_computed=duration_price,
        regional_multiplier=regional_multiplier,
        urgency_multiplier=urgency_multiplier,
        payment_multiplier=payment_multiplier,
        commission_rate=commission_rate,
        commission=adjusted * commission_rate,
        total=adjusted.quantize(WHOLE_UNITS, rounding=ROUND_HALF_UP),
    )


class PricingEngine:
    """``compute_price`` bound to a catalog."""

    def __init__(self, catalog: LocaleCatalog):
        self.catalog = catalog

    def compute_price(
        self,
        base_price: Number,
        duration_minutes: int,
        region: Region,
        payment_method: PaymentMethod,
        urgency: Urgency = Urgency.NORMAL,
    ) -> PriceBreakdown:
        return compute_price(
            base_price=base_price,
            duration_minutes=duration_minutes,
            region=region,
            payment_method=payment_method,
            urgency=urgency,
            catalog=self.catalog,
        )
