"""
Booking request/response schemas.

Addresses are a tagged union (exact | landmark | district) validated at the
boundary so malformed input never reaches the engine. Field names are
snake_case; camelCase aliases used by the mobile app are accepted as well.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AliasChoices, AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from instabook.models.enums import (
    BookingStatus,
    Language,
    PaymentMethod,
    PaymentStatus,
    Region,
    ReminderKind,
    Urgency,
)


class _AddressBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    value: str = Field(min_length=10, max_length=500, description="Free-text address description")
    district: Optional[str] = Field(default=None, max_length=255)
    landmark: Optional[str] = Field(default=None, max_length=255)
    phone_confirmation: bool = Field(
        default=True,
        description="Master should call the client to confirm the location"
    )


class ExactAddress(_AddressBase):
    """Street address with building number."""
    type: Literal["exact"] = "exact"


class LandmarkAddress(_AddressBase):
    """Location described relative to a well-known landmark."""
    type: Literal["landmark"] = "landmark"


class DistrictAddress(_AddressBase):
    """Only the district (микрорайон) is known; details by phone."""
    type: Literal["district"] = "district"


Address = Annotated[
    Union[ExactAddress, LandmarkAddress, DistrictAddress],
    Field(discriminator="type"),
]


class InstantBookingRequest(BaseModel):
    """Payload for creating an instant booking."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "providerId": "master_42",
                "serviceId": "svc_plumbing",
                "scheduledStart": "2025-01-15T14:00:00+06:00",
                "durationMinutes": 120,
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
        },
    )

    provider_id: str = Field(
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("provider_id", "providerId", "masterId"),
    )
    service_id: str = Field(
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("service_id", "serviceId"),
    )
    scheduled_start: AwareDatetime = Field(
        validation_alias=AliasChoices("scheduled_start", "scheduledStart", "datetime"),
    )
    duration_minutes: int = Field(
        ge=30,
        le=480,
        validation_alias=AliasChoices("duration_minutes", "durationMinutes", "duration"),
    )
    payment_method: PaymentMethod
    address: Address
    region: Region
    language: Language = Language.RU
    client_notes: Optional[str] = Field(default=None, max_length=1000)
    urgency: Urgency = Urgency.NORMAL


class AvailabilityResult(BaseModel):
    """Outcome of a slot availability check."""

    available: bool
    reason: Optional[str] = None
    alternatives: List[datetime] = Field(default_factory=list)


class PriceBreakdown(BaseModel):
    """Final price and the modifiers it was composed from."""

    model_config = ConfigDict(frozen=True)

    base_price_computed: Decimal
    regional_multiplier: Decimal
    urgency_multiplier: Decimal
    payment_multiplier: Decimal
    commission_rate: Decimal
    commission: Decimal
    total: Decimal


class BookingView(BaseModel):
    """Booking as returned to the client app."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    provider_id: str
    service_id: str
    scheduled_start: datetime
    duration_minutes: int
    total_price: float
    commission: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    address: dict
    region: Region
    language: Language
    urgency: Urgency
    status: BookingStatus
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    booking_link: Optional[str] = None


class InstantBookingResponse(BaseModel):
    """Response body for a created instant booking."""

    booking: BookingView
    payment_instructions: str
    next_steps: List[str]
    message: str
    notifications_degraded: bool = False


class ReminderRequest(BaseModel):
    """Which follow-up SMS to send for a booking."""

    kind: ReminderKind = ReminderKind.REMINDER


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
