"""
Unit tests for the instant booking flow and booking follow-ups.
"""
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from conftest import CLIENT_PHONE, FIXED_NOW, PROVIDER_PHONE, bishkek_time, make_booking
from instabook.lib.errors import (
    AvailabilityLookupFailed,
    BookingNotFound,
    BookingValidationError,
    ClientNotFound,
    InvalidStatusTransition,
    PersistenceError,
    ProviderNotFound,
    ServiceNotFound,
    SlotNotAvailable,
)
from instabook.models.enums import BookingStatus, Language, PaymentStatus, ReminderKind
from instabook.schemas.bookings import InstantBookingRequest
from instabook.services.booking_service import generate_booking_id


@pytest.mark.unit
def test_generate_booking_id_format():
    booking_id = generate_booking_id(FIXED_NOW)

    prefix, suffix = booking_id.rsplit("_", 1)
    assert prefix == f"kg_booking_{int(FIXED_NOW.timestamp() * 1000)}"
    assert len(suffix) == 9
    assert suffix.isalnum() and suffix.lower() == suffix
    assert generate_booking_id(FIXED_NOW) != booking_id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_instant_booking(booking_service, booking_payload, repository, transport, metrics):
    result = await booking_service.create_instant_booking("client_1", booking_payload)

    booking = result.booking
    assert booking.id == f"kg_booking_{int(FIXED_NOW.timestamp() * 1000)}_test00001"
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PENDING_MEETING
    assert booking.total_price == Decimal("950")
    assert booking.commission == Decimal("19.00")
    assert booking.confirmed_at == FIXED_NOW
    assert booking.scheduled_start == bishkek_time(15, 14)
    assert booking.address["type"] == "landmark"
    assert booking.address["landmark"] == "ЦУМ"
    assert repository.bookings[booking.id] is booking

    assert result.message == "Заказ создан успешно"
    assert len(result.next_steps) == 3
    assert result.booking_link == f"https://handshakeme.kg/bookings/{booking.id}"
    assert result.notifications_degraded is False

    assert [sms["address"] for sms in transport.sent] == [PROVIDER_PHONE, CLIENT_PHONE]
    assert metrics.get_counter_value("bookings_total", {"outcome": "created"}) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_accepts_parsed_request(booking_service, booking_payload):
    request = InstantBookingRequest.model_validate(booking_payload)

    result = await booking_service.create_instant_booking("client_1", request)

    assert result.booking.provider_id == "master_1"


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("address", [
    {"type": "landmark", "value": "Напротив ЦУМа, второй подъезд", "landmark": ""},
    {"type": "landmark", "value": "Напротив ЦУМа, второй подъезд"},
    {"type": "district", "value": "Мкр Джал, около школы 5"},
    {"type": "district", "value": "Мкр Джал, около школы 5", "district": ""},
])
async def test_address_details_are_optional(booking_service, booking_payload, address):
    booking_payload["address"] = address

    result = await booking_service.create_instant_booking("client_1", booking_payload)

    assert result.booking.address["type"] == address["type"]
    assert result.booking.address["value"] == address["value"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_price_uses_base_price_not_hourly_rate(booking_service, booking_payload, repository):
    repository.services["svc_plumbing"].price_per_hour = Decimal("3000")

    result = await booking_service.create_instant_booking("client_1", booking_payload)

    assert result.booking.base_price == Decimal("1000")
    assert result.booking.total_price == Decimal("950")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_error_carries_requested_language(booking_service, booking_payload):
    booking_payload["serviceId"] = "svc_missing"
    booking_payload["language"] = "ky"

    with pytest.raises(ServiceNotFound) as exc_info:
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert exc_info.value.language == Language.KY


@pytest.mark.unit
@pytest.mark.asyncio
async def test_error_language_ignores_unsupported_code(booking_service, booking_payload):
    booking_payload["serviceId"] = "svc_missing"
    booking_payload["language"] = "en"

    with pytest.raises(BookingValidationError) as exc_info:
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert exc_info.value.language is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_time_conflict_suggests_alternatives(
    booking_service, booking_payload, existing_booking, transport, metrics
):
    booking_payload["datetime"] = "2025-01-15T10:30:00+06:00"

    with pytest.raises(SlotNotAvailable) as exc_info:
        await booking_service.create_instant_booking("client_1", booking_payload)

    error = exc_info.value
    assert error.reason == "time_conflict"
    assert error.alternatives == [bishkek_time(15, 11, 30), bishkek_time(15, 12, 30), bishkek_time(15, 13, 30)]
    assert error.details["suggestions"][0] == "2025-01-15T11:30:00+06:00"
    assert transport.sent == []
    assert metrics.get_counter_value("bookings_total", {"outcome": "time_conflict"}) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_back_to_back_booking_is_allowed(booking_service, booking_payload, existing_booking):
    booking_payload["datetime"] = "2025-01-15T11:00:00+06:00"

    result = await booking_service.create_instant_booking("client_1", booking_payload)

    assert result.booking.scheduled_start == existing_booking.scheduled_end


@pytest.mark.unit
@pytest.mark.asyncio
async def test_outside_working_hours(booking_service, booking_payload, repository):
    booking_payload["datetime"] = "2025-01-15T23:00:00+06:00"

    with pytest.raises(SlotNotAvailable) as exc_info:
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert exc_info.value.reason == "outside_working_hours"
    assert exc_info.value.alternatives[0] == bishkek_time(16, 8)
    assert repository.day_lookups == []


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("field,value,error", [
    ("serviceId", "svc_missing", ServiceNotFound),
    ("serviceId", "svc_manual", ServiceNotFound),
    ("providerId", "master_missing", ProviderNotFound),
])
async def test_missing_references(booking_service, booking_payload, field, value, error):
    booking_payload[field] = value

    with pytest.raises(error):
        await booking_service.create_instant_booking("client_1", booking_payload)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_client(booking_service, booking_payload, repository):
    with pytest.raises(ClientNotFound) as exc_info:
        await booking_service.create_instant_booking("client_missing", booking_payload)

    assert exc_info.value.code == "CLIENT_NOT_FOUND"
    assert repository.bookings == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_address(booking_service, booking_payload, metrics):
    booking_payload["address"] = {"type": "landmark", "value": "short"}

    with pytest.raises(BookingValidationError) as exc_info:
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert exc_info.value.code == "INVALID_ADDRESS"
    assert exc_info.value.message_key == "invalid_address"
    assert metrics.get_counter_value("bookings_total", {"outcome": "INVALID_ADDRESS"}) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_duration(booking_service, booking_payload):
    booking_payload["duration"] = 15

    with pytest.raises(BookingValidationError) as exc_info:
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert exc_info.value.code == "VALIDATION_ERROR"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_availability_lookup_failure(booking_service, booking_payload, repository):
    repository.fail_day_lookups = True

    with pytest.raises(AvailabilityLookupFailed):
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert repository.bookings == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_persistence_failure(booking_service, booking_payload, repository, transport):
    repository.fail_create = True

    with pytest.raises(PersistenceError):
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert transport.sent == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lookup_failure_wrapped(booking_service, booking_payload, repository):
    repository.get_service = AsyncMock(side_effect=RuntimeError("connection reset"))

    with pytest.raises(PersistenceError):
        await booking_service.create_instant_booking("client_1", booking_payload)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_conflict_detected_at_insert(booking_service, booking_payload, repository, availability):
    # A competing booking lands between the availability check and the insert
    competing = make_booking(booking_id="kg_booking_race", scheduled_start=bishkek_time(15, 14))
    original_check = availability.check_availability

    async def check_then_race(**kwargs):
        result = await original_check(**kwargs)
        repository.bookings[competing.id] = competing
        return result

    availability.check_availability = check_then_race

    with pytest.raises(SlotNotAvailable) as exc_info:
        await booking_service.create_instant_booking("client_1", booking_payload)

    assert exc_info.value.reason == "time_conflict"
    assert len(exc_info.value.alternatives) == 3
    assert list(repository.bookings) == ["kg_booking_race"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_booking(booking_service, booking_payload, transport):
    transport.reject.add(CLIENT_PHONE)

    result = await booking_service.create_instant_booking("client_1", booking_payload)

    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.notifications_degraded is True
    assert result.notifications.provider_result.success is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatcher_crash_does_not_fail_booking(booking_service, booking_payload, dispatcher):
    dispatcher.send_booking_confirmation = AsyncMock(side_effect=RuntimeError("boom"))

    result = await booking_service.create_instant_booking("client_1", booking_payload)

    assert result.notifications is None
    assert result.notifications_degraded is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_payment_reminder(booking_service, existing_booking, transport):
    result = await booking_service.send_reminder(existing_booking.id, ReminderKind.PAYMENT)

    assert result.success is True
    assert transport.sent[0]["address"] == CLIENT_PHONE
    assert transport.sent[0]["metadata"]["template"] == "payment_reminder"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_visit_reminder(booking_service, existing_booking, transport):
    result = await booking_service.send_reminder(existing_booking.id, "reminder")

    assert result.success is True
    assert transport.sent[0]["metadata"]["template"] == "booking_reminder"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_booking_reminder_resends_confirmation(booking_service, existing_booking, transport):
    result = await booking_service.send_reminder(existing_booking.id, ReminderKind.BOOKING)

    assert result.success is True
    assert [sms["metadata"]["template"] for sms in transport.sent] == ["new_booking", "booking_confirmed"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reminder_errors(booking_service, existing_booking):
    with pytest.raises(BookingValidationError):
        await booking_service.send_reminder(existing_booking.id, "carrier_pigeon")

    with pytest.raises(BookingNotFound):
        await booking_service.send_reminder("kg_booking_missing", ReminderKind.PAYMENT)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transition_status(booking_service, existing_booking):
    updated = await booking_service.transition_status(existing_booking.id, BookingStatus.IN_PROGRESS)
    assert updated.status == BookingStatus.IN_PROGRESS

    completed = await booking_service.transition_status(existing_booking.id, "completed")
    assert completed.status == BookingStatus.COMPLETED
    assert completed.completed_at == FIXED_NOW


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_stamps_cancelled_at(booking_service, existing_booking):
    cancelled = await booking_service.transition_status(existing_booking.id, BookingStatus.CANCELLED)

    assert cancelled.cancelled_at == FIXED_NOW


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_transition(booking_service, existing_booking):
    with pytest.raises(InvalidStatusTransition) as exc_info:
        await booking_service.transition_status(existing_booking.id, BookingStatus.PENDING)

    assert exc_info.value.details == {"current": "confirmed", "target": "pending"}
    assert existing_booking.status == BookingStatus.CONFIRMED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transition_unknown_booking(booking_service):
    with pytest.raises(BookingNotFound):
        await booking_service.transition_status("kg_booking_missing", BookingStatus.CANCELLED)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transition_unknown_status(booking_service, existing_booking):
    with pytest.raises(BookingValidationError):
        await booking_service.transition_status(existing_booking.id, "teleported")
