"""
Instant booking API routes.
"""
from fastapi import APIRouter, Depends, status

from instabook.api.dependencies import get_booking_service, get_client_id
from instabook.schemas.bookings import (
    BookingView,
    InstantBookingRequest,
    InstantBookingResponse,
    ReminderRequest,
    StatusUpdateRequest,
)
from instabook.schemas.notifications import SendResult
from instabook.services.booking_service import InstantBookingService


router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/instant", response_model=InstantBookingResponse, status_code=status.HTTP_201_CREATED)
async def create_instant_booking(
    payload: InstantBookingRequest,
    client_id: str = Depends(get_client_id),
    service: InstantBookingService = Depends(get_booking_service),
) -> InstantBookingResponse:
    """
    Create an instantly confirmed booking.

    Errors:
    - 400 VALIDATION_ERROR / INVALID_ADDRESS: malformed request
    - 404 SERVICE_NOT_FOUND / MASTER_NOT_FOUND / CLIENT_NOT_FOUND
    - 409 SLOT_NOT_AVAILABLE: details carry the reason and suggested slots
    - 503 AVAILABILITY_LOOKUP_FAILED / PERSISTENCE_ERROR
    """
    result = await service.create_instant_booking(client_id, payload)

    booking = BookingView.model_validate(result.booking)
    booking.booking_link = result.booking_link

    return InstantBookingResponse(
        booking=booking,
        payment_instructions=result.payment_instructions,
        next_steps=result.next_steps,
        message=result.message,
        notifications_degraded=result.notifications_degraded,
    )


@router.post("/{booking_id}/reminders", response_model=SendResult)
async def send_booking_reminder(
    booking_id: str,
    payload: ReminderRequest,
    service: InstantBookingService = Depends(get_booking_service),
) -> SendResult:
    """Send a follow-up SMS (booking, reminder or payment) for a booking."""
    return await service.send_reminder(booking_id, payload.kind)


@router.post("/{booking_id}/status", response_model=BookingView)
async def update_booking_status(
    booking_id: str,
    payload: StatusUpdateRequest,
    service: InstantBookingService = Depends(get_booking_service),
) -> BookingView:
    """Move a booking to the next lifecycle status or cancel it."""
    booking = await service.transition_status(booking_id, payload.status)
    return BookingView.model_validate(booking)
