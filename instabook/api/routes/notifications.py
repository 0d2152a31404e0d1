"""
SMS notification API routes.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from instabook.api.dependencies import get_dispatcher
from instabook.lib.errors import BookingValidationError, InvalidPhone, TemplateNotFound
from instabook.schemas.notifications import (
    BulkSendRequest,
    BulkSendResult,
    DeliveryStatsResponse,
    SendRequest,
    SendResult,
    StatsPeriod,
)
from instabook.services.notification_service import NotificationDispatcher


router = APIRouter(prefix="/notifications/sms", tags=["notifications"])


DEFAULT_STATS_DAYS = 7

# HTTP status for a failed single send, by error code
_FAILURE_STATUS = {
    InvalidPhone.code: status.HTTP_400_BAD_REQUEST,
    TemplateNotFound.code: status.HTTP_404_NOT_FOUND,
}


@router.post("", response_model=SendResult)
async def send_sms(
    payload: SendRequest,
    response: Response,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> SendResult:
    """
    Send one templated SMS.

    The body is always a SendResult; the status code reflects failures
    (400 invalid phone, 404 unknown template, 502 gateway error).
    """
    result = await dispatcher.send(
        phone=payload.phone,
        template_id=payload.template_id,
        language=payload.language,
        variables=payload.variables,
        priority=payload.priority,
    )
    if not result.success:
        response.status_code = _FAILURE_STATUS.get(result.error_code, status.HTTP_502_BAD_GATEWAY)
    return result


@router.post("/bulk", response_model=BulkSendResult)
async def send_bulk_sms(
    payload: BulkSendRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BulkSendResult:
    """Send many SMS in rate-limited batches."""
    return await dispatcher.send_bulk(payload.messages)


@router.get("/stats", response_model=DeliveryStatsResponse)
async def get_sms_stats(
    date_from: Optional[date] = Query(None, description="First day, inclusive (default: 7 days ago)"),
    date_to: Optional[date] = Query(None, description="Last day, inclusive (default: today, UTC)"),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> DeliveryStatsResponse:
    """SMS delivery statistics by carrier, template and language."""
    date_to = date_to or datetime.now(timezone.utc).date()
    date_from = date_from or date_to - timedelta(days=DEFAULT_STATS_DAYS)
    if date_from > date_to:
        raise BookingValidationError(
            message="date_from must not be after date_to",
            details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )

    stats = await dispatcher.get_stats(date_from, date_to)
    return DeliveryStatsResponse(stats=stats, period=StatsPeriod(date_from=date_from, date_to=date_to))
