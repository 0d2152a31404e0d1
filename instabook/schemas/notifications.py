"""
SMS notification schemas.

Every send produces a typed ``SendResult`` instead of raising, so callers can
decide whether degraded delivery is worth surfacing.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from instabook.models.enums import Language, NotificationPriority


class SendRequest(BaseModel):
    """One templated SMS to send."""

    phone: str
    template_id: str
    language: Language = Language.RU
    variables: Dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.NORMAL


class SendResult(BaseModel):
    """Outcome of a single send attempt."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    carrier: Optional[str] = None
    message_length: Optional[int] = None


class BulkSendResult(BaseModel):
    """Aggregate outcome of a bulk send."""

    sent: int = 0
    failed: int = 0
    batches: int = 0
    results: List[SendResult] = Field(default_factory=list)


class BookingConfirmationResult(BaseModel):
    """Results of the two booking confirmation messages."""

    provider_result: SendResult
    client_result: SendResult

    @property
    def degraded(self) -> bool:
        return not (self.provider_result.success and self.client_result.success)


class TransportResult(BaseModel):
    """What the SMS gateway reported for one message."""

    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DeliveryLogEntry(BaseModel):
    """Immutable record of one send attempt, phone already masked."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    timestamp: datetime
    masked_phone: str
    carrier: str
    template_id: str
    language: str
    success: bool
    error: Optional[str] = None
    message_length: Optional[int] = None
    message_id: Optional[str] = None


class DeliveryStats(BaseModel):
    """Delivery statistics over a date range."""

    total_sent: int = 0
    total_failed: int = 0
    by_carrier: Dict[str, int] = Field(default_factory=dict)
    by_template: Dict[str, int] = Field(default_factory=dict)
    by_language: Dict[str, int] = Field(default_factory=dict)


class StatsPeriod(BaseModel):
    date_from: date
    date_to: date


class DeliveryStatsResponse(BaseModel):
    success: bool = True
    stats: DeliveryStats
    period: StatsPeriod


class BulkSendRequest(BaseModel):
    messages: List[SendRequest] = Field(min_length=1, max_length=1000)
