"""
SMS delivery log model - one immutable row per send attempt.
"""
from datetime import date, datetime
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import String, Text, Integer, Boolean, Date, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from instabook.lib.db import Base


class SMSDeliveryLog(Base):
    """
    Append-only SMS delivery record used for analytics.
    Rows past ``expires_at`` are purged by the retention job.
    """
    __tablename__ = "sms_delivery_logs"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    # Partition key for per-day statistics queries
    log_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    masked_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    carrier: Mapped[str] = mapped_column(String(32), nullable=False)
    template_id: Mapped[str] = mapped_column(String(64), nullable=False)
    language: Mapped[str] = mapped_column(String(8), nullable=False)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    message_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    message_length: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<SMSDeliveryLog(id={self.id}, template={self.template_id}, success={self.success})>"
