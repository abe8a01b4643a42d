"""
Webhook Event Model

One row per channel event identity, written before processing starts:
- Dedup (unique event_id)
- Crash visibility (a row stuck in pending)
- Outcome and error trail for operators
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Index, Integer
from ..database import Base
import enum


class WebhookEventStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATUSES = (WebhookEventStatus.SUCCEEDED.value, WebhookEventStatus.FAILED.value)


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Channel-provided id or "{channel}-{bookingId}-{receiptMillis}"
    event_id = Column(String(255), nullable=False, unique=True)
    event_type = Column(String(50), nullable=False)  # booking.created, booking.modified, ...
    channel = Column(String(50), nullable=False, default="beds24")
    external_booking_id = Column(String(255), nullable=True)

    # Raw payload
    payload_json = Column(Text, nullable=False)

    # Processing status
    status = Column(String(20), nullable=False, default=WebhookEventStatus.PENDING.value)
    attempts = Column(Integer, default=0)

    # Processing result
    result_action = Column(String(50), nullable=True)  # created, updated, cancelled, deleted, not_found, ...
    result_reservation_id = Column(String(36), nullable=True)
    error_message = Column(Text, nullable=True)

    # Timestamps
    received_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_webhook_events_status", "status", "received_at"),
        Index("ix_webhook_events_booking", "channel", "external_booking_id"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<WebhookEvent {self.event_id} {self.event_type} status={self.status}>"
