"""
Webhook Schemas

Pydantic models for the webhook endpoint and the operator event endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the channel"""
    success: bool
    message: str
    event_id: Optional[str] = None


class WebhookEventResponse(BaseModel):
    """Stored webhook event (payload omitted)"""
    event_id: str
    event_type: str
    channel: str
    external_booking_id: Optional[str] = None
    status: str
    attempts: int = 0
    result_action: Optional[str] = None
    result_reservation_id: Optional[str] = None
    error_message: Optional[str] = None
    received_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookEventDetail(WebhookEventResponse):
    """Stored webhook event including the raw payload"""
    payload_json: str


class RetryResponse(BaseModel):
    """Outcome of an operator retry"""
    success: bool
    action: str
    event_id: str
    reservation_id: Optional[str] = None
    error: Optional[str] = None
