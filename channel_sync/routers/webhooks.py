"""
Channel Webhooks Router

- Webhook endpoint (fast ack, processing as a background task)
- Operator endpoints to inspect and retry recorded events
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db, get_session_factory
from ..errors import ChannelSyncError, NotFoundError, ValidationError
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from ..schemas.webhook import (
    WebhookResponse,
    WebhookEventResponse,
    WebhookEventDetail,
    RetryResponse,
)
from ..services.webhook_receiver import WebhookReceiver
from ..services.webhook_processor import run_webhook_event, retry_event
from ..utils.logging_config import get_logger

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)

router = APIRouter(prefix="/api/integrations/beds24", tags=["Channel Webhooks"])


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "no-request-id"


@router.post("/webhook", response_model=WebhookResponse)
async def channel_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    """
    Receive booking webhooks from the channel (FAST PATH).

    Flow: verify signature -> validate -> record pending -> return 200.
    Processing runs after the response as a background task.

    401 for a missing or invalid signature, 400 for a malformed payload;
    neither creates a record.
    """
    request_id = get_request_id(request)
    body = await request.body()

    try:
        receiver = WebhookReceiver(db)
        result = receiver.receive(body, request.headers)
    except ChannelSyncError:
        raise
    except Exception as e:
        logger.error(f"[{request_id}] Failed to record webhook: {e}", exc_info=True)
        raise ChannelSyncError("Failed to record webhook", status_code=500)

    structured_logger.webhook_received(
        result.event_id,
        result.event_type,
        result.external_booking_id,
        duplicate=result.already_exists,
    )

    if not result.already_exists:
        background_tasks.add_task(run_webhook_event, session_factory, result.event_id)

    return WebhookResponse(
        success=True,
        message=result.message,
        event_id=result.event_id,
    )


# ==================
# Operator endpoints
# ==================

@router.get("/events", response_model=List[WebhookEventResponse])
def list_events(
    status: Optional[str] = Query(None, description="pending, succeeded or failed"),
    external_booking_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Recorded webhook events, newest first"""
    query = db.query(WebhookEvent)

    if status:
        allowed = [s.value for s in WebhookEventStatus]
        if status not in allowed:
            raise ValidationError(f"Unknown status {status!r}, expected one of {', '.join(allowed)}")
        query = query.filter(WebhookEvent.status == status)

    if external_booking_id:
        query = query.filter(WebhookEvent.external_booking_id == external_booking_id)

    return query.order_by(WebhookEvent.received_at.desc()).limit(limit).all()


@router.get("/events/{event_id}", response_model=WebhookEventDetail)
def get_event(event_id: str, db: Session = Depends(get_db)):
    event = db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()
    if event is None:
        raise NotFoundError(f"Webhook event {event_id} not found")
    return event


@router.post("/events/{event_id}/retry", response_model=RetryResponse)
def retry_webhook_event(event_id: str, session_factory=Depends(get_session_factory)):
    """
    Reprocess a failed event, or a pending one stuck past the grace period.
    Runs synchronously and returns the new outcome.
    """
    result = retry_event(session_factory, event_id)
    return RetryResponse(
        success=result.success,
        action=result.action,
        event_id=event_id,
        reservation_id=result.reservation_id,
        error=result.error,
    )
