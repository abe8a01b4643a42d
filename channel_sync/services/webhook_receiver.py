"""
Webhook Receiver

Fast-path webhook handler that:
1. Verifies the HMAC signature over the raw body
2. Validates payload size and shape
3. Derives the event identity and deduplicates on it
4. Stores the raw event as pending
5. Returns immediately (processing runs afterwards)

Nothing is written unless steps 1 and 2 pass.
"""

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import AuthenticationError, ValidationError
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from .booking_normalizer import BOOKING_FIELD_ALIASES, first_present

logger = logging.getLogger(__name__)


EVENT_PREFIX = "booking."
SUPPORTED_EVENTS = ("created", "modified", "cancelled", "deleted")
SIGNATURE_PREFIX = "sha256="


@dataclass
class WebhookReceiveResult:
    """Result of receiving a webhook (fast path)"""
    success: bool
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    external_booking_id: Optional[str] = None
    message: str = ""
    already_exists: bool = False


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the exact request body"""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def normalize_event_type(event: Any) -> Optional[str]:
    """
    "created" and "booking.created" both become "booking.created".
    Anything outside the supported set returns None.
    """
    if not isinstance(event, str):
        return None
    name = event.strip().lower()
    if name.startswith(EVENT_PREFIX):
        name = name[len(EVENT_PREFIX):]
    if name not in SUPPORTED_EVENTS:
        return None
    return f"{EVENT_PREFIX}{name}"


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class WebhookReceiver:
    """
    Handles the fast path for webhook reception.

    Raises AuthenticationError / ValidationError for rejected requests;
    everything else is reported through WebhookReceiveResult.
    """

    def __init__(
        self,
        db: Session,
        webhook_secret: Optional[str] = None,
        channel: Optional[str] = None,
        signature_header: Optional[str] = None,
        max_payload_bytes: Optional[int] = None,
    ):
        self.db = db
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.webhook_secret
        self.channel = channel or settings.channel_slug
        self.signature_header = signature_header or settings.webhook_signature_header
        self.max_payload_bytes = max_payload_bytes or settings.webhook_max_payload_bytes

    # ==================
    # Authentication
    # ==================

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> None:
        """
        Compare the provided signature with our own digest in constant time.
        A missing secret rejects everything rather than accepting unsigned calls.
        """
        if not self.webhook_secret:
            logger.error("Webhook secret is not configured, rejecting webhook")
            raise AuthenticationError("Webhook secret not configured")

        if not signature:
            logger.warning("Missing webhook signature header")
            raise AuthenticationError("Missing webhook signature")

        provided = signature.strip()
        if provided.lower().startswith(SIGNATURE_PREFIX):
            provided = provided[len(SIGNATURE_PREFIX):]

        expected = compute_signature(raw_body, self.webhook_secret)
        if not hmac.compare_digest(provided.lower(), expected):
            logger.warning("Invalid webhook signature")
            raise AuthenticationError("Invalid webhook signature")

    # ==================
    # Validation
    # ==================

    def parse_payload(self, raw_body: bytes) -> dict:
        if len(raw_body) > self.max_payload_bytes:
            raise ValidationError(f"Payload too large: {len(raw_body)} > {self.max_payload_bytes}")

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid JSON body: {e}")

        if not isinstance(payload, dict):
            raise ValidationError("Webhook body must be a JSON object")
        return payload

    def validate_payload(self, payload: dict) -> str:
        """Returns the normalized event type"""
        event_type = normalize_event_type(payload.get("event"))
        if event_type is None:
            raise ValidationError(f"Unsupported or missing event type: {payload.get('event')!r}")

        if not isinstance(payload.get("booking"), dict):
            raise ValidationError("Missing booking object")

        return event_type

    # ==================
    # Identity
    # ==================

    def external_booking_id(self, payload: dict) -> Optional[str]:
        value = first_present(payload.get("booking") or {}, BOOKING_FIELD_ALIASES["id"])
        return str(value).strip() if value is not None else None

    def derive_event_id(self, payload: dict, received_millis: Optional[int] = None) -> str:
        """
        Channel-provided eventId, else "{channel}-{bookingId}-{receiptMillis}".
        The fallback only deduplicates within the same millisecond.
        """
        event_id = payload.get("eventId")
        if event_id is not None and str(event_id).strip():
            return str(event_id).strip()

        if received_millis is None:
            received_millis = int(time.time() * 1000)
        booking_id = self.external_booking_id(payload) or "unknown"
        return f"{self.channel}-{booking_id}-{received_millis}"

    def find_event(self, event_id: str) -> Optional[WebhookEvent]:
        return self.db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()

    # ==================
    # Fast path
    # ==================

    def receive(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookReceiveResult:
        """
        Authenticate, validate, dedupe and record a webhook as pending.

        The pending record is committed before returning so a redelivery that
        arrives while we are still processing finds it.
        """
        self.verify_signature(raw_body, _header(headers, self.signature_header))
        payload = self.parse_payload(raw_body)
        event_type = self.validate_payload(payload)

        event_id = self.derive_event_id(payload)
        external_booking_id = self.external_booking_id(payload)

        existing = self.find_event(event_id)
        if existing:
            logger.info(f"Duplicate webhook {event_id} (status={existing.status}), skipping")
            return WebhookReceiveResult(
                success=True,
                event_id=existing.event_id,
                event_type=existing.event_type,
                external_booking_id=existing.external_booking_id,
                message="Event already received",
                already_exists=True,
            )

        event = WebhookEvent(
            event_id=event_id,
            event_type=event_type,
            channel=self.channel,
            external_booking_id=external_booking_id,
            payload_json=json.dumps(payload),
            status=WebhookEventStatus.PENDING.value,
            attempts=0,
            received_at=datetime.utcnow(),
        )

        try:
            self.db.add(event)
            self.db.commit()
        except IntegrityError:
            # Lost the insert race to a concurrent delivery of the same event
            self.db.rollback()
            logger.info(f"Duplicate webhook {event_id} recorded concurrently, skipping")
            return WebhookReceiveResult(
                success=True,
                event_id=event_id,
                event_type=event_type,
                external_booking_id=external_booking_id,
                message="Event already received",
                already_exists=True,
            )

        logger.info(f"Received webhook {event_type} event_id={event_id} booking={external_booking_id}")
        return WebhookReceiveResult(
            success=True,
            event_id=event_id,
            event_type=event_type,
            external_booking_id=external_booking_id,
            message="Webhook received",
        )
