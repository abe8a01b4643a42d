"""
Async Webhook Processor

Applies recorded channel events to reservations, guests and rooms:
1. Webhook router: verifies -> records pending event -> returns 200 fast
2. Background task / worker: loads the event -> dispatches by type -> writes outcome

Guarantees:
- One transaction per event: handler writes commit together with the outcome,
  or roll back entirely before the failure is recorded
- Events for the same external booking id never interleave (keyed lock, plus
  row locks on PostgreSQL)
- Terminal events are never processed again; failed ones only on explicit retry
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundError, ValidationError
from ..models.room import Room, RoomType
from ..models.reservation import (
    Reservation,
    ReservationGuest,
    ReservationStatus,
    GuestType,
)
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from ..schemas.canonical import CanonicalBooking
from ..utils.db_helpers import acquire_row_lock, get_pending_with_skip_locked
from ..utils.keyed_lock import KeyedLock, booking_locks
from ..utils.logging_config import get_logger, set_event_context
from .booking_normalizer import normalize_booking
from .guest_matching_service import GuestMatchingService
from .reservation_mapper import booking_to_reservation_data
from .room_status_service import (
    apply_reservation_status,
    mark_room_occupied,
    release_room_if_idle,
)

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)

ENTITY_ROOM = "room"
ENTITY_ROOM_TYPE = "room_type"

# Columns a modification may overwrite on an existing reservation
UPDATABLE_FIELDS = (
    "room_id",
    "room_type_id",
    "assigned_unit_index",
    "primary_guest_id",
    "check_in",
    "check_out",
    "status",
    "total_amount",
    "currency",
    "source",
    "channel_master_id",
    "special_requests",
)


@dataclass
class WebhookProcessResult:
    """Result of processing a webhook (async path)"""
    success: bool
    action: str  # created, updated, cancelled, deleted, skipped, not_found, ignored_deleted, error
    reservation_id: Optional[str] = None
    error: Optional[str] = None


class WebhookProcessor:
    """
    Reconciles one recorded webhook event at a time.

    Handlers only flush; process_event owns commit and rollback.
    """

    def __init__(
        self,
        db: Session,
        channel_name: Optional[str] = None,
        default_currency: Optional[str] = None,
        default_units_requested: Optional[int] = None,
    ):
        self.db = db
        self.channel_name = channel_name or settings.channel_name
        self.default_currency = default_currency or settings.default_currency
        self.default_units_requested = default_units_requested or settings.default_units_requested
        self.guests = GuestMatchingService(db)

    # ==================
    # Queue
    # ==================

    def get_stale_pending_events(self, grace_seconds: Optional[int] = None, limit: int = 50) -> List[WebhookEvent]:
        """
        Pending events older than the grace period.

        Uses skip_locked so several workers pick different events.
        """
        if grace_seconds is None:
            grace_seconds = settings.webhook_pending_grace_seconds
        cutoff = datetime.utcnow() - timedelta(seconds=grace_seconds)
        return get_pending_with_skip_locked(
            self.db,
            WebhookEvent,
            and_(
                WebhookEvent.status == WebhookEventStatus.PENDING.value,
                WebhookEvent.received_at <= cutoff,
            ),
            order_by=WebhookEvent.received_at,
            limit=limit,
        )

    # ==================
    # Processing
    # ==================

    def _handlers(self) -> Dict[str, Callable[[WebhookEvent, Optional[CanonicalBooking]], WebhookProcessResult]]:
        return {
            "booking.created": self._handle_booking_created,
            "booking.modified": self._handle_booking_modified,
            "booking.cancelled": self._handle_booking_cancelled,
            "booking.deleted": self._handle_booking_deleted,
        }

    def process_event(self, event: WebhookEvent) -> WebhookProcessResult:
        """Process a single webhook event and record its outcome"""
        started = time.monotonic()
        event_pk = event.id
        attempts = (event.attempts or 0) + 1
        set_event_context(event.event_id)

        try:
            payload = json.loads(event.payload_json)
            booking = normalize_booking(payload.get("booking"))

            handler = self._handlers().get(event.event_type)
            if handler is None:
                result = WebhookProcessResult(
                    success=False,
                    action="error",
                    error=f"Unsupported event type {event.event_type}",
                )
            else:
                result = handler(event, booking)

        except Exception as e:
            logger.error(f"Error processing webhook {event.event_id}: {e}", exc_info=True)
            result = WebhookProcessResult(success=False, action="error", error=str(e))

        if not result.success:
            # No partial reservation or guest state survives a failed event
            self.db.rollback()
            event = self.db.query(WebhookEvent).filter(WebhookEvent.id == event_pk).one()

        event.attempts = attempts
        event.status = WebhookEventStatus.SUCCEEDED.value if result.success else WebhookEventStatus.FAILED.value
        event.result_action = result.action
        event.result_reservation_id = result.reservation_id
        event.error_message = result.error[:1000] if result.error else None
        event.processed_at = datetime.utcnow()
        self.db.commit()

        structured_logger.webhook_processed(
            event.event_id,
            result.success,
            result.action,
            reservation_id=result.reservation_id,
            error=result.error,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return result

    # ==================
    # Lookups
    # ==================

    def _find_reservation(self, external_booking_id: str) -> Optional[Reservation]:
        """Reservation by channel booking id, tombstoned ones included"""
        return acquire_row_lock(
            self.db,
            Reservation,
            Reservation.channel_booking_id == external_booking_id,
        )

    def _resolve_inventory(self, channel_room_id: Optional[str]) -> Optional[Tuple[str, str]]:
        """
        Map the channel room reference to (entity_id, entity_type).
        Fixed rooms win over room types sharing the same reference.
        """
        if not channel_room_id:
            return None

        room = self.db.query(Room).filter(Room.channel_room_id == channel_room_id).first()
        if room:
            return room.id, ENTITY_ROOM

        room_type = self.db.query(RoomType).filter(
            RoomType.channel_room_id == channel_room_id,
            RoomType.deleted_at.is_(None),
        ).first()
        if room_type:
            return room_type.id, ENTITY_ROOM_TYPE

        return None

    def _translate(self, booking: CanonicalBooking) -> Dict:
        """
        Resolve room and guest, then map the booking to reservation columns.

        The room is resolved first so an unknown room writes nothing at all.
        """
        if booking is None:
            raise ValidationError("Booking payload is not an object")
        if not booking.is_valid:
            raise ValidationError(
                f"Invalid booking dates for booking {booking.id}: "
                f"{booking.arrival_date} -> {booking.departure_date}"
            )

        inventory = self._resolve_inventory(booking.room_id)
        if inventory is None:
            raise NotFoundError(f"Room {booking.room_id} not found")
        entity_id, entity_type = inventory

        guest_id = self.guests.resolve(booking.guest)

        return booking_to_reservation_data(
            booking,
            entity_id,
            guest_id,
            entity_type=entity_type,
            channel_name=self.channel_name,
            default_currency=self.default_currency,
            default_units_requested=self.default_units_requested,
        )

    def _link_primary_guest(self, reservation: Reservation, guest_id: str) -> None:
        links = self.db.query(ReservationGuest).filter(
            ReservationGuest.reservation_id == reservation.id
        ).all()

        primary = next((link for link in links if link.guest_type == GuestType.PRIMARY.value), None)
        if primary and primary.guest_id == guest_id:
            return

        # The new primary may already be linked as a secondary guest
        for link in links:
            if link.guest_id == guest_id and link is not primary:
                self.db.delete(link)
        self.db.flush()

        if primary:
            primary.guest_id = guest_id
        else:
            self.db.add(ReservationGuest(
                reservation_id=reservation.id,
                guest_id=guest_id,
                guest_type=GuestType.PRIMARY.value,
            ))
        self.db.flush()

    # ==================
    # Create / update
    # ==================

    def _create_reservation(self, booking: CanonicalBooking) -> WebhookProcessResult:
        data = self._translate(booking)
        # Channel-originated reservations are marked as such
        data["source"] = self.channel_name

        reservation = Reservation(**data)
        try:
            with self.db.begin_nested():
                self.db.add(reservation)
                self.db.flush()
        except IntegrityError:
            # Another process inserted the same channel booking first
            existing = self._find_reservation(booking.id)
            if existing is None:
                raise
            logger.info(f"Reservation for booking {booking.id} created concurrently, updating instead")
            return self._update_reservation(existing, booking)

        self._link_primary_guest(reservation, data["primary_guest_id"])

        if reservation.status == ReservationStatus.CHECKED_IN.value:
            mark_room_occupied(self.db, reservation.room_id)

        logger.info(
            f"Created reservation {reservation.id} for booking {booking.id} "
            f"({reservation.check_in} -> {reservation.check_out}, {reservation.status})"
        )
        return WebhookProcessResult(success=True, action="created", reservation_id=reservation.id)

    def _update_reservation(self, reservation: Reservation, booking: CanonicalBooking) -> WebhookProcessResult:
        data = self._translate(booking)

        old_status = reservation.status
        old_room_id = reservation.room_id

        for field_name in UPDATABLE_FIELDS:
            setattr(reservation, field_name, data[field_name])
        self.db.flush()

        self._link_primary_guest(reservation, data["primary_guest_id"])

        # Room status follows the reservation on every modification, not only on transitions
        apply_reservation_status(self.db, reservation.room_id, reservation.id, reservation.status)
        if old_room_id and old_room_id != reservation.room_id:
            # Moved away: the previous room may be free now
            release_room_if_idle(self.db, old_room_id, reservation.id, require_occupied=True)
        if reservation.status != old_status:
            structured_logger.reservation_status_changed(reservation.id, old_status, reservation.status)

        logger.info(f"Updated reservation {reservation.id} for booking {booking.id}")
        return WebhookProcessResult(success=True, action="updated", reservation_id=reservation.id)

    # ==================
    # Handlers
    # ==================

    def _require_booking_id(self, event: WebhookEvent, booking: Optional[CanonicalBooking]) -> str:
        external_id = booking.id if booking else None
        external_id = external_id or event.external_booking_id
        if not external_id:
            raise ValidationError("Missing booking id")
        return external_id

    def _handle_booking_created(
        self, event: WebhookEvent, booking: Optional[CanonicalBooking]
    ) -> WebhookProcessResult:
        """New booking; an already known booking id is applied as an update"""
        booking_id = self._require_booking_id(event, booking)

        existing = self._find_reservation(booking_id)
        if existing is None:
            return self._create_reservation(booking)

        if existing.is_deleted:
            logger.info(f"Booking {booking_id} was deleted, ignoring {event.event_type}")
            return WebhookProcessResult(success=True, action="ignored_deleted", reservation_id=existing.id)

        return self._update_reservation(existing, booking)

    def _handle_booking_modified(
        self, event: WebhookEvent, booking: Optional[CanonicalBooking]
    ) -> WebhookProcessResult:
        """Modification; an unseen booking id is a late creation"""
        booking_id = self._require_booking_id(event, booking)

        existing = self._find_reservation(booking_id)
        if existing is None:
            logger.info(f"Modification for unknown booking {booking_id}, creating it")
            return self._create_reservation(booking)

        if existing.is_deleted:
            logger.info(f"Booking {booking_id} was deleted, ignoring {event.event_type}")
            return WebhookProcessResult(success=True, action="ignored_deleted", reservation_id=existing.id)

        return self._update_reservation(existing, booking)

    def _handle_booking_cancelled(
        self, event: WebhookEvent, booking: Optional[CanonicalBooking]
    ) -> WebhookProcessResult:
        """Cancellation of an unknown booking is a failure"""
        booking_id = self._require_booking_id(event, booking)

        reservation = self._find_reservation(booking_id)
        if reservation is None:
            return WebhookProcessResult(
                success=False,
                action="not_found",
                error=f"Reservation for booking {booking_id} not found",
            )

        if reservation.status == ReservationStatus.CANCELLED.value:
            return WebhookProcessResult(success=True, action="skipped", reservation_id=reservation.id)

        old_status = reservation.status
        reservation.status = ReservationStatus.CANCELLED.value
        self.db.flush()

        if old_status == ReservationStatus.CHECKED_IN.value:
            release_room_if_idle(self.db, reservation.room_id, reservation.id)

        structured_logger.reservation_status_changed(reservation.id, old_status, reservation.status)
        return WebhookProcessResult(success=True, action="cancelled", reservation_id=reservation.id)

    def _handle_booking_deleted(
        self, event: WebhookEvent, booking: Optional[CanonicalBooking]
    ) -> WebhookProcessResult:
        """Deleting an unknown booking is already satisfied"""
        booking_id = self._require_booking_id(event, booking)

        reservation = self._find_reservation(booking_id)
        if reservation is None:
            logger.info(f"Delete for unknown booking {booking_id}, nothing to do")
            return WebhookProcessResult(success=True, action="not_found")

        if reservation.is_deleted:
            return WebhookProcessResult(success=True, action="skipped", reservation_id=reservation.id)

        old_status = reservation.status
        reservation.deleted_at = datetime.utcnow()
        reservation.status = ReservationStatus.CANCELLED.value
        self.db.flush()

        if old_status == ReservationStatus.CHECKED_IN.value:
            release_room_if_idle(self.db, reservation.room_id, reservation.id)

        structured_logger.reservation_status_changed(reservation.id, old_status, reservation.status)
        return WebhookProcessResult(success=True, action="deleted", reservation_id=reservation.id)


# ==================
# Entry points
# ==================

def run_webhook_event(
    session_factory: Callable[[], Session],
    event_id: str,
    locks: KeyedLock = booking_locks,
) -> Optional[WebhookProcessResult]:
    """
    Process one recorded event in its own session.

    Serialized per external booking id. Returns None when the event is missing
    or already terminal.
    """
    db = session_factory()
    try:
        event = db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()
        if event is None:
            logger.warning(f"Webhook event {event_id} not found")
            return None
        external_booking_id = event.external_booking_id
        db.rollback()

        with locks.hold(external_booking_id):
            # Re-read under the lock; a concurrent run may have finished it
            event = acquire_row_lock(db, WebhookEvent, WebhookEvent.event_id == event_id)
            if event is None or event.is_terminal:
                logger.info(f"Webhook event {event_id} already processed, skipping")
                return None
            return WebhookProcessor(db).process_event(event)
    finally:
        db.close()


def process_stale_pending(
    session_factory: Callable[[], Session],
    grace_seconds: Optional[int] = None,
    limit: Optional[int] = None,
) -> int:
    """Reprocess events left pending past the grace period. Returns the count."""
    db = session_factory()
    try:
        events = WebhookProcessor(db).get_stale_pending_events(
            grace_seconds=grace_seconds,
            limit=limit or settings.worker_batch_size,
        )
        event_ids = [event.event_id for event in events]
        db.rollback()
    finally:
        db.close()

    if event_ids:
        logger.info(f"Reprocessing {len(event_ids)} stale pending webhook events")

    processed = 0
    for event_id in event_ids:
        if run_webhook_event(session_factory, event_id) is not None:
            processed += 1
    return processed


def retry_event(session_factory: Callable[[], Session], event_id: str) -> WebhookProcessResult:
    """
    Operator retry of a failed event or one stuck in pending.

    Raises NotFoundError for an unknown id and ValidationError for an event
    that already succeeded or is still inside its grace period.
    """
    db = session_factory()
    try:
        event = db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()
        if event is None:
            raise NotFoundError(f"Webhook event {event_id} not found")

        if event.status == WebhookEventStatus.SUCCEEDED.value:
            raise ValidationError(f"Webhook event {event_id} already succeeded")

        if event.status == WebhookEventStatus.PENDING.value:
            cutoff = datetime.utcnow() - timedelta(seconds=settings.webhook_pending_grace_seconds)
            if event.received_at and event.received_at > cutoff:
                raise ValidationError(f"Webhook event {event_id} is still in progress")

        event.status = WebhookEventStatus.PENDING.value
        event.error_message = None
        db.commit()
        logger.info(f"Retrying webhook event {event_id} (attempt {(event.attempts or 0) + 1})")
    finally:
        db.close()

    result = run_webhook_event(session_factory, event_id)
    if result is None:
        raise ValidationError(f"Webhook event {event_id} was processed concurrently")
    return result
