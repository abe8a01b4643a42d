"""
Room Status Service

Housekeeping status of fixed rooms driven by reservation changes:
- Checked-in  -> Occupied
- Checked-out -> Cleaning
- Cancelled / deleted -> Available, but only when no other active
  reservation still holds the room

Pooled room types have no per-room status; every helper is a no-op without
a room id. Helpers flush, never commit.
"""

import logging
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from ..models.room import Room, RoomStatus
from ..models.reservation import Reservation, ReservationStatus, ACTIVE_STATUSES
from ..utils.db_helpers import acquire_row_lock

logger = logging.getLogger(__name__)


def has_other_active_reservation(db: Session, room_id: str, exclude_reservation_id: Optional[str] = None) -> bool:
    """True when a Confirmed or Checked-in reservation other than the excluded one holds the room"""
    query = db.query(Reservation.id).filter(
        and_(
            Reservation.room_id == room_id,
            Reservation.status.in_(ACTIVE_STATUSES),
            Reservation.deleted_at.is_(None),
        )
    )
    if exclude_reservation_id:
        query = query.filter(Reservation.id != exclude_reservation_id)
    return query.first() is not None


def set_room_status(db: Session, room_id: Optional[str], status: RoomStatus) -> bool:
    """Returns True when the status actually changed"""
    if not room_id:
        return False

    room = acquire_row_lock(db, Room, Room.id == room_id)
    if room is None:
        logger.warning(f"Room {room_id} not found, status {status.value} not applied")
        return False

    if room.status == status.value:
        return False

    old_status = room.status
    room.status = status.value
    db.flush()
    logger.info(f"Room {room.room_number}: {old_status} -> {status.value}")
    return True


def mark_room_occupied(db: Session, room_id: Optional[str]) -> bool:
    return set_room_status(db, room_id, RoomStatus.OCCUPIED)


def mark_room_cleaning(db: Session, room_id: Optional[str]) -> bool:
    return set_room_status(db, room_id, RoomStatus.CLEANING)


def release_room_if_idle(
    db: Session,
    room_id: Optional[str],
    reservation_id: Optional[str] = None,
    require_occupied: bool = False,
) -> bool:
    """
    Set the room back to Available unless another active reservation holds it.

    With require_occupied the room is only touched while it is Occupied, so
    Cleaning and Out of Service are left alone.
    """
    if not room_id:
        return False

    if has_other_active_reservation(db, room_id, reservation_id):
        logger.info(f"Room {room_id} still held by another reservation, keeping status")
        return False

    if require_occupied:
        room = db.query(Room).filter(Room.id == room_id).first()
        if room is None or room.status != RoomStatus.OCCUPIED.value:
            return False

    return set_room_status(db, room_id, RoomStatus.AVAILABLE)


def apply_reservation_status(
    db: Session,
    room_id: Optional[str],
    reservation_id: Optional[str],
    status: str,
) -> bool:
    """Room side effect of a reservation moving to `status` through a modification"""
    if status == ReservationStatus.CHECKED_IN.value:
        return mark_room_occupied(db, room_id)
    if status == ReservationStatus.CHECKED_OUT.value:
        return mark_room_cleaning(db, room_id)
    if status == ReservationStatus.CANCELLED.value:
        return release_room_if_idle(db, room_id, reservation_id, require_occupied=True)
    return False
