"""
Availability Service

Computes per-day remaining inventory for a fixed room or a pooled room type.
Read-only: nothing here writes to the database.

remaining(d) = total units
             - units held by active reservations with check_in <= d < check_out
             - units under open maintenance with start_date <= d <= end_date
             - housekeeping Out of Service records on d (fixed rooms only)
clamped at 0.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models.room import Room, RoomType
from ..models.reservation import Reservation, ACTIVE_STATUSES
from ..models.maintenance import (
    MaintenanceRequest,
    MaintenanceStatus,
    HousekeepingRecord,
    HousekeepingStatus,
)

logger = logging.getLogger(__name__)

ENTITY_ROOM = "room"
ENTITY_ROOM_TYPE = "room_type"


@dataclass
class AvailabilityDay:
    date: date
    remaining: int


@dataclass
class InventoryEntity:
    """A resolved room or room type with its capacity"""
    entity_id: str
    entity_type: str
    total_units: int
    channel_room_id: Optional[str] = None

    @property
    def is_room_type(self) -> bool:
        return self.entity_type == ENTITY_ROOM_TYPE


class AvailabilityService:
    """
    Daily availability calendar built from reservations, maintenance and
    housekeeping holds.
    """

    def __init__(self, db: Session):
        self.db = db

    def _date_range(self, start: date, end: date) -> List[date]:
        """Dates from start to end, both inclusive."""
        dates = []
        current = start
        while current <= end:
            dates.append(current)
            current += timedelta(days=1)
        return dates

    def resolve_entity(self, entity_id: str, is_room_type: bool = False) -> InventoryEntity:
        """
        Find the inventory entity behind an id.

        With is_room_type the room type table is tried first, otherwise the
        room table; the other table is the fallback.
        """
        lookups = (self._find_room_type, self._find_room) if is_room_type else (self._find_room, self._find_room_type)
        for lookup in lookups:
            entity = lookup(entity_id)
            if entity is not None:
                return entity
        raise NotFoundError(f"Room or room type {entity_id} not found")

    def _find_room(self, entity_id: str) -> Optional[InventoryEntity]:
        room = self.db.query(Room).filter(Room.id == entity_id).first()
        if room is None:
            return None
        return InventoryEntity(room.id, ENTITY_ROOM, 1, room.channel_room_id)

    def _find_room_type(self, entity_id: str) -> Optional[InventoryEntity]:
        room_type = self.db.query(RoomType).filter(
            RoomType.id == entity_id,
            RoomType.deleted_at.is_(None),
        ).first()
        if room_type is None:
            return None
        return InventoryEntity(room_type.id, ENTITY_ROOM_TYPE, room_type.total_units, room_type.channel_room_id)

    def calculate(
        self,
        entity_id: str,
        start: date,
        end: date,
        is_room_type: bool = False,
    ) -> List[AvailabilityDay]:
        """
        Remaining units for each day of [start, end].

        Raises NotFoundError when the id matches neither a room nor a room type.
        An inverted window yields an empty list.
        """
        entity = self.resolve_entity(entity_id, is_room_type)
        return self.calculate_for_entity(entity, start, end)

    def calculate_for_entity(self, entity: InventoryEntity, start: date, end: date) -> List[AvailabilityDay]:
        if end < start:
            return []

        reservations = self._overlapping_reservations(entity, start, end)
        maintenance = self._overlapping_maintenance(entity, start, end)
        holds = self._out_of_service_days(entity, start, end)

        days = []
        for d in self._date_range(start, end):
            booked = sum(
                units for check_in, check_out, units in reservations
                if check_in <= d < check_out
            )
            blocked = sum(
                units for block_start, block_end, units in maintenance
                if block_start <= d <= block_end
            )
            out_of_service = sum(1 for hold_date in holds if hold_date == d)

            remaining = entity.total_units - booked - blocked - out_of_service
            days.append(AvailabilityDay(date=d, remaining=max(0, remaining)))

        logger.debug(
            f"Availability for {entity.entity_type} {entity.entity_id} "
            f"{start}..{end}: {len(reservations)} reservations, {len(maintenance)} blocks"
        )
        return days

    def has_availability(
        self,
        entity_id: str,
        start: date,
        end: date,
        units: int = 1,
        is_room_type: bool = False,
    ) -> bool:
        """True when every night of the stay [start, end) has at least `units` free"""
        if end <= start:
            return False
        days = self.calculate(entity_id, start, end - timedelta(days=1), is_room_type)
        return all(day.remaining >= units for day in days)

    # ==================
    # Queries
    # ==================

    def _entity_filter(self, model, entity: InventoryEntity):
        if entity.is_room_type:
            return model.room_type_id == entity.entity_id
        return model.room_id == entity.entity_id

    def _overlapping_reservations(self, entity: InventoryEntity, start: date, end: date) -> List[Tuple[date, date, int]]:
        rows = self.db.query(
            Reservation.check_in, Reservation.check_out, Reservation.units_requested
        ).filter(
            and_(
                self._entity_filter(Reservation, entity),
                Reservation.status.in_(ACTIVE_STATUSES),
                Reservation.deleted_at.is_(None),
                Reservation.check_in <= end,
                Reservation.check_out > start,
            )
        ).all()
        return [tuple(row) for row in rows]

    def _overlapping_maintenance(self, entity: InventoryEntity, start: date, end: date) -> List[Tuple[date, date, int]]:
        rows = self.db.query(
            MaintenanceRequest.start_date, MaintenanceRequest.end_date, MaintenanceRequest.affected_units
        ).filter(
            and_(
                self._entity_filter(MaintenanceRequest, entity),
                MaintenanceRequest.status != MaintenanceStatus.COMPLETED.value,
                MaintenanceRequest.start_date <= end,
                MaintenanceRequest.end_date >= start,
            )
        ).all()
        return [tuple(row) for row in rows]

    def _out_of_service_days(self, entity: InventoryEntity, start: date, end: date) -> List[date]:
        # Housekeeping holds only exist per fixed room
        if entity.is_room_type:
            return []
        rows = self.db.query(HousekeepingRecord.date).filter(
            and_(
                HousekeepingRecord.room_id == entity.entity_id,
                HousekeepingRecord.status == HousekeepingStatus.OUT_OF_SERVICE.value,
                HousekeepingRecord.date >= start,
                HousekeepingRecord.date <= end,
            )
        ).all()
        return [row[0] for row in rows]
