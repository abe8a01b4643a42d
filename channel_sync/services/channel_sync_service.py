"""
Channel Sync Service

Outbound direction: pushes PMS reservations and availability to the channel.
- Reservations are translated with the reservation mapper
- Availability comes from the availability service, one calendar update per entity
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundError, ValidationError
from ..models.reservation import Reservation
from .availability_service import AvailabilityDay, AvailabilityService
from .channel_client import ChannelClient, extract_booking_id, get_channel_client
from .reservation_mapper import reservation_to_booking_payload

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of one outbound push"""
    success: bool
    action: str  # created, updated, skipped, pushed
    reservation_id: Optional[str] = None
    channel_booking_id: Optional[str] = None
    days_pushed: int = 0
    error: Optional[str] = None


def default_date_range(horizon_days: Optional[int] = None) -> Tuple[date, date]:
    """Today through today + horizon"""
    today = date.today()
    horizon = horizon_days if horizon_days is not None else settings.sync_horizon_days
    return today, today + timedelta(days=horizon)


def _channel_room_ref(channel_room_id: str) -> Union[int, str]:
    """The channel expects numeric room ids as integers"""
    return int(channel_room_id) if channel_room_id.isdigit() else channel_room_id


def build_calendar_update(channel_room_id: str, start: date, end: date, days: List[AvailabilityDay]) -> Dict:
    return {
        "roomId": _channel_room_ref(channel_room_id),
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        "data": {day.date.isoformat(): {"numAvail": day.remaining} for day in days},
    }


class ChannelSyncService:
    """
    Pushes local changes to the channel.

    Channel-originated reservations are never pushed back.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[ChannelClient] = None,
        channel_name: Optional[str] = None,
        channel_property_id: Optional[str] = None,
    ):
        self.db = db
        self.client = client or get_channel_client()
        self.channel_name = channel_name or settings.channel_name
        self.channel_property_id = channel_property_id or settings.channel_property_id
        self.availability = AvailabilityService(db)

    def _reservation_room_ref(self, reservation: Reservation) -> Optional[str]:
        if reservation.room is not None:
            return reservation.room.channel_room_id
        if reservation.room_type is not None:
            return reservation.room_type.channel_room_id
        return None

    def push_reservation(self, reservation_id: str) -> SyncResult:
        """
        Create or update the reservation on the channel.

        A newly created channel booking id is stored on the reservation so the
        next push is an update.
        """
        reservation = self.db.query(Reservation).filter(
            Reservation.id == reservation_id,
            Reservation.deleted_at.is_(None),
        ).first()
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")

        if reservation.source == self.channel_name:
            logger.debug(f"Reservation {reservation_id} came from {self.channel_name}, not pushing back")
            return SyncResult(success=True, action="skipped", reservation_id=reservation_id)

        channel_room_id = self._reservation_room_ref(reservation)
        if not channel_room_id:
            raise ValidationError(f"Reservation {reservation_id} has no channel room mapping")

        guest = None
        if reservation.primary_guest is not None:
            guest = {
                "name": reservation.primary_guest.name,
                "email": reservation.primary_guest.email,
                "phone": reservation.primary_guest.phone,
            }

        payload = reservation_to_booking_payload(
            reservation,
            self.channel_property_id,
            channel_room_id,
            guest=guest,
            default_currency=settings.default_currency,
        )
        is_update = "id" in payload

        response = self.client.push_booking(payload)

        channel_booking_id = reservation.channel_booking_id
        if not is_update:
            channel_booking_id = extract_booking_id(response)
            if channel_booking_id:
                reservation.channel_booking_id = channel_booking_id
                self.db.commit()

        action = "updated" if is_update else "created"
        logger.info(f"Pushed reservation {reservation_id} to {self.channel_name} ({action}, id={channel_booking_id})")
        return SyncResult(
            success=True,
            action=action,
            reservation_id=reservation_id,
            channel_booking_id=channel_booking_id,
        )

    def push_availability(
        self,
        entity_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        is_room_type: bool = False,
    ) -> SyncResult:
        """Send remaining units per day of [start, end] for one room or room type"""
        if start is None or end is None:
            default_start, default_end = default_date_range()
            start = start or default_start
            end = end or default_end

        entity = self.availability.resolve_entity(entity_id, is_room_type)
        if not entity.channel_room_id:
            raise ValidationError(f"{entity.entity_type} {entity_id} has no channel room mapping")

        days = self.availability.calculate_for_entity(entity, start, end)
        update = build_calendar_update(entity.channel_room_id, start, end, days)

        self.client.push_calendar(update)

        logger.info(f"Pushed {len(days)} days of availability for {entity.entity_type} {entity_id}")
        return SyncResult(success=True, action="pushed", days_pushed=len(days))
