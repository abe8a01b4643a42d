"""
Reservation Mapper

Pure, table-driven translation between canonical channel bookings and
internal reservations. No database or network access happens here.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from ..models.reservation import ReservationStatus, ReservationSource, unit_identifier
from ..schemas.canonical import CanonicalBooking


# External (channel) status -> internal status
EXTERNAL_TO_INTERNAL_STATUS: Dict[str, str] = {
    "confirmed": ReservationStatus.CONFIRMED.value,
    "checkedin": ReservationStatus.CHECKED_IN.value,
    "checkedout": ReservationStatus.CHECKED_OUT.value,
    "cancelled": ReservationStatus.CANCELLED.value,
    "request": ReservationStatus.CONFIRMED.value,  # Treat request as confirmed
    "new": ReservationStatus.CONFIRMED.value,
    "inquiry": ReservationStatus.CONFIRMED.value,
}

# Internal status -> external (channel) status
INTERNAL_TO_EXTERNAL_STATUS: Dict[str, str] = {
    ReservationStatus.CONFIRMED.value: "confirmed",
    ReservationStatus.CHECKED_IN.value: "checkedin",
    ReservationStatus.CHECKED_OUT.value: "checkedout",
    ReservationStatus.CANCELLED.value: "cancelled",
}

DEFAULT_INTERNAL_STATUS = ReservationStatus.CONFIRMED.value
DEFAULT_EXTERNAL_STATUS = "confirmed"

EXTERNAL_DIRECT_SOURCE = "direct"
EXTERNAL_CHANNEL_SOURCE = "channel"


def map_external_status(status: Optional[str]) -> str:
    """Map a channel status to the internal one; unknown values become Confirmed"""
    if not status:
        return DEFAULT_INTERNAL_STATUS
    return EXTERNAL_TO_INTERNAL_STATUS.get(status.strip().lower(), DEFAULT_INTERNAL_STATUS)


def map_internal_status(status: Optional[str]) -> str:
    """Map an internal status to the channel one; unknown values become confirmed"""
    return INTERNAL_TO_EXTERNAL_STATUS.get(status or "", DEFAULT_EXTERNAL_STATUS)


def map_internal_source(source: Optional[str]) -> str:
    if source == ReservationSource.DIRECT.value:
        return EXTERNAL_DIRECT_SOURCE
    # All other sources are considered channels
    return EXTERNAL_CHANNEL_SOURCE


def map_external_source(source: Optional[str], channel_name: str = ReservationSource.BEDS24.value) -> str:
    if source == EXTERNAL_DIRECT_SOURCE:
        return ReservationSource.DIRECT.value
    return channel_name


def external_unit_to_index(unit_id: int) -> int:
    """Channel units are 1-based, internal unit indexes are 0-based"""
    if unit_id < 1:
        raise ValueError(f"Channel unit ids start at 1, got {unit_id}")
    return unit_id - 1


def index_to_external_unit(unit_index: int) -> int:
    if unit_index < 0:
        raise ValueError(f"Unit indexes start at 0, got {unit_index}")
    return unit_index + 1


def parse_unit_identifier(identifier: str) -> Tuple[str, int]:
    """Split "{roomTypeId}-unit-{index}" back into its parts"""
    room_type_id, sep, index = identifier.rpartition("-unit-")
    if not sep or not room_type_id or not index.isdigit():
        raise ValueError(f"Not a unit identifier: {identifier!r}")
    return room_type_id, int(index)


def booking_to_reservation_data(
    booking: CanonicalBooking,
    entity_id: str,
    guest_id: str,
    entity_type: str = "room",
    channel_name: str = ReservationSource.BEDS24.value,
    default_currency: str = "USD",
    default_units_requested: int = 1,
) -> Dict[str, Any]:
    """
    Map a canonical booking onto reservation column values.

    entity_type is "room" for a fixed room or "room_type" for pooled inventory;
    only the latter carries an assigned unit index.
    """
    data: Dict[str, Any] = {
        "primary_guest_id": guest_id,
        "check_in": booking.arrival_date,
        "check_out": booking.departure_date,
        "status": map_external_status(booking.status),
        "total_amount": booking.price if booking.price is not None else Decimal("0"),
        "currency": (booking.currency or default_currency).upper(),
        "source": map_external_source(booking.source, channel_name),
        "channel_booking_id": str(booking.id) if booking.id is not None else None,
        "channel_master_id": booking.master_id,
        "special_requests": booking.special_requests or None,
        "units_requested": default_units_requested,
    }

    if entity_type == "room_type":
        data["room_type_id"] = entity_id
        data["room_id"] = None
        data["assigned_unit_index"] = (
            external_unit_to_index(booking.unit_id)
            if booking.unit_id is not None and booking.unit_id >= 1
            else None
        )
    else:
        data["room_id"] = entity_id
        data["room_type_id"] = None
        data["assigned_unit_index"] = None

    return data


def _split_name(name: str) -> Tuple[str, str]:
    parts = (name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _isoformat(value: Any) -> Optional[str]:
    if isinstance(value, date):
        return value.isoformat()
    return value


def reservation_to_booking_payload(
    reservation: Any,
    channel_property_id: str,
    channel_room_id: str,
    guest: Optional[Dict[str, Any]] = None,
    default_currency: str = "USD",
) -> Dict[str, Any]:
    """
    Map an internal reservation to a channel booking payload.

    A reservation that already carries a channel booking id produces an update
    payload (with "id"); otherwise a create payload keyed by our own id.
    """
    payload: Dict[str, Any] = {
        "propertyId": channel_property_id,
        "roomId": channel_room_id,
        "arrival": _isoformat(reservation.check_in),
        "departure": _isoformat(reservation.check_out),
        "status": map_internal_status(reservation.status),
        "price": float(Decimal(str(reservation.total_amount or 0))),
        "currency": reservation.currency or default_currency,
        "source": map_internal_source(reservation.source),
        "externalId": f"PMS-{reservation.id}",
        "numberOfGuests": 1,
    }

    if reservation.special_requests:
        payload["specialRequests"] = reservation.special_requests

    if reservation.room_type_id and reservation.assigned_unit_index is not None:
        payload["unitId"] = index_to_external_unit(reservation.assigned_unit_index)

    if guest:
        first_name, last_name = _split_name(guest.get("name", ""))
        payload["guest"] = {
            "firstName": first_name,
            "lastName": last_name,
            "email": guest.get("email") or None,
            "phone": guest.get("phone") or None,
        }

    if reservation.channel_booking_id:
        payload["id"] = reservation.channel_booking_id

    return payload


def describe_unit(reservation: Any) -> Optional[str]:
    """Composite unit id of a pooled reservation, None for fixed rooms"""
    if reservation.room_type_id and reservation.assigned_unit_index is not None:
        return unit_identifier(reservation.room_type_id, reservation.assigned_unit_index)
    return None
