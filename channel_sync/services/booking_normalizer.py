"""
Booking Normalizer

Converts a raw channel booking payload (webhook push or API pull) into one
CanonicalBooking. Field names drift between API versions and between push and
pull paths, so every logical field is looked up through an ordered alias
tuple: the first present, non-empty value wins. New aliases are added to the
tables below, not to the code.

Dotted aliases ("dates.arrival") reach into nested objects.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple

from ..schemas.canonical import CanonicalBooking, CanonicalGuest

logger = logging.getLogger(__name__)


BOOKING_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "bookingId", "booking_id"),
    "master_id": ("masterId", "master_id"),
    "property_id": ("propertyId", "property_id"),
    "room_id": ("roomId", "room_id"),
    "unit_id": ("unitId", "unit_id"),
    "status": ("status",),
    "price": ("price", "totalPrice", "total_price"),
    "currency": ("currency",),
    "source": ("source",),
    "channel": ("channel",),
    "external_id": ("externalId", "external_id"),
    "api_reference": ("apiReference", "api_reference"),
    "number_of_guests": ("numberOfGuests", "number_of_guests", "numGuests", "num_guests"),
    "special_requests": ("specialRequests", "special_requests"),
    "arrival_date": (
        "arrival",
        "arrivalDate",
        "arrival_date",
        "arrivalDateFormatted",
        "arrival_date_formatted",
        "checkIn",
        "check_in",
        "checkin",
        "checkInDate",
        "check_in_date",
        "startDate",
        "start_date",
        "fromDate",
        "from_date",
        "dateFrom",
        "date_from",
        "dates.arrival",
        "dates.arrivalDate",
        "dates.checkIn",
    ),
    "departure_date": (
        "departure",
        "departureDate",
        "departure_date",
        "departureDateFormatted",
        "departure_date_formatted",
        "checkOut",
        "check_out",
        "checkout",
        "checkOutDate",
        "check_out_date",
        "endDate",
        "end_date",
        "toDate",
        "to_date",
        "dateTo",
        "date_to",
        "dates.departure",
        "dates.departureDate",
        "dates.checkOut",
    ),
}

# Aliases inside a guest sub-object (guests[0] or guest)
GUEST_OBJECT_ALIASES: Dict[str, Tuple[str, ...]] = {
    "first_name": ("firstName", "first_name"),
    "last_name": ("lastName", "last_name"),
    "email": ("email",),
    "phone": ("phone", "mobile"),
    "country": ("country", "country2"),
    "address": ("address",),
    "city": ("city",),
    "zip": ("zip", "postcode", "postalCode", "postal_code"),
}

# Guest fields inlined on the booking itself
INLINE_GUEST_ALIASES: Dict[str, Tuple[str, ...]] = {
    "first_name": ("firstName", "guestFirstName", "guest_first_name"),
    "last_name": ("lastName", "guestLastName", "guest_last_name"),
    "email": ("email", "guestEmail", "guest_email"),
    "phone": ("phone", "guestPhone", "guest_phone", "mobile", "guestMobile"),
    "country": ("country", "guestCountry", "guest_country"),
    "address": ("address", "guestAddress", "guest_address"),
    "city": ("city", "guestCity", "guest_city"),
    "zip": ("postcode", "postalCode", "guestPostcode", "guest_postcode"),
}

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d")


def _lookup(payload: Mapping[str, Any], alias: str) -> Any:
    """Resolve a possibly dotted alias against a nested mapping"""
    current: Any = payload
    for part in alias.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def first_present(payload: Mapping[str, Any], aliases: Tuple[str, ...]) -> Any:
    """Return the first alias value that is neither None nor an empty string"""
    for alias in aliases:
        value = _lookup(payload, alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def parse_date(value: Any) -> Optional[date]:
    """Parse a channel date; anything unparseable becomes None"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    # Datetime strings: keep the calendar date only, no timezone shifting
    if "T" in text:
        text = text.split("T")[0]
    elif len(text) > 10 and text[10] == " ":
        text = text[:10]

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.warning(f"Could not parse price: {value!r}")
        return Decimal("0")
    if not amount.is_finite():
        logger.warning(f"Non-finite price ignored: {value!r}")
        return Decimal("0")
    return amount


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def _build_guest(source: Mapping[str, Any], aliases: Dict[str, Tuple[str, ...]]) -> Optional[CanonicalGuest]:
    values = {}
    for field_name, field_aliases in aliases.items():
        value = first_present(source, field_aliases)
        values[field_name] = str(value).strip() if value is not None else ""
    guest = CanonicalGuest(**values)
    return guest if guest.has_identity else None


def extract_guest(booking: Mapping[str, Any]) -> Optional[CanonicalGuest]:
    """
    Three tiers, first one with identifying data wins:
    1. guests[] array - primary guest is the first element
    2. guest object
    3. guest fields inlined on the booking
    """
    guests = booking.get("guests")
    if isinstance(guests, list) and guests and isinstance(guests[0], Mapping):
        guest = _build_guest(guests[0], GUEST_OBJECT_ALIASES)
        if guest:
            return guest

    single = booking.get("guest")
    if isinstance(single, Mapping):
        guest = _build_guest(single, GUEST_OBJECT_ALIASES)
        if guest:
            return guest

    return _build_guest(booking, INLINE_GUEST_ALIASES)


def normalize_booking(booking: Any) -> Optional[CanonicalBooking]:
    """
    Normalize a raw channel booking.

    Returns None only when the input is not a mapping at all. Missing dates
    are left as None; the caller decides whether that is fatal.
    """
    if not isinstance(booking, Mapping):
        return None

    def pick(field_name: str) -> Any:
        return first_present(booking, BOOKING_FIELD_ALIASES[field_name])

    status = pick("status")
    normalized = CanonicalBooking(
        id=_as_str(pick("id")),
        master_id=_as_str(pick("master_id")),
        property_id=_as_str(pick("property_id")),
        room_id=_as_str(pick("room_id")),
        unit_id=_parse_int(pick("unit_id")),
        arrival_date=parse_date(pick("arrival_date")),
        departure_date=parse_date(pick("departure_date")),
        status=str(status).strip().lower() if status is not None else None,
        price=parse_decimal(pick("price")),
        currency=_as_str(pick("currency")),
        source=_as_str(pick("source")),
        channel=_as_str(pick("channel")),
        external_id=_as_str(pick("external_id")),
        api_reference=_as_str(pick("api_reference")),
        number_of_guests=_parse_int(pick("number_of_guests")),
        special_requests=_as_str(pick("special_requests")),
        guest=extract_guest(booking),
    )

    if not normalized.has_dates:
        logger.warning(
            f"Could not resolve booking dates for booking {normalized.id}. "
            f"Available keys: {sorted(booking.keys())}"
        )

    return normalized
