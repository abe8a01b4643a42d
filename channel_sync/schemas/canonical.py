"""
Canonical booking representation.

Channel-agnostic, in-memory only. Produced by the booking normalizer and
consumed by the reservation mapper and the guest matching service.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass
class CanonicalGuest:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    country: str = ""
    address: str = ""
    city: str = ""
    zip: str = ""

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name.strip(), self.last_name.strip()) if part)

    @property
    def has_identity(self) -> bool:
        """True when at least one of name, email or phone is present"""
        return bool(self.full_name or self.email.strip() or self.phone.strip())


@dataclass
class CanonicalBooking:
    id: Optional[str] = None
    master_id: Optional[str] = None
    property_id: Optional[str] = None
    room_id: Optional[str] = None
    unit_id: Optional[int] = None  # 1-based, as received from the channel
    arrival_date: Optional[date] = None
    departure_date: Optional[date] = None
    status: Optional[str] = None
    price: Decimal = field(default_factory=lambda: Decimal("0"))
    currency: Optional[str] = None
    source: Optional[str] = None
    channel: Optional[str] = None
    external_id: Optional[str] = None
    api_reference: Optional[str] = None
    number_of_guests: Optional[int] = None
    special_requests: Optional[str] = None
    guest: Optional[CanonicalGuest] = None

    @property
    def has_dates(self) -> bool:
        return self.arrival_date is not None and self.departure_date is not None

    @property
    def is_valid(self) -> bool:
        """Both dates present and arrival strictly before departure"""
        return self.has_dates and self.arrival_date < self.departure_date
