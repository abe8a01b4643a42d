# Models package
from .room import Room, RoomType, RoomStatus
from .guest import Guest, UNKNOWN_GUEST_NAME, UNKNOWN_GUEST_SENTINEL
from .reservation import (
    Reservation,
    ReservationGuest,
    ReservationStatus,
    ReservationSource,
    GuestType,
    ACTIVE_STATUSES,
    unit_identifier,
)
from .maintenance import MaintenanceRequest, MaintenanceStatus, HousekeepingRecord, HousekeepingStatus
from .webhook_event import WebhookEvent, WebhookEventStatus, TERMINAL_STATUSES

__all__ = [
    "Room", "RoomType", "RoomStatus",
    "Guest", "UNKNOWN_GUEST_NAME", "UNKNOWN_GUEST_SENTINEL",
    "Reservation", "ReservationGuest", "ReservationStatus", "ReservationSource", "GuestType",
    "ACTIVE_STATUSES", "unit_identifier",
    "MaintenanceRequest", "MaintenanceStatus", "HousekeepingRecord", "HousekeepingStatus",
    "WebhookEvent", "WebhookEventStatus", "TERMINAL_STATUSES",
]
