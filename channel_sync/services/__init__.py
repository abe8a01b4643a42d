# Services package
from .booking_normalizer import normalize_booking, extract_guest, parse_date
from .guest_matching_service import GuestMatchingService, normalize_phone
from .reservation_mapper import (
    map_external_status, map_internal_status,
    map_external_source, map_internal_source,
    external_unit_to_index, index_to_external_unit,
    booking_to_reservation_data, reservation_to_booking_payload
)
from .availability_service import AvailabilityService, AvailabilityDay
from .webhook_receiver import WebhookReceiver, WebhookReceiveResult
from .webhook_processor import (
    WebhookProcessor,
    WebhookProcessResult,
    run_webhook_event,
    process_stale_pending,
    retry_event
)
from .channel_client import ChannelClient, ChannelResponse, get_channel_client
from .channel_sync_service import ChannelSyncService, SyncResult, default_date_range

__all__ = [
    "normalize_booking", "extract_guest", "parse_date",
    "GuestMatchingService", "normalize_phone",
    "map_external_status", "map_internal_status",
    "map_external_source", "map_internal_source",
    "external_unit_to_index", "index_to_external_unit",
    "booking_to_reservation_data", "reservation_to_booking_payload",
    "AvailabilityService", "AvailabilityDay",
    "WebhookReceiver", "WebhookReceiveResult",
    "WebhookProcessor", "WebhookProcessResult",
    "run_webhook_event", "process_stale_pending", "retry_event",
    "ChannelClient", "ChannelResponse", "get_channel_client",
    "ChannelSyncService", "SyncResult", "default_date_range"
]
