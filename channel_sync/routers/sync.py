from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.channel_client import ChannelClient, get_channel_client
from ..services.channel_sync_service import ChannelSyncService

router = APIRouter(prefix="/api/integrations/beds24/sync", tags=["Channel Sync"])


def _sync_result(result):
    return {
        "success": result.success,
        "action": result.action,
        "reservation_id": result.reservation_id,
        "channel_booking_id": result.channel_booking_id,
        "days_pushed": result.days_pushed,
    }


@router.post("/reservations/{reservation_id}")
def push_reservation(
    reservation_id: str,
    db: Session = Depends(get_db),
    client: ChannelClient = Depends(get_channel_client),
):
    """
    Push a PMS reservation to the channel after a local change.
    Channel-originated reservations are skipped.
    """
    result = ChannelSyncService(db, client=client).push_reservation(reservation_id)
    return _sync_result(result)


@router.post("/availability/{entity_id}")
def push_availability(
    entity_id: str,
    start: Optional[date] = Query(None, description="First day, defaults to today"),
    end: Optional[date] = Query(None, description="Last day (inclusive), defaults to the sync horizon"),
    room_type: bool = Query(False, description="Look the id up as a room type first"),
    db: Session = Depends(get_db),
    client: ChannelClient = Depends(get_channel_client),
):
    """Push the availability calendar of one room or room type"""
    result = ChannelSyncService(db, client=client).push_availability(
        entity_id, start, end, is_room_type=room_type
    )
    return _sync_result(result)
