from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..errors import ValidationError
from ..schemas.availability import AvailabilityResponse
from ..services.availability_service import AvailabilityService

router = APIRouter(prefix="/api/availability", tags=["Availability"])


@router.get("/{entity_id}", response_model=AvailabilityResponse)
def get_availability(
    entity_id: str,
    start: date = Query(..., description="First day, YYYY-MM-DD"),
    end: date = Query(..., description="Last day (inclusive), YYYY-MM-DD"),
    room_type: bool = Query(False, description="Look the id up as a room type first"),
    db: Session = Depends(get_db),
):
    """
    Remaining units for each day of [start, end] for a room or room type.
    An end before start returns no days.
    """
    if (end - start).days + 1 > settings.availability_max_days:
        raise ValidationError(f"Date window exceeds {settings.availability_max_days} days")

    service = AvailabilityService(db)
    entity = service.resolve_entity(entity_id, is_room_type=room_type)
    days = service.calculate_for_entity(entity, start, end)

    return AvailabilityResponse(
        entity_id=entity.entity_id,
        entity_type=entity.entity_type,
        total_units=entity.total_units,
        days=[{"date": day.date, "remaining": day.remaining} for day in days],
    )
