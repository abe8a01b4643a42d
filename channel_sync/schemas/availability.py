from datetime import date
from typing import List
from pydantic import BaseModel


class AvailabilityDayResponse(BaseModel):
    date: date
    remaining: int

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    """Remaining units per day for one room or room type"""
    entity_id: str
    entity_type: str
    total_units: int
    days: List[AvailabilityDayResponse]
