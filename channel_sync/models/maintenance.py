"""
Maintenance blocks and housekeeping holds.

Both take inventory out of sale: maintenance over a closed date window,
housekeeping "Out of Service" records for exactly one day of a fixed room.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Integer, Text, ForeignKey, Index
from ..database import Base
import enum


class MaintenanceStatus(str, enum.Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class HousekeepingStatus(str, enum.Enum):
    CLEAN = "Clean"
    DIRTY = "Dirty"
    IN_PROGRESS = "In Progress"
    OUT_OF_SERVICE = "Out of Service"


class MaintenanceRequest(Base):
    __tablename__ = "maintenance_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=True)
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="CASCADE"), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)  # inclusive
    status = Column(String(50), nullable=False, default=MaintenanceStatus.OPEN.value)
    affected_units = Column(Integer, nullable=False, default=1)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_maintenance_room_dates", "room_id", "start_date", "end_date"),
        Index("ix_maintenance_room_type_dates", "room_type_id", "start_date", "end_date"),
    )

    def __repr__(self):
        return f"<MaintenanceRequest {self.start_date}..{self.end_date} {self.status}>"


class HousekeepingRecord(Base):
    __tablename__ = "housekeeping"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    unit_id = Column(String(100), nullable=True)  # "{roomTypeId}-unit-{n}" when tracked per unit
    date = Column(Date, nullable=False)
    status = Column(String(50), nullable=False, default=HousekeepingStatus.CLEAN.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_housekeeping_room_date", "room_id", "date"),
    )

    def __repr__(self):
        return f"<HousekeepingRecord {self.room_id} {self.date} {self.status}>"
