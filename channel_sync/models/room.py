import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class RoomStatus(str, enum.Enum):
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    CLEANING = "Cleaning"
    OUT_OF_SERVICE = "Out of Service"


class RoomType(Base):
    """
    Pooled inventory: many interchangeable physical units tracked by quantity
    rather than by a single status.
    """
    __tablename__ = "room_types"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    # Channel room reference (Beds24 roomId)
    channel_room_id = Column(String(255), nullable=True, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    rooms = relationship("Room", back_populates="room_type")

    @property
    def total_units(self) -> int:
        return self.quantity

    def __repr__(self):
        return f"<RoomType {self.name} x{self.quantity}>"


class Room(Base):
    """A single fixed room with its own housekeeping status."""
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_number = Column(String(50), nullable=False, unique=True)
    status = Column(String(50), nullable=False, default=RoomStatus.AVAILABLE.value)
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="SET NULL"), nullable=True)

    # Channel room reference (Beds24 roomId)
    channel_room_id = Column(String(255), nullable=True, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room_type = relationship("RoomType", back_populates="rooms")

    __table_args__ = (
        Index("ix_rooms_status", "status"),
    )

    def __repr__(self):
        return f"<Room {self.room_number} {self.status}>"
