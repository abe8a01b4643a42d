import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Date, Numeric, Text, ForeignKey, DateTime, Integer,
    Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class ReservationStatus(str, enum.Enum):
    CONFIRMED = "Confirmed"
    CHECKED_IN = "Checked-in"
    CHECKED_OUT = "Checked-out"
    CANCELLED = "Cancelled"


class ReservationSource(str, enum.Enum):
    """Where the reservation was first entered"""
    DIRECT = "Direct"  # Created in the PMS
    BEDS24 = "Beds24"  # Received from the channel manager


class GuestType(str, enum.Enum):
    PRIMARY = "Primary"
    SECONDARY = "Secondary"


# Statuses that hold inventory
ACTIVE_STATUSES = (ReservationStatus.CONFIRMED.value, ReservationStatus.CHECKED_IN.value)


def unit_identifier(room_type_id: str, unit_index: int) -> str:
    """Composite id of a physical unit inside a room type (zero-based index)"""
    return f"{room_type_id}-unit-{unit_index}"


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Exactly one of room / room type
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=True)
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="RESTRICT"), nullable=True)
    assigned_unit_index = Column(Integer, nullable=True)  # zero-based, room types only

    primary_guest_id = Column(String(36), ForeignKey("guests.id", ondelete="RESTRICT"), nullable=False)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    status = Column(String(50), nullable=False, default=ReservationStatus.CONFIRMED.value)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=True)
    source = Column(String(50), default=ReservationSource.DIRECT.value)
    units_requested = Column(Integer, nullable=False, default=1)
    special_requests = Column(Text, nullable=True)

    # Channel tracking - channel_booking_id is the upsert idempotency key
    channel_booking_id = Column(String(255), nullable=True)
    channel_master_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Soft Delete
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    room = relationship("Room")
    room_type = relationship("RoomType")
    primary_guest = relationship("Guest")
    guest_links = relationship("ReservationGuest", back_populates="reservation", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("channel_booking_id", name="uq_reservations_channel_booking_id"),
        CheckConstraint("check_out > check_in", name="check_reservations_dates"),
        CheckConstraint(
            "(room_id IS NULL) <> (room_type_id IS NULL)",
            name="check_reservations_single_entity"
        ),
        Index("ix_reservations_room_id", "room_id"),
        Index("ix_reservations_room_type_id", "room_type_id"),
        Index("ix_reservations_dates", "check_in", "check_out"),
        Index("ix_reservations_status", "status"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def unit_identifier(self):
        if self.room_type_id and self.assigned_unit_index is not None:
            return unit_identifier(self.room_type_id, self.assigned_unit_index)
        return None

    def __repr__(self):
        return f"<Reservation {self.channel_booking_id or self.id} {self.check_in}->{self.check_out} {self.status}>"


class ReservationGuest(Base):
    __tablename__ = "reservation_guests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reservation_id = Column(String(36), ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False)
    guest_id = Column(String(36), ForeignKey("guests.id", ondelete="RESTRICT"), nullable=False)
    guest_type = Column(String(50), nullable=False, default=GuestType.PRIMARY.value)
    created_at = Column(DateTime, default=datetime.utcnow)

    reservation = relationship("Reservation", back_populates="guest_links")
    guest = relationship("Guest")

    __table_args__ = (
        UniqueConstraint("reservation_id", "guest_id", name="uq_reservation_guests"),
        Index("ix_reservation_guests_guest_type", "reservation_id", "guest_type"),
    )
