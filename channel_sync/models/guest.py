import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text, Index
from ..database import Base


# The single placeholder used when a booking carries no identifying data
UNKNOWN_GUEST_NAME = "Unknown Guest"
UNKNOWN_GUEST_SENTINEL = "unknown-guest"


class Guest(Base):
    """
    Durable guest record shared by every channel.

    The resolver only creates or fills gaps in these rows, it never deletes.
    """
    __tablename__ = "guests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    past_stays = Column(Integer, default=0)
    notes = Column(Text, nullable=True)

    # Set only on the unknown-guest placeholder; the unique constraint keeps it singular
    sentinel_key = Column(String(50), nullable=True, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_guests_email", "email"),
        Index("ix_guests_phone", "phone"),
        Index("ix_guests_name", "name"),
    )

    def __repr__(self):
        return f"<Guest {self.name} - {self.email or self.phone or '-'}>"
