"""Channel sync schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Tables:
- Inventory: room_types, rooms, maintenance_requests, housekeeping
- Guests & reservations: guests, reservations, reservation_guests
- Channel: webhook_events
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all database tables."""

    # ===========================================
    # 1. ROOM TYPES (pooled inventory)
    # ===========================================
    op.create_table(
        'room_types',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='1'),
        sa.Column('channel_room_id', sa.String(255), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime, nullable=True),
    )

    # ===========================================
    # 2. ROOMS (fixed inventory)
    # ===========================================
    op.create_table(
        'rooms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_number', sa.String(50), nullable=False, unique=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='Available'),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id', ondelete='SET NULL'), nullable=True),
        sa.Column('channel_room_id', sa.String(255), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_rooms_status', 'rooms', ['status'])

    # ===========================================
    # 3. GUESTS
    # ===========================================
    op.create_table(
        'guests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(255), nullable=True),
        sa.Column('last_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('past_stays', sa.Integer, server_default='0'),
        sa.Column('notes', sa.Text, nullable=True),
        # Only the unknown-guest placeholder carries a sentinel
        sa.Column('sentinel_key', sa.String(50), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_guests_email', 'guests', ['email'])
    op.create_index('ix_guests_phone', 'guests', ['phone'])
    op.create_index('ix_guests_name', 'guests', ['name'])

    # ===========================================
    # 4. RESERVATIONS
    # ===========================================
    op.create_table(
        'reservations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('assigned_unit_index', sa.Integer, nullable=True),
        sa.Column('primary_guest_id', sa.String(36), sa.ForeignKey('guests.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('check_in', sa.Date, nullable=False),
        sa.Column('check_out', sa.Date, nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='Confirmed'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=True),
        sa.Column('source', sa.String(50), server_default='Direct'),
        sa.Column('units_requested', sa.Integer, nullable=False, server_default='1'),
        sa.Column('special_requests', sa.Text, nullable=True),
        # Channel tracking
        sa.Column('channel_booking_id', sa.String(255), nullable=True),
        sa.Column('channel_master_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        # Soft Delete
        sa.Column('deleted_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('channel_booking_id', name='uq_reservations_channel_booking_id'),
        sa.CheckConstraint('check_out > check_in', name='check_reservations_dates'),
        sa.CheckConstraint('(room_id IS NULL) <> (room_type_id IS NULL)', name='check_reservations_single_entity'),
    )
    op.create_index('ix_reservations_room_id', 'reservations', ['room_id'])
    op.create_index('ix_reservations_room_type_id', 'reservations', ['room_type_id'])
    op.create_index('ix_reservations_dates', 'reservations', ['check_in', 'check_out'])
    op.create_index('ix_reservations_status', 'reservations', ['status'])

    op.create_table(
        'reservation_guests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('reservation_id', sa.String(36), sa.ForeignKey('reservations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('guest_id', sa.String(36), sa.ForeignKey('guests.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('guest_type', sa.String(50), nullable=False, server_default='Primary'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('reservation_id', 'guest_id', name='uq_reservation_guests'),
    )
    op.create_index('ix_reservation_guests_guest_type', 'reservation_guests', ['reservation_id', 'guest_type'])

    # ===========================================
    # 5. MAINTENANCE & HOUSEKEEPING
    # ===========================================
    op.create_table(
        'maintenance_requests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=True),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id', ondelete='CASCADE'), nullable=True),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='Open'),
        sa.Column('affected_units', sa.Integer, nullable=False, server_default='1'),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_maintenance_room_dates', 'maintenance_requests', ['room_id', 'start_date', 'end_date'])
    op.create_index('ix_maintenance_room_type_dates', 'maintenance_requests', ['room_type_id', 'start_date', 'end_date'])

    op.create_table(
        'housekeeping',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_id', sa.String(36), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('unit_id', sa.String(100), nullable=True),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='Clean'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_housekeeping_room_date', 'housekeeping', ['room_id', 'date'])

    # ===========================================
    # 6. WEBHOOK EVENTS
    # ===========================================
    op.create_table(
        'webhook_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('event_id', sa.String(255), nullable=False, unique=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('channel', sa.String(50), nullable=False, server_default='beds24'),
        sa.Column('external_booking_id', sa.String(255), nullable=True),
        sa.Column('payload_json', sa.Text, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer, server_default='0'),
        sa.Column('result_action', sa.String(50), nullable=True),
        sa.Column('result_reservation_id', sa.String(36), nullable=True),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('received_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('processed_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_webhook_events_status', 'webhook_events', ['status', 'received_at'])
    op.create_index('ix_webhook_events_booking', 'webhook_events', ['channel', 'external_booking_id'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    tables = [
        'webhook_events',
        'housekeeping',
        'maintenance_requests',
        'reservation_guests',
        'reservations',
        'guests',
        'rooms',
        'room_types',
    ]

    for table in tables:
        op.drop_table(table)
