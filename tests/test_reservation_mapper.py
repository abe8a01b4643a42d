"""
Tests for the Reservation Mapper

Tests cover:
- Status mapping both directions, unknown values default to Confirmed
- Source mapping
- Unit index conversion (channel 1-based, internal 0-based)
- Booking -> reservation columns for rooms and room types
- Reservation -> channel payload for create and update
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from channel_sync.schemas.canonical import CanonicalBooking
from channel_sync.services.reservation_mapper import (
    booking_to_reservation_data,
    describe_unit,
    external_unit_to_index,
    index_to_external_unit,
    map_external_source,
    map_external_status,
    map_internal_source,
    map_internal_status,
    parse_unit_identifier,
    reservation_to_booking_payload,
)


def make_reservation(**overrides):
    values = {
        "id": "res-1",
        "check_in": date(2025, 1, 10),
        "check_out": date(2025, 1, 12),
        "status": "Confirmed",
        "total_amount": Decimal("200.00"),
        "currency": "EUR",
        "source": "Direct",
        "special_requests": None,
        "room_type_id": None,
        "assigned_unit_index": None,
        "channel_booking_id": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestStatusMapping:

    @pytest.mark.parametrize("external,internal", [
        ("confirmed", "Confirmed"),
        ("CheckedIn", "Checked-in"),
        ("checkedout", "Checked-out"),
        ("cancelled", "Cancelled"),
        ("request", "Confirmed"),
        ("new", "Confirmed"),
        ("inquiry", "Confirmed"),
    ])
    def test_external_to_internal(self, external, internal):
        assert map_external_status(external) == internal

    def test_unknown_external_defaults_to_confirmed(self):
        assert map_external_status("black-hole") == "Confirmed"
        assert map_external_status(None) == "Confirmed"

    def test_internal_to_external(self):
        assert map_internal_status("Checked-in") == "checkedin"
        assert map_internal_status("Cancelled") == "cancelled"
        assert map_internal_status("Whatever") == "confirmed"


class TestSourceMapping:

    def test_direct_round_trip(self):
        assert map_internal_source("Direct") == "direct"
        assert map_external_source("direct") == "Direct"

    def test_everything_else_is_channel(self):
        assert map_internal_source("Beds24") == "channel"
        assert map_external_source("booking.com", channel_name="Beds24") == "Beds24"
        assert map_external_source(None, channel_name="Beds24") == "Beds24"


class TestUnitIndexes:

    @pytest.mark.parametrize("unit_id", list(range(1, 13)) + [50, 999])
    def test_conversion(self, unit_id):
        assert external_unit_to_index(unit_id) == unit_id - 1
        assert index_to_external_unit(external_unit_to_index(unit_id)) == unit_id

    @pytest.mark.parametrize("unit_id", [1, 2, 3, 7, 20])
    def test_unit_survives_booking_and_payload(self, unit_id):
        booking = CanonicalBooking(
            id="501",
            room_id="RT1",
            arrival_date=date(2025, 1, 10),
            departure_date=date(2025, 1, 12),
            unit_id=unit_id,
        )

        data = booking_to_reservation_data(booking, "rt-1", "guest-1", entity_type="room_type")
        reservation = make_reservation(
            room_type_id=data["room_type_id"],
            assigned_unit_index=data["assigned_unit_index"],
        )
        payload = reservation_to_booking_payload(reservation, "P1", "RT1")

        assert data["assigned_unit_index"] == unit_id - 1
        assert payload["unitId"] == unit_id

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            external_unit_to_index(0)
        with pytest.raises(ValueError):
            index_to_external_unit(-1)

    def test_unit_identifier(self):
        assert parse_unit_identifier("rt-abc-unit-2") == ("rt-abc", 2)
        with pytest.raises(ValueError):
            parse_unit_identifier("rt-abc")

    def test_describe_unit(self):
        assert describe_unit(make_reservation(room_type_id="rt-1", assigned_unit_index=2)) == "rt-1-unit-2"
        assert describe_unit(make_reservation()) is None


class TestBookingToReservation:

    def _booking(self, **overrides):
        values = {
            "id": "501",
            "master_id": "500",
            "room_id": "R7",
            "arrival_date": date(2025, 1, 10),
            "departure_date": date(2025, 1, 12),
            "status": "confirmed",
            "price": Decimal("180"),
            "currency": None,
        }
        values.update(overrides)
        return CanonicalBooking(**values)

    def test_fixed_room(self):
        data = booking_to_reservation_data(self._booking(), "room-1", "guest-1", default_currency="usd")

        assert data["room_id"] == "room-1"
        assert data["room_type_id"] is None
        assert data["assigned_unit_index"] is None
        assert data["primary_guest_id"] == "guest-1"
        assert data["check_in"] == date(2025, 1, 10)
        assert data["check_out"] == date(2025, 1, 12)
        assert data["status"] == "Confirmed"
        assert data["total_amount"] == Decimal("180")
        assert data["currency"] == "USD"
        assert data["channel_booking_id"] == "501"
        assert data["channel_master_id"] == "500"
        assert data["units_requested"] == 1

    def test_room_type_with_unit(self):
        data = booking_to_reservation_data(
            self._booking(unit_id=3), "rt-1", "guest-1", entity_type="room_type"
        )

        assert data["room_id"] is None
        assert data["room_type_id"] == "rt-1"
        assert data["assigned_unit_index"] == 2

    def test_room_type_without_unit(self):
        data = booking_to_reservation_data(self._booking(), "rt-1", "guest-1", entity_type="room_type")

        assert data["assigned_unit_index"] is None

    def test_direct_source_preserved(self):
        data = booking_to_reservation_data(self._booking(source="direct"), "room-1", "guest-1")

        assert data["source"] == "Direct"


class TestReservationToPayload:

    def test_create_payload(self):
        payload = reservation_to_booking_payload(
            make_reservation(special_requests="Late arrival"),
            "prop-1",
            "R7",
            guest={"name": "Ann Marie Bell", "email": "ann@example.com", "phone": ""},
        )

        assert payload["propertyId"] == "prop-1"
        assert payload["roomId"] == "R7"
        assert payload["arrival"] == "2025-01-10"
        assert payload["departure"] == "2025-01-12"
        assert payload["status"] == "confirmed"
        assert payload["price"] == 200.0
        assert payload["currency"] == "EUR"
        assert payload["source"] == "direct"
        assert payload["externalId"] == "PMS-res-1"
        assert payload["specialRequests"] == "Late arrival"
        assert payload["guest"] == {
            "firstName": "Ann",
            "lastName": "Marie Bell",
            "email": "ann@example.com",
            "phone": None,
        }
        assert "id" not in payload
        assert "unitId" not in payload

    def test_update_payload_carries_channel_id(self):
        payload = reservation_to_booking_payload(make_reservation(channel_booking_id="901"), "prop-1", "R7")

        assert payload["id"] == "901"

    def test_pooled_unit_is_one_based(self):
        payload = reservation_to_booking_payload(
            make_reservation(room_type_id="rt-1", assigned_unit_index=0), "prop-1", "RT1"
        )

        assert payload["unitId"] == 1
