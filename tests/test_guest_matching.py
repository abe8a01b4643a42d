"""
Tests for Guest Matching

Tests cover:
- Unknown guest placeholder is a singleton
- Email match is case-insensitive, phone match ignores formatting
- Merge only fills gaps (longer name wins, contacts never overwritten)
- Contact-only guests are named after the contact
- Placeholder names without contact land on the unknown guest
"""

import pytest
from unittest.mock import patch

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from channel_sync.models import Guest, UNKNOWN_GUEST_SENTINEL
from channel_sync.schemas.canonical import CanonicalGuest
from channel_sync.services.guest_matching_service import (
    GuestMatchingService,
    normalize_phone,
    split_name,
)


def add_guest(db, **values):
    guest = Guest(**values)
    db.add(guest)
    db.flush()
    return guest


class TestUnknownGuest:

    def test_singleton(self, db):
        """Two bookings without guest data share one placeholder"""
        service = GuestMatchingService(db)

        first = service.resolve(None)
        second = service.resolve(CanonicalGuest())

        assert first == second
        assert db.query(Guest).filter(Guest.sentinel_key == UNKNOWN_GUEST_SENTINEL).count() == 1

    def test_placeholder_name_without_contact(self, db):
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(first_name="Unknown", last_name="Guest"))

        assert guest_id == service.get_unknown_guest_id()

    def test_concurrent_placeholder_insert_rereads(self, db):
        """Losing the insert race returns the row the other session created"""
        existing = add_guest(db, name="Unknown Guest", sentinel_key=UNKNOWN_GUEST_SENTINEL)
        real_find = GuestMatchingService._find_unknown_guest
        calls = []

        def miss_first_lookup(self):
            calls.append(1)
            return None if len(calls) == 1 else real_find(self)

        with patch.object(GuestMatchingService, "_find_unknown_guest", miss_first_lookup):
            guest_id = GuestMatchingService(db).get_unknown_guest_id()

        assert guest_id == existing.id
        assert len(calls) == 2
        assert db.query(Guest).filter(Guest.sentinel_key == UNKNOWN_GUEST_SENTINEL).count() == 1

    def test_placeholder_never_matched_by_contact(self, db):
        """A real guest is never merged into the placeholder"""
        service = GuestMatchingService(db)
        unknown_id = service.get_unknown_guest_id()

        guest_id = service.resolve(CanonicalGuest(first_name="Ann", email="ann@example.com"))

        assert guest_id != unknown_id


class TestMatching:

    def test_email_case_insensitive(self, db):
        existing = add_guest(db, name="Ann Bell", email="Ann@Example.com")
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(first_name="Ann", email="ann@example.COM"))

        assert guest_id == existing.id
        assert db.query(Guest).count() == 1

    def test_phone_formatting_insensitive(self, db):
        existing = add_guest(db, name="Omar", phone="+1 (555) 010-2000")
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(first_name="Omar", phone="+15550102000"))

        assert guest_id == existing.id

    @pytest.mark.parametrize("stored", ["555\t010 2000", "555\n010-2000", "555\u00a0010\u00a02000"])
    def test_stored_phone_with_other_whitespace(self, db, stored):
        existing = add_guest(db, name="Omar", phone=stored)
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(first_name="Other", phone="5550102000"))

        assert guest_id == existing.id
        assert db.query(Guest).count() == 1

    def test_email_checked_before_phone(self, db):
        by_email = add_guest(db, name="Mail Match", email="m@example.com")
        add_guest(db, name="Phone Match", phone="123456")
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(email="m@example.com", phone="123456"))

        assert guest_id == by_email.id

    def test_deleted_guest_not_matched(self, db):
        from datetime import datetime

        add_guest(db, name="Gone", email="gone@example.com", deleted_at=datetime.utcnow())
        service = GuestMatchingService(db)

        service.resolve(CanonicalGuest(first_name="New", email="gone@example.com"))

        assert db.query(Guest).filter(Guest.email == "gone@example.com").count() == 2

    def test_no_match_creates(self, db):
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(first_name="A", last_name="B"))
        guest = db.query(Guest).filter(Guest.id == guest_id).one()

        assert guest.name == "A B"
        assert guest.first_name == "A"
        assert guest.last_name == "B"
        assert guest.sentinel_key is None


class TestMerge:

    def test_longer_name_replaces(self, db):
        existing = add_guest(db, name="Ann", email="ann@example.com")
        service = GuestMatchingService(db)

        service.resolve(CanonicalGuest(first_name="Ann", last_name="Marie Bell", email="ann@example.com"))

        assert existing.name == "Ann Marie Bell"
        assert existing.first_name == "Ann"
        assert existing.last_name == "Marie Bell"

    def test_shorter_name_kept(self, db):
        existing = add_guest(db, name="Ann Marie Bell", email="ann@example.com")
        service = GuestMatchingService(db)

        service.resolve(CanonicalGuest(first_name="A", email="ann@example.com"))

        assert existing.name == "Ann Marie Bell"

    def test_contacts_filled_not_overwritten(self, db):
        existing = add_guest(db, name="Ann", email="ann@example.com")
        service = GuestMatchingService(db)

        service.resolve(CanonicalGuest(email="ANN@example.com", phone="+20 100"))

        assert existing.email == "ann@example.com"
        assert existing.phone == "+20 100"

    def test_merge_reports_no_change(self, db):
        existing = add_guest(db, name="Ann Bell", email="ann@example.com", phone="1")
        service = GuestMatchingService(db)

        assert service.merge(existing, CanonicalGuest(first_name="Ann", email="x@example.com")) is False


class TestContactOnlyGuest:

    def test_email_becomes_name(self, db):
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(email="solo@example.com"))
        guest = db.query(Guest).filter(Guest.id == guest_id).one()

        assert guest.name == "solo@example.com"
        assert guest.first_name is None

    def test_phone_becomes_name(self, db):
        service = GuestMatchingService(db)

        guest_id = service.resolve(CanonicalGuest(phone="+44 20 7946 0000"))
        guest = db.query(Guest).filter(Guest.id == guest_id).one()

        assert guest.name == "+44 20 7946 0000"


class TestHelpers:

    @pytest.mark.parametrize("raw,expected", [
        ("+1 (555) 010-2000", "+15550102000"),
        ("555 0100", "5550100"),
        ("555\t0100\r\n", "5550100"),
        ("555\u00a00100", "5550100"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize_phone(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_split_name(self):
        assert split_name("Ann Marie Bell") == ("Ann", "Marie Bell")
        assert split_name("Cher") == ("Cher", "")
        assert split_name("  ") == ("", "")
