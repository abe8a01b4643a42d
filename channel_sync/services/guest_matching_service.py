"""
Guest Matching Service - Resolve channel guests to durable guest records
========================================================================
This service handles:
1. The "Unknown Guest" placeholder for bookings without identifying data
2. Matching by email (case-insensitive) and then by phone (formatting-insensitive)
3. Non-destructive merge of incoming contact data into the matched guest
4. Creating a new guest when nothing matches
"""

import logging
import re
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.guest import Guest, UNKNOWN_GUEST_NAME, UNKNOWN_GUEST_SENTINEL
from ..schemas.canonical import CanonicalGuest

logger = logging.getLogger(__name__)

# Names that carry no identity on their own
PLACEHOLDER_NAMES = {UNKNOWN_GUEST_NAME.lower(), "guest"}

# Formatting characters dropped before comparing phones, on both the Python and SQL side
PHONE_NOISE_CHARS = (" ", "\t", "\n", "\r", "\u00a0", "-", "(", ")")
PHONE_NOISE = re.compile("[" + re.escape("".join(PHONE_NOISE_CHARS)) + "]")


def normalize_phone(phone: Optional[str]) -> str:
    """
    Strip the formatting characters channels add to phone numbers.

    "+1 (555) 010-2000" -> "+15550102000"
    """
    if not phone:
        return ""
    return PHONE_NOISE.sub("", phone)


def _stored_phone_expression():
    """SQL side of normalize_phone: the same characters removed with REPLACE"""
    expression = Guest.phone
    for char in PHONE_NOISE_CHARS:
        expression = func.replace(expression, char, "")
    return expression


def split_name(full_name: str):
    """First token is the first name, the remainder is the last name"""
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class GuestMatchingService:
    """
    Resolve a CanonicalGuest to a guest id.

    The service only creates guests or fills gaps in existing ones. It flushes
    but never commits; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # ==================
    # Unknown guest
    # ==================

    def get_unknown_guest_id(self) -> str:
        """
        Return the id of the unknown-guest placeholder, creating it on first use.

        The insert runs inside a SAVEPOINT under the sentinel unique constraint,
        so concurrent first uses converge on one row: the loser's insert fails
        and it re-reads the winner's.
        """
        existing = self._find_unknown_guest()
        if existing:
            return existing.id

        try:
            with self.db.begin_nested():
                guest = Guest(
                    name=UNKNOWN_GUEST_NAME,
                    first_name="Unknown",
                    last_name="Guest",
                    sentinel_key=UNKNOWN_GUEST_SENTINEL,
                    notes="Placeholder for channel bookings without guest details",
                )
                self.db.add(guest)
            logger.info(f"Created unknown guest placeholder {guest.id}")
            return guest.id
        except IntegrityError:
            logger.info("Unknown guest placeholder created concurrently, re-reading")
            existing = self._find_unknown_guest()
            if existing is None:
                raise
            return existing.id

    def _find_unknown_guest(self) -> Optional[Guest]:
        return self.db.query(Guest).filter(
            Guest.sentinel_key == UNKNOWN_GUEST_SENTINEL
        ).first()

    # ==================
    # Matching
    # ==================

    def find_by_email(self, email: str) -> Optional[Guest]:
        if not email:
            return None
        return self.db.query(Guest).filter(
            func.lower(Guest.email) == email.strip().lower(),
            Guest.sentinel_key.is_(None),
            Guest.deleted_at.is_(None),
        ).order_by(Guest.created_at.asc()).first()

    def find_by_phone(self, phone: str) -> Optional[Guest]:
        normalized = normalize_phone(phone)
        if not normalized:
            return None
        return self.db.query(Guest).filter(
            _stored_phone_expression() == normalized,
            Guest.sentinel_key.is_(None),
            Guest.deleted_at.is_(None),
        ).order_by(Guest.created_at.asc()).first()

    def resolve(self, guest: Optional[CanonicalGuest], external_guest_id: Optional[str] = None) -> str:
        """
        Resolve to a guest id. Never fails on missing data: anything without
        a name, email or phone lands on the unknown guest.
        """
        if guest is None or not guest.has_identity:
            logger.debug("No identifying guest data, using unknown guest")
            return self.get_unknown_guest_id()

        email = guest.email.strip()
        phone = guest.phone.strip()
        full_name = guest.full_name

        if not email and not phone and full_name.lower() in PLACEHOLDER_NAMES:
            return self.get_unknown_guest_id()

        matched = self.find_by_email(email)
        if matched is None:
            matched = self.find_by_phone(phone)

        if matched is not None:
            self.merge(matched, guest)
            logger.debug(f"Matched guest {matched.id} (external ref {external_guest_id or '-'})")
            return matched.id

        created = self.create(guest)
        logger.info(f"Created guest {created.id} (external ref {external_guest_id or '-'})")
        return created.id

    # ==================
    # Merge / create
    # ==================

    def merge(self, existing: Guest, incoming: CanonicalGuest) -> bool:
        """
        Fill gaps only:
        - name replaced when the incoming full name is strictly longer
        - email / phone set only when currently empty
        Returns True when anything changed.
        """
        changed = False

        full_name = incoming.full_name
        if full_name and len(full_name) > len(existing.name or ""):
            existing.name = full_name
            existing.first_name, existing.last_name = split_name(full_name)
            changed = True

        email = incoming.email.strip()
        if email and not existing.email:
            existing.email = email
            changed = True

        phone = incoming.phone.strip()
        if phone and not existing.phone:
            existing.phone = phone
            changed = True

        if changed:
            self.db.flush()
        return changed

    def create(self, incoming: CanonicalGuest) -> Guest:
        full_name = incoming.full_name
        email = incoming.email.strip() or None
        phone = incoming.phone.strip() or None

        # Contact without a name: show the contact itself
        display_name = full_name or email or phone
        first_name, last_name = split_name(full_name)

        guest = Guest(
            name=display_name,
            first_name=first_name or None,
            last_name=last_name or None,
            email=email,
            phone=phone,
        )
        self.db.add(guest)
        self.db.flush()
        return guest
