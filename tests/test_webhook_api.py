"""
Tests for the HTTP surface

Tests cover:
- Webhook endpoint: 401 / 400 without a record, 200 with background processing
- Redelivery of the same eventId is acknowledged once
- Operator event listing, detail and retry
- Availability endpoint
- Outbound push triggers for reservations and availability
- Health check
"""

import json
import uuid
from datetime import date
from decimal import Decimal

import httpx
import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from conftest import WEBHOOK_URL, add_room, add_room_type, post_webhook, sign

from channel_sync.main import app
from channel_sync.models import Guest, Reservation, WebhookEvent
from channel_sync.services.channel_client import ChannelClient, get_channel_client

EVENTS_URL = "/api/integrations/beds24/events"


def created_payload(event_id="evt-501", **booking_overrides):
    booking = {
        "id": 501,
        "roomId": "R7",
        "arrival": "2025-01-10",
        "departure": "2025-01-12",
        "guests": [{"firstName": "A", "lastName": "B"}],
    }
    booking.update(booking_overrides)
    return {"event": "booking.created", "eventId": event_id, "booking": booking}


def count_events(session_factory):
    with session_factory() as session:
        return session.query(WebhookEvent).count()


class TestWebhookEndpoint:

    def test_missing_signature(self, client, session_factory):
        response = post_webhook(client, created_payload(), secret=None)

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert count_events(session_factory) == 0

    def test_invalid_signature(self, client, session_factory):
        response = post_webhook(client, created_payload(), signature="deadbeef")

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_failed"
        assert count_events(session_factory) == 0

    def test_malformed_body(self, client, session_factory):
        body = b"not json"
        response = client.post(
            WEBHOOK_URL,
            content=body,
            headers={"X-Beds24-Signature": sign(body), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert count_events(session_factory) == 0

    def test_unsupported_event(self, client, session_factory):
        response = post_webhook(client, {"event": "booking.paid", "booking": {"id": 1}})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_failed"
        assert count_events(session_factory) == 0

    def test_created_is_processed(self, client, session_factory):
        with session_factory() as session:
            add_room(session)

        response = post_webhook(client, created_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["event_id"] == "evt-501"
        assert data["message"] == "Webhook received"

        # Background task has run by the time TestClient returns
        with session_factory() as session:
            event = session.query(WebhookEvent).one()
            assert event.status == "succeeded"
            assert event.result_action == "created"
            reservation = session.query(Reservation).one()
            assert reservation.channel_booking_id == "501"
            assert reservation.primary_guest.name == "A B"

    def test_unprefixed_event_type_stored_prefixed(self, client, session_factory):
        payload = created_payload()
        payload["event"] = "created"

        post_webhook(client, payload)

        with session_factory() as session:
            assert session.query(WebhookEvent).one().event_type == "booking.created"

    def test_redelivery_is_deduplicated(self, client, session_factory):
        with session_factory() as session:
            add_room(session)

        first = post_webhook(client, created_payload())
        second = post_webhook(client, created_payload())

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["message"] == "Event already received"
        assert second.json()["event_id"] == "evt-501"
        assert count_events(session_factory) == 1
        with session_factory() as session:
            assert session.query(Reservation).count() == 1

    def test_processing_failure_still_acknowledged(self, client, session_factory):
        """Unknown room: the channel gets 200, the event records the failure"""
        response = post_webhook(client, created_payload(roomId="R404"))

        assert response.status_code == 200
        with session_factory() as session:
            event = session.query(WebhookEvent).one()
            assert event.status == "failed"
            assert "R404" in event.error_message

    def test_request_id_header(self, client):
        response = post_webhook(client, created_payload(), secret=None)

        assert response.headers.get("X-Request-ID")


class TestEventEndpoints:

    def test_list_and_filter(self, client, session_factory):
        with session_factory() as session:
            add_room(session)
        post_webhook(client, created_payload("evt-ok"))
        post_webhook(client, created_payload("evt-bad", id=502, roomId="R404"))

        all_events = client.get(EVENTS_URL).json()
        failed = client.get(EVENTS_URL, params={"status": "failed"}).json()
        by_booking = client.get(EVENTS_URL, params={"external_booking_id": "501"}).json()

        assert len(all_events) == 2
        assert [event["event_id"] for event in failed] == ["evt-bad"]
        assert [event["event_id"] for event in by_booking] == ["evt-ok"]
        assert "payload_json" not in all_events[0]

    def test_unknown_status_filter(self, client):
        response = client.get(EVENTS_URL, params={"status": "exploded"})

        assert response.status_code == 400

    def test_event_detail(self, client):
        post_webhook(client, created_payload())

        response = client.get(f"{EVENTS_URL}/evt-501")

        assert response.status_code == 200
        data = response.json()
        assert data["event_type"] == "booking.created"
        assert json.loads(data["payload_json"])["booking"]["id"] == 501

    def test_event_detail_not_found(self, client):
        response = client.get(f"{EVENTS_URL}/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_retry_failed_event(self, client, session_factory):
        post_webhook(client, created_payload())
        with session_factory() as session:
            add_room(session)

        response = client.post(f"{EVENTS_URL}/evt-501/retry")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["action"] == "created"
        assert data["event_id"] == "evt-501"
        assert data["reservation_id"]

    def test_retry_succeeded_event(self, client, session_factory):
        with session_factory() as session:
            add_room(session)
        post_webhook(client, created_payload())

        response = client.post(f"{EVENTS_URL}/evt-501/retry")

        assert response.status_code == 400

    def test_retry_unknown_event(self, client):
        response = client.post(f"{EVENTS_URL}/missing/retry")

        assert response.status_code == 404


class TestAvailabilityEndpoint:

    def test_room_calendar(self, client, session_factory):
        with session_factory() as session:
            room_id = add_room(session)
        post_webhook(client, created_payload())

        response = client.get(
            f"/api/availability/{room_id}",
            params={"start": "2025-01-09", "end": "2025-01-12"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["entity_type"] == "room"
        assert data["total_units"] == 1
        assert [day["remaining"] for day in data["days"]] == [1, 0, 0, 1]
        assert data["days"][0]["date"] == "2025-01-09"

    def test_room_type_calendar(self, client, session_factory):
        with session_factory() as session:
            room_type_id = add_room_type(session, quantity=4)

        response = client.get(
            f"/api/availability/{room_type_id}",
            params={"start": "2025-01-01", "end": "2025-01-02", "room_type": "true"},
        )

        assert response.status_code == 200
        assert [day["remaining"] for day in response.json()["days"]] == [4, 4]

    def test_unknown_entity(self, client):
        response = client.get("/api/availability/missing", params={"start": "2025-01-01", "end": "2025-01-02"})

        assert response.status_code == 404

    def test_inverted_window(self, client, session_factory):
        with session_factory() as session:
            room_id = add_room(session)

        response = client.get(f"/api/availability/{room_id}", params={"start": "2025-01-05", "end": "2025-01-01"})

        assert response.status_code == 200
        assert response.json()["days"] == []

    def test_window_too_large(self, client, session_factory):
        with session_factory() as session:
            room_id = add_room(session)

        response = client.get(f"/api/availability/{room_id}", params={"start": "2025-01-01", "end": "2027-01-01"})

        assert response.status_code == 400

    def test_bad_date(self, client):
        response = client.get("/api/availability/x", params={"start": "soon", "end": "2025-01-01"})

        assert response.status_code == 422


class TestSyncEndpoints:

    @pytest.fixture
    def channel_requests(self):
        """Routes outbound calls to a canned channel and records them"""
        requests, responses = [], []

        def handler(request):
            requests.append(request)
            status, body = responses.pop(0)
            return httpx.Response(status, json=body)

        app.dependency_overrides[get_channel_client] = lambda: ChannelClient(
            api_key="token-1",
            base_url="https://channel.test/v2",
            base_delay=0,
            transport=httpx.MockTransport(handler),
        )
        return requests, responses

    def _direct_reservation(self, session_factory):
        with session_factory() as session:
            room_id = add_room(session)
            guest_id = str(uuid.uuid4())
            reservation_id = str(uuid.uuid4())
            session.add(Guest(id=guest_id, name="Ann Bell", email="ann@example.com"))
            session.add(Reservation(
                id=reservation_id,
                room_id=room_id,
                primary_guest_id=guest_id,
                check_in=date(2025, 1, 10),
                check_out=date(2025, 1, 12),
                total_amount=Decimal("200"),
                currency="USD",
                source="Direct",
            ))
            session.commit()
        return room_id, reservation_id

    def test_push_direct_reservation(self, client, session_factory, channel_requests):
        requests, responses = channel_requests
        _, reservation_id = self._direct_reservation(session_factory)
        responses.append((201, [{"success": True, "new": {"id": 9001}}]))

        response = client.post(f"/api/integrations/beds24/sync/reservations/{reservation_id}")

        assert response.status_code == 200
        assert response.json()["action"] == "created"
        assert response.json()["channel_booking_id"] == "9001"
        assert json.loads(requests[0].content)[0]["roomId"] == "R7"
        with session_factory() as session:
            reservation = session.query(Reservation).filter(Reservation.id == reservation_id).one()
            assert reservation.channel_booking_id == "9001"

    def test_channel_reservation_skipped(self, client, session_factory, channel_requests):
        requests, _ = channel_requests
        with session_factory() as session:
            add_room(session)
        post_webhook(client, created_payload())
        with session_factory() as session:
            reservation_id = session.query(Reservation).one().id

        response = client.post(f"/api/integrations/beds24/sync/reservations/{reservation_id}")

        assert response.status_code == 200
        assert response.json()["action"] == "skipped"
        assert requests == []

    def test_channel_rejection_is_bad_gateway(self, client, session_factory, channel_requests):
        _, responses = channel_requests
        _, reservation_id = self._direct_reservation(session_factory)
        responses.append((400, {"error": "bad room"}))

        response = client.post(f"/api/integrations/beds24/sync/reservations/{reservation_id}")

        assert response.status_code == 502
        assert response.json()["error"] == "channel_api_error"

    def test_unknown_reservation(self, client, channel_requests):
        response = client.post("/api/integrations/beds24/sync/reservations/missing")

        assert response.status_code == 404

    def test_push_room_availability(self, client, session_factory, channel_requests):
        requests, responses = channel_requests
        room_id, _ = self._direct_reservation(session_factory)
        responses.append((200, [{"success": True}]))

        response = client.post(
            f"/api/integrations/beds24/sync/availability/{room_id}",
            params={"start": "2025-01-10", "end": "2025-01-12"},
        )

        assert response.status_code == 200
        assert response.json()["days_pushed"] == 3
        sent = json.loads(requests[0].content)[0]
        assert sent["data"]["2025-01-11"] == {"numAvail": 0}
        assert sent["data"]["2025-01-12"] == {"numAvail": 1}


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "up"}

    def test_root(self, client):
        assert client.get("/").json()["channel"] == "Beds24"
