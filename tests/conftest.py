"""
Shared fixtures

- In-memory SQLite shared through a StaticPool, so the app, background tasks
  and the test see the same database
- TestClient with get_db / get_session_factory overridden
- Helpers to seed rooms and sign webhook bodies
"""

import hashlib
import hmac
import json
import os
import sys
import uuid

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Must be set before the application settings are first loaded
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["BEDS24_WEBHOOK_SECRET"] = "test-secret"
os.environ["REPROCESS_PENDING_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from channel_sync.database import Base, configure_sqlite, get_db, get_session_factory
from channel_sync.main import app
from channel_sync.models import Room, RoomType

WEBHOOK_SECRET = "test-secret"
WEBHOOK_URL = "/api/integrations/beds24/webhook"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """
    Session for service-level tests.

    Commit or roll back before calling anything that opens its own session;
    all sessions share one connection.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def encode(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


def post_webhook(client, payload, secret: str = WEBHOOK_SECRET, signature: str = None):
    body = encode(payload)
    headers = {"Content-Type": "application/json"}
    if signature is None and secret is not None:
        signature = sign(body, secret)
    if signature is not None:
        headers["X-Beds24-Signature"] = signature
    return client.post(WEBHOOK_URL, content=body, headers=headers)


def add_room(session, channel_room_id="R7", room_number="101", status="Available") -> str:
    room_id = str(uuid.uuid4())
    session.add(Room(id=room_id, room_number=room_number, channel_room_id=channel_room_id, status=status))
    session.commit()
    return room_id


def add_room_type(session, channel_room_id="RT1", name="Double", quantity=3) -> str:
    room_type_id = str(uuid.uuid4())
    session.add(RoomType(id=room_type_id, name=name, channel_room_id=channel_room_id, quantity=quantity))
    session.commit()
    return room_type_id
