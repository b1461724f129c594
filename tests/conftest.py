"""Pytest configuration and shared fixtures.

Run with:
    pytest tests/                        # Run all tests
    pytest tests/test_open_slots.py -v   # Run specific test file

Tests run against an in-memory SQLite database shared by the app and the
fixtures (StaticPool), with rate limiting switched off.
"""

import os

# Must be set before rendezvous.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["FRONTEND_URL"] = "https://app.example.com"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.pop("INTERNAL_API_KEY", None)
os.environ.pop("NOTIFICATION_ENCRYPTION_KEY", None)
os.environ.pop("TWILIO_ACCOUNT_SID", None)

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from rendezvous import models_notifications  # noqa: E402,F401
from rendezvous.database import Base, SessionLocal, engine  # noqa: E402
from rendezvous.main import app  # noqa: E402
from rendezvous.models import (  # noqa: E402
    SchedulingSlot,
    SchedulingThread,
    ThreadInvite,
    generate_id,
    utcnow,
)
from rendezvous.tenant import Tenant  # noqa: E402

# Monday 2025-01-20 09:00 in Asia/Tokyo
NOW = datetime(2025, 1, 20, 0, 0)

WORKSPACE_ID = "ws-test"
ORGANIZER_ID = "user-organizer"
INVITEE_EMAIL = "hanako@example.com"


@pytest.fixture(autouse=True)
def schema():
    """Fresh tables for every test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Create a fresh database session for each test."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    """API client; requests share the in-memory database with the db fixture"""
    return TestClient(app)


@pytest.fixture
def tenant():
    return Tenant(workspace_id=WORKSPACE_ID, user_id=ORGANIZER_ID)


@pytest.fixture
def organizer_headers():
    return {"X-Workspace-Id": WORKSPACE_ID, "X-User-Id": ORGANIZER_ID}


# ─────────────────────────────────────────────────────────────────────────────
# Factories
# ─────────────────────────────────────────────────────────────────────────────


def create_thread(db, **overrides) -> SchedulingThread:
    data = {
        "id": generate_id(),
        "workspace_id": WORKSPACE_ID,
        "organizer_user_id": ORGANIZER_ID,
        "title": "Intro call",
        "status": "sent",
        "slot_policy": "candidates",
        "timezone": "Asia/Tokyo",
        "duration_minutes": 60,
    }
    data.update(overrides)
    thread = SchedulingThread(**data)
    db.add(thread)
    db.commit()
    return thread


def create_invite(db, thread: SchedulingThread, **overrides) -> ThreadInvite:
    data = {
        "thread_id": thread.id,
        "token": f"invite-{generate_id()}",
        "email": INVITEE_EMAIL,
        "candidate_name": "Hanako",
        "invitee_key": INVITEE_EMAIL,
        "status": "pending",
        "expires_at": utcnow() + timedelta(days=7),
    }
    data.update(overrides)
    invite = ThreadInvite(**data)
    db.add(invite)
    db.commit()
    return invite


def add_slot(db, thread: SchedulingThread, start_at: datetime, minutes: int = 60, version: int = 1) -> SchedulingSlot:
    slot = SchedulingSlot(
        thread_id=thread.id,
        start_at=start_at,
        end_at=start_at + timedelta(minutes=minutes),
        timezone=thread.timezone,
        proposal_version=version,
    )
    db.add(slot)
    db.commit()
    return slot


@pytest.fixture
def thread(db):
    return create_thread(db)


@pytest.fixture
def invite(db, thread):
    return create_invite(db, thread)
