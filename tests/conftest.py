"""
Test configuration and fixtures for the UniPal Events Service.
"""

import os

# Configuration is read from the environment when ZERO_TOKEN is absent
os.environ.pop("ZERO_TOKEN", None)
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from unipal_events.main import app
from unipal_events.api.dependencies import (
    get_database_session, get_notification_service, get_event_publisher, get_clock, get_jwt_service
)
from unipal_events.core.clock import FixedClock
from unipal_events.core.roles import Actor, Role
from unipal_events.models.event import Base
from unipal_events.models.user import User
from unipal_events.schemas.event import EventRecord
from unipal_events.services.event_manager import EventLifecycleManager
from unipal_events.services.event_publisher import EventPublisher
from unipal_events.services.jwt_service import JWTService

SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
TEST_JWT_SECRET = "test-secret-key"


class CapturingNotifier:
    """Notification sender double that records every email instead of queueing it."""

    def __init__(self):
        self.sent = []
        self.platform_name = "UniPal MIT"

    async def send_email(self, to_email, subject, body):
        self.sent.append({"to": to_email, "subject": subject, "body": body})
        return True

    async def send_invitation(self, to_email, event, invitee_name, inviter_name, role_at_event, message=None):
        from unipal_events.services.notification_service import compose_invitation_email
        subject, body = compose_invitation_email(
            self.platform_name, event, invitee_name, inviter_name, role_at_event, message
        )
        return await self.send_email(to_email, subject, body)

    async def send_event_report(self, to_email, event, report):
        from unipal_events.services.notification_service import compose_report_email
        subject, body = compose_report_email(self.platform_name, event, report)
        return await self.send_email(to_email, subject, body)


@pytest.fixture
def db_session():
    """Create a database session with fresh tables for each test."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def notifier():
    return CapturingNotifier()


@pytest.fixture
def mock_redis():
    redis_client = MagicMock()
    redis_client.publish = AsyncMock(return_value=1)
    return redis_client


@pytest.fixture
def publisher(mock_redis):
    return EventPublisher(mock_redis)


@pytest.fixture
def manager(db_session, notifier, publisher, clock):
    return EventLifecycleManager(db_session, notifier, publisher, clock)


@pytest.fixture
def users(db_session):
    """
    Seed the user directory.

    Includes a dean, a legacy superadmin, two coordinators and two students.
    """
    seed = [
        {"id": 1, "name": "Dean Rao", "email": "dean@unipal.edu", "role": "dean"},
        {"id": 2, "name": "Super Admin", "email": "root@unipal.edu", "role": "superadmin"},
        {"id": 10, "name": "Coord One", "email": "coord1@unipal.edu", "role": "coordinator"},
        {"id": 11, "name": "Coord Two", "email": "coord2@unipal.edu", "role": "faculty"},
        {"id": 20, "name": "Student A", "email": "student.a@unipal.edu", "role": "student"},
        {"id": 21, "name": "Student B", "email": "student.b@unipal.edu", "role": "attender"},
    ]
    created = {}
    for data in seed:
        user = User(hashed_password="not-a-real-hash", department="CSE", **data)
        db_session.add(user)
        created[data["id"]] = user
    db_session.commit()
    return created


@pytest.fixture
def dean():
    return Actor(id=1, role=Role.DEAN, name="Dean Rao", email="dean@unipal.edu")


@pytest.fixture
def coordinator():
    return Actor(id=10, role=Role.COORDINATOR, name="Coord One", email="coord1@unipal.edu")


@pytest.fixture
def other_coordinator():
    return Actor(id=11, role=Role.COORDINATOR, name="Coord Two", email="coord2@unipal.edu")


@pytest.fixture
def student():
    return Actor(id=20, role=Role.STUDENT, name="Student A", email="student.a@unipal.edu")


@pytest.fixture
def other_student():
    return Actor(id=21, role=Role.STUDENT, name="Student B", email="student.b@unipal.edu")


@pytest.fixture
def make_event():
    """Factory for event records used by the pure lifecycle tests."""
    def _make_event(**overrides):
        data = {
            "id": 1,
            "name": "AI Symposium",
            "date": datetime(2025, 3, 10, 10, 0, 0, tzinfo=timezone.utc),
            "time": "10:00",
            "location": "Main Auditorium",
            "capacity": 200,
            "school": "Engineering",
            "department": "CSE",
            "created_by": 10,
            "coordinators": (10,),
            "status": "scheduled",
            "approval_status": "approved",
            "requires_approval": False,
            "approved_by": 1,
            "approved_at": NOW,
            "invitation_mode": "open",
        }
        data.update(overrides)
        return EventRecord(**data)
    return _make_event


@pytest.fixture
def sample_event_data():
    """Sample event creation payload."""
    return {
        "name": "AI Symposium",
        "description": "Talks on applied machine learning",
        "date": "2025-03-10T10:00:00Z",
        "time": "10:00",
        "location": "Main Auditorium",
        "capacity": 200,
        "school": "Engineering",
        "department": "CSE",
        "category": "seminar",
        "tags": "ai, ml, ai",
        "invitation_mode": "open",
    }


@pytest.fixture
def jwt_service():
    service = JWTService()
    service.configure(TEST_JWT_SECRET, "HS256")
    return service


@pytest.fixture
def auth_headers(jwt_service):
    """Build bearer headers for a user id and raw role."""
    def _auth_headers(user_id, role, email=None, name=None):
        token = jwt_service.create_token({
            "user_id": user_id,
            "email": email or f"user{user_id}@unipal.edu",
            "role": role,
            "name": name,
        })
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture
def client(db_session, notifier, publisher, clock, jwt_service):
    """Create test client with every infrastructure dependency overridden."""
    def override_get_db():
        yield db_session

    async def override_get_jwt_service():
        return jwt_service

    app.dependency_overrides[get_database_session] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notifier
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_jwt_service] = override_get_jwt_service

    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def dean_headers(auth_headers):
    return auth_headers(1, "dean", "dean@unipal.edu", "Dean Rao")


@pytest.fixture
def coordinator_headers(auth_headers):
    return auth_headers(10, "coordinator", "coord1@unipal.edu", "Coord One")


@pytest.fixture
def other_coordinator_headers(auth_headers):
    return auth_headers(11, "faculty", "coord2@unipal.edu", "Coord Two")


@pytest.fixture
def student_headers(auth_headers):
    return auth_headers(20, "student", "student.a@unipal.edu", "Student A")


@pytest.fixture
def other_student_headers(auth_headers):
    return auth_headers(21, "attender", "student.b@unipal.edu", "Student B")


@pytest.fixture
def create_event_via_api(client, users, sample_event_data, dean_headers):
    """Create an event over HTTP, approved by default since a dean creates it."""
    def _create(headers=None, **overrides):
        payload = {**sample_event_data, "coordinator_ids": [10], **overrides}
        response = client.post("/api/v1/events", json=payload, headers=headers or dean_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _create
