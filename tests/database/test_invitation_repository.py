"""
Tests for invitation, user and feedback repositories.
"""

import pytest
from datetime import datetime, timezone

from unipal_events.core.roles import DEAN_ROLE_NAMES
from unipal_events.db.database import (
    EventRepository, InvitationRepository, UserRepository, FeedbackRepository
)
from unipal_events.models.event import InvitationStatus, RoleAtEvent
from unipal_events.schemas.invitation import InvitationRecord

NOW = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def event(db_session, make_event):
    return EventRepository(db_session).create(make_event(id=None))


@pytest.fixture
def repo(db_session):
    return InvitationRepository(db_session)


def invitation(event_id, invitee_id, **overrides):
    data = {"event_id": event_id, "invitee_id": invitee_id, "invited_by": 10}
    data.update(overrides)
    return InvitationRecord(**data)


class TestInvitationRepository:
    """Test cases for the (event, invitee) keyed upsert."""

    def test_upsert_inserts(self, repo, event):
        stored = repo.upsert(invitation(event.id, 20, message="Hi"))

        assert stored.id is not None
        assert stored.status == InvitationStatus.PENDING
        assert stored.message == "Hi"

    def test_upsert_overwrites_same_pair(self, repo, event):
        first = repo.upsert(invitation(event.id, 20))

        second = repo.upsert(invitation(
            event.id, 20, status=InvitationStatus.ACCEPTED, responded_at=NOW,
            role_at_event=RoleAtEvent.COORDINATOR
        ))

        assert second.id == first.id
        assert second.status == InvitationStatus.ACCEPTED
        assert second.role_at_event == RoleAtEvent.COORDINATOR
        assert second.responded_at == NOW
        assert len(repo.list_for_event(event.id)) == 1

    def test_bulk_upsert_keeps_order(self, repo, event):
        stored = repo.bulk_upsert([invitation(event.id, 21), invitation(event.id, 20)])

        assert [i.invitee_id for i in stored] == [21, 20]

    def test_list_for_invitee_with_status(self, repo, event):
        repo.upsert(invitation(event.id, 20, status=InvitationStatus.DECLINED))

        assert len(repo.list_for_invitee(20)) == 1
        assert repo.list_for_invitee(20, "pending") == []
        assert len(repo.list_for_invitee(20, "declined")) == 1

    def test_get_for_missing_pair(self, repo, event):
        assert repo.get_for(event.id, 99) is None
        assert repo.get_by_id(99) is None

    def test_delete_for_event(self, repo, event):
        repo.bulk_upsert([invitation(event.id, 20), invitation(event.id, 21)])

        assert repo.delete_for_event(event.id) == 2
        assert repo.list_for_event(event.id) == []


class TestUserRepository:
    """Test cases for user directory lookups."""

    def test_get_many(self, db_session, users):
        found = UserRepository(db_session).get_many([1, 20, 404])

        assert set(found) == {1, 20}

    def test_lookup_by_email_is_case_insensitive(self, db_session, users):
        repo = UserRepository(db_session)

        assert repo.get_by_email(" Dean@UniPal.edu ").id == 1
        assert set(repo.get_many_by_email(["STUDENT.A@unipal.edu", "nobody@unipal.edu"])) == {
            "student.a@unipal.edu"
        }

    def test_list_by_roles_includes_legacy_names(self, db_session, users):
        deans = UserRepository(db_session).list_by_roles(DEAN_ROLE_NAMES)

        assert [u.id for u in deans] == [1, 2]


class TestFeedbackRepository:
    """Test cases for feedback storage."""

    def test_ratings_for_event(self, db_session, event):
        repo = FeedbackRepository(db_session)
        repo.create(event.id, 20, 5, "Great")
        repo.create(event.id, 21, 3)

        assert sorted(repo.ratings_for_event(event.id)) == [3, 5]
        assert len(repo.list_for_event(event.id)) == 2
        assert repo.delete_for_event(event.id) == 2
