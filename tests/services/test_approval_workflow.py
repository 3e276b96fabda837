"""
Tests for event creation, update and the dean approval state machine.
"""

import pytest
from datetime import datetime, timedelta, timezone

from unipal_events.core.errors import ForbiddenError, InvalidStateError, InvalidInputError
from unipal_events.models.event import EventStatus, ApprovalStatus, InvitationMode
from unipal_events.schemas.event import EventCreate, EventUpdate, Budget
from unipal_events.services import lifecycle

NOW = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class TestEventCreation:
    """Test cases for building new event records."""

    @pytest.fixture
    def payload(self):
        return EventCreate(
            name="Robotics Workshop",
            date=datetime(2025, 4, 2, 14, 0, tzinfo=timezone.utc),
            location="Lab 3",
            capacity=40,
            coordinator_ids=[11],
        )

    def test_coordinator_creates_pending_draft(self, payload, coordinator):
        """Coordinator-created events wait for a dean."""
        event = lifecycle.create_event(payload, coordinator, NOW)

        assert event.approval_status == ApprovalStatus.PENDING
        assert event.status == EventStatus.DRAFT
        assert event.requires_approval is True
        assert event.approved_by is None
        assert event.created_by == coordinator.id

    def test_coordinator_creator_joins_coordinators(self, payload, coordinator):
        event = lifecycle.create_event(payload, coordinator, NOW)

        assert event.coordinators == (10, 11)

    def test_dean_creates_approved_event(self, payload, dean):
        """Dean-created events skip review."""
        event = lifecycle.create_event(payload, dean, NOW)

        assert event.approval_status == ApprovalStatus.APPROVED
        assert event.status == EventStatus.SCHEDULED
        assert event.approved_by == dean.id
        assert event.approved_at == NOW
        assert dean.id not in event.coordinators

    def test_no_approval_required_creates_approved_event(self, coordinator):
        payload = EventCreate(
            name="Open Mic",
            date=datetime(2025, 4, 2, tzinfo=timezone.utc),
            location="Quad",
            requires_approval=False,
            status="ongoing",
        )

        event = lifecycle.create_event(payload, coordinator, NOW)

        assert event.approval_status == ApprovalStatus.APPROVED
        assert event.status == EventStatus.ONGOING
        assert event.approved_by == coordinator.id

    def test_student_cannot_create_events(self, payload, student):
        with pytest.raises(ForbiddenError):
            lifecycle.create_event(payload, student, NOW)


class TestApprovalDecision:
    """Test cases for dean decisions."""

    def test_approve_pending_event(self, make_event, dean):
        """Approval schedules a draft and clears the approval requirement."""
        event = make_event(approval_status="pending", status="draft", requires_approval=True,
                           approved_by=None, approved_at=None)

        decided = lifecycle.decide_approval(event, dean, "approved", "Looks good", NOW)

        assert decided.approval_status == ApprovalStatus.APPROVED
        assert decided.status == EventStatus.SCHEDULED
        assert decided.requires_approval is False
        assert decided.approved_by == dean.id
        assert decided.approved_at == NOW
        assert decided.approval_notes == "Looks good"
        # Original record is untouched
        assert event.approval_status == ApprovalStatus.PENDING

    def test_reject_pending_event(self, make_event, dean):
        event = make_event(approval_status="pending", status="scheduled")

        decided = lifecycle.decide_approval(event, dean, "rejected", "Clashes with exams", NOW)

        assert decided.approval_status == ApprovalStatus.REJECTED
        assert decided.status == EventStatus.DRAFT
        assert decided.approved_by is None
        assert decided.approved_at is None
        assert decided.approval_notes == "Clashes with exams"

    def test_rejected_event_can_be_re_reviewed(self, make_event, dean):
        event = make_event(approval_status="rejected", status="draft", approved_by=None, approved_at=None)

        decided = lifecycle.decide_approval(event, dean, "approved", None, NOW)

        assert decided.approval_status == ApprovalStatus.APPROVED

    def test_approving_approved_event_is_invalid_state(self, make_event, dean):
        with pytest.raises(InvalidStateError):
            lifecycle.decide_approval(make_event(), dean, "approved", None, NOW)

    def test_deciding_completed_event_is_invalid_state(self, make_event, dean):
        with pytest.raises(InvalidStateError):
            lifecycle.decide_approval(make_event(status="completed"), dean, "rejected", None, NOW)

    def test_unknown_decision_is_invalid_input(self, make_event, dean):
        event = make_event(approval_status="pending")

        with pytest.raises(InvalidInputError):
            lifecycle.decide_approval(event, dean, "maybe", None, NOW)

    def test_only_deans_decide(self, make_event, coordinator):
        event = make_event(approval_status="pending")

        with pytest.raises(ForbiddenError):
            lifecycle.decide_approval(event, coordinator, "approved", None, NOW)


class TestApprovalReset:
    """Test cases for resetting approval when relevant fields change."""

    @pytest.mark.parametrize("changes", [
        {"name": "AI Symposium 2025"},
        {"location": "Block B"},
        {"capacity": 250},
        {"date": datetime(2025, 3, 11, 10, 0, tzinfo=timezone.utc)},
        {"tags": ["robotics"]},
        {"budget": {"amount": 5000}},
        {"invitation_mode": "invite-only"},
        {"allow_self_check_in": False},
    ])
    def test_relevant_change_resets_approval(self, make_event, coordinator, changes):
        event = make_event()

        updated = lifecycle.apply_update(event, EventUpdate(**changes), coordinator, NOW)

        assert updated.approval_status == ApprovalStatus.PENDING
        assert updated.requires_approval is True
        assert updated.approved_by is None
        assert updated.approved_at is None
        assert updated.status == EventStatus.DRAFT

    def test_completed_event_keeps_completed_status(self, make_event, coordinator):
        """Approval resets but a completed event stays completed."""
        event = make_event(status="completed", finalized_at=NOW)

        updated = lifecycle.apply_update(event, EventUpdate(location="Block B"), coordinator, NOW)

        assert updated.approval_status == ApprovalStatus.PENDING
        assert updated.status == EventStatus.COMPLETED

    def test_identical_value_does_not_reset(self, make_event, coordinator):
        event = make_event()

        updated = lifecycle.apply_update(
            event, EventUpdate(name=event.name, location=event.location), coordinator, NOW
        )

        assert updated is event
        assert updated.approval_status == ApprovalStatus.APPROVED

    def test_description_change_keeps_approval(self, make_event, coordinator):
        event = make_event()

        updated = lifecycle.apply_update(event, EventUpdate(description="New abstract"), coordinator, NOW)

        assert updated.description == "New abstract"
        assert updated.approval_status == ApprovalStatus.APPROVED
        assert updated.status == EventStatus.SCHEDULED

    def test_dean_edit_also_resets(self, make_event, dean):
        updated = lifecycle.apply_update(make_event(), EventUpdate(capacity=10), dean, NOW)

        assert updated.approval_status == ApprovalStatus.PENDING

    def test_budget_update_merges_with_existing(self, make_event, coordinator):
        event = make_event(budget={"currency": "USD", "amount": 100})

        updated = lifecycle.apply_update(event, EventUpdate(budget={"amount": 250}), coordinator, NOW)

        assert updated.budget == Budget(currency="USD", amount=250)

    def test_pending_event_stays_pending_after_edit(self, make_event, coordinator):
        event = make_event(approval_status="pending", status="draft", approved_by=None, approved_at=None)

        updated = lifecycle.apply_update(event, EventUpdate(location="Block B"), coordinator, NOW)

        assert updated.approval_status == ApprovalStatus.PENDING
        assert updated.location == "Block B"


class TestEventUpdateRules:
    """Test cases for non-field updates."""

    def test_update_requires_manage_rights(self, make_event, other_coordinator):
        with pytest.raises(ForbiddenError):
            lifecycle.apply_update(make_event(), EventUpdate(description="x"), other_coordinator, NOW)

    def test_listed_coordinator_can_update(self, make_event, other_coordinator):
        event = make_event(coordinators=(10, 11))

        updated = lifecycle.apply_update(event, EventUpdate(description="x"), other_coordinator, NOW)

        assert updated.description == "x"

    def test_moving_to_completed_stamps_finalized_once(self, make_event, coordinator):
        event = make_event()

        completed = lifecycle.apply_update(event, EventUpdate(status="completed"), coordinator, NOW)
        assert completed.finalized_at == NOW

        later = NOW + timedelta(days=1)
        again = lifecycle.apply_update(completed, EventUpdate(status="completed"), coordinator, later)
        assert again.finalized_at == NOW

    def test_completed_event_cannot_be_reopened(self, make_event, coordinator):
        event = make_event(status="completed", finalized_at=NOW)

        with pytest.raises(InvalidStateError):
            lifecycle.apply_update(event, EventUpdate(status="scheduled"), coordinator, NOW)

    def test_completed_event_stays_closed_to_attendance(self, make_event, coordinator):
        event = make_event(status="completed", finalized_at=NOW)

        with pytest.raises(InvalidStateError):
            lifecycle.apply_update(event, EventUpdate(status="ongoing"), coordinator, NOW)
        with pytest.raises(InvalidStateError):
            lifecycle.issue_attendance_code(event, coordinator, NOW)

    def test_unapproved_event_cannot_be_completed(self, make_event, coordinator):
        event = make_event(approval_status="pending", status="draft", approved_by=None, approved_at=None)

        with pytest.raises(InvalidStateError, match="Event not approved yet"):
            lifecycle.apply_update(event, EventUpdate(status="completed"), coordinator, NOW)

    def test_completion_with_reapproval_change_is_rejected(self, make_event, coordinator):
        """An edit that sends the event back for review cannot complete it at the same time."""
        event = make_event()

        with pytest.raises(InvalidStateError):
            lifecycle.apply_update(
                event, EventUpdate(location="Block B", status="completed"), coordinator, NOW
            )

    def test_reset_event_cannot_be_started(self, make_event, coordinator):
        event = make_event()

        with pytest.raises(InvalidStateError):
            lifecycle.apply_update(event, EventUpdate(capacity=50, status="ongoing"), coordinator, NOW)

    def test_unchanged_status_is_ignored(self, make_event, coordinator):
        event = make_event(status="completed", finalized_at=NOW)

        updated = lifecycle.apply_update(
            event, EventUpdate(status="completed", description="Recap posted"), coordinator, NOW
        )

        assert updated.status == EventStatus.COMPLETED
        assert updated.description == "Recap posted"

    def test_coordinator_cannot_toggle_requires_approval(self, make_event, coordinator):
        event = make_event(approval_status="pending", status="draft", requires_approval=True)

        with pytest.raises(ForbiddenError):
            lifecycle.apply_update(event, EventUpdate(requires_approval=False), coordinator, NOW)

    def test_unchanged_requires_approval_is_not_a_toggle(self, make_event, coordinator):
        """Clients that resend the whole form still get plain edits through."""
        event = make_event(approval_status="pending", status="draft", requires_approval=True,
                           approved_by=None, approved_at=None)

        updated = lifecycle.apply_update(
            event, EventUpdate(description="new", requires_approval=True), coordinator, NOW
        )

        assert updated.description == "new"
        assert updated.requires_approval is True
        assert updated.approval_status == ApprovalStatus.PENDING

    def test_dean_turning_off_approval_approves_event(self, make_event, dean):
        event = make_event(approval_status="pending", status="draft", requires_approval=True,
                           approved_by=None, approved_at=None)

        updated = lifecycle.apply_update(event, EventUpdate(requires_approval=False), dean, NOW)

        assert updated.requires_approval is False
        assert updated.approval_status == ApprovalStatus.APPROVED
        assert updated.approved_by == dean.id
        assert updated.status == EventStatus.SCHEDULED

    def test_coordinator_list_is_replaced(self, make_event, coordinator):
        event = make_event(coordinators=(10, 11))

        updated = lifecycle.apply_update(event, EventUpdate(coordinator_ids=[10, 12, 12]), coordinator, NOW)

        assert updated.coordinators == (10, 12)
        assert updated.approval_status == ApprovalStatus.APPROVED

    def test_invitation_mode_normalised_on_update(self, make_event, coordinator):
        updated = lifecycle.apply_update(
            make_event(), EventUpdate(invitation_mode="private"), coordinator, NOW
        )

        assert updated.invitation_mode == InvitationMode.INVITE_ONLY


class TestAssignCoordinators:
    """Test cases for adding coordinators."""

    def test_adds_with_set_semantics(self, make_event, coordinator):
        event = make_event(coordinators=(10,))

        updated = lifecycle.add_coordinators(event, coordinator, [11, 10, 11])

        assert updated.coordinators == (10, 11)

    def test_empty_list_is_invalid_input(self, make_event, coordinator):
        with pytest.raises(InvalidInputError):
            lifecycle.add_coordinators(make_event(), coordinator, [])

    def test_requires_manage_rights(self, make_event, student):
        with pytest.raises(ForbiddenError):
            lifecycle.add_coordinators(make_event(), student, [11])
