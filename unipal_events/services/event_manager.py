"""
EventLifecycleManager: the service layer of the UniPal Events Service.

Each operation loads fresh records, runs the pure transition from
``lifecycle``, persists the result with a single versioned event write, and
then fires best-effort notifications and lifecycle messages.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, InvalidInputError
from ..core.roles import Actor, DEAN_ROLE_NAMES
from ..db.database import EventRepository, InvitationRepository, UserRepository, FeedbackRepository
from ..models.event import Feedback, InvitationStatus
from ..models.user import User
from ..schemas.event import EventRecord, EventCreate, EventUpdate
from ..schemas.invitation import (
    InvitationRecord, InviteeSpec, InvitationResponse, UserSummary, EventSummary
)
from ..schemas.stats import EventRollup
from . import lifecycle
from .event_publisher import EventPublisher
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class EventLifecycleManager:
    """
    Orchestrates event state transitions for one request.

    Args:
        session: SQLAlchemy session for this request
        notifier: Email sender with a best-effort contract
        publisher: Redis lifecycle publisher
        clock: Object exposing ``now()`` returning an aware UTC datetime
    """

    def __init__(self, session: Session, notifier: NotificationService, publisher: EventPublisher, clock):
        self.events = EventRepository(session)
        self.invitations = InvitationRepository(session)
        self.users = UserRepository(session)
        self.feedback = FeedbackRepository(session)
        self.notifier = notifier
        self.publisher = publisher
        self.clock = clock

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------

    def load_event(self, event_id: int) -> EventRecord:
        event = self.events.get_by_id(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    def load_invitation(self, invitation_id: int) -> InvitationRecord:
        invitation = self.invitations.get_by_id(invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        return invitation

    def _require_users(self, user_ids) -> Dict[int, User]:
        ids = lifecycle.unique_ids(user_ids)
        users = self.users.get_many(ids)
        missing = [user_id for user_id in ids if user_id not in users]
        if missing:
            raise NotFoundError(f"Users not found: {', '.join(str(i) for i in missing)}")
        return users

    def _seed_coordinator_invitations(self, event: EventRecord, coordinator_ids, actor: Actor):
        """Accepted coordinator invitations for coordinators without one."""
        seeds = [
            invitation
            for invitation in lifecycle.coordinator_invitations(event.id, coordinator_ids, actor.id, self.clock.now())
            if self._needs_coordinator_invitation(invitation)
        ]
        if seeds:
            self.invitations.bulk_upsert(seeds)

    def _needs_coordinator_invitation(self, seed: InvitationRecord) -> bool:
        existing = self.invitations.get_for(seed.event_id, seed.invitee_id)
        if existing is None:
            return True
        return existing.role_at_event != seed.role_at_event or existing.status != seed.status

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def create_event(self, actor: Actor, payload: EventCreate) -> EventRecord:
        """Create an event, approved straight away for deans or when approval is not required."""
        record = lifecycle.create_event(payload, actor, self.clock.now())
        self._require_users(set(record.coordinators) - {actor.id})

        event = self.events.create(record)
        self._seed_coordinator_invitations(event, event.coordinators, actor)
        logger.info(f"Event {event.id} created by user {actor.id} ({event.approval_status.value})")

        await self.publisher.publish_event_created(event)
        return event

    def get_event(self, event_id: int) -> EventRecord:
        return self.load_event(event_id)

    def event_rollup(self, coordinator_id: Optional[int] = None) -> List[EventRollup]:
        return self.events.rollup(coordinator_id)

    def recent_events(self, limit: int) -> List[EventRecord]:
        return self.events.recent(limit)

    def list_events(self, skip: int = 0, limit: int = 100, **filters) -> Tuple[List[EventRecord], int]:
        events = self.events.list(skip=skip, limit=limit, **filters)
        return events, self.events.count(**filters)

    async def update_event(self, actor: Actor, event_id: int, changes: EventUpdate) -> EventRecord:
        event = self.load_event(event_id)
        updated = lifecycle.apply_update(event, changes, actor, self.clock.now())
        if updated is event:
            return event

        added_coordinators = [c for c in updated.coordinators if c not in event.coordinators]
        self._require_users(added_coordinators)

        saved = self.events.save(updated)
        if added_coordinators:
            self._seed_coordinator_invitations(saved, added_coordinators, actor)
        logger.info(f"Event {saved.id} updated by user {actor.id}")

        await self.publisher.publish_event_updated(saved)
        return saved

    async def delete_event(self, actor: Actor, event_id: int) -> None:
        event = self.load_event(event_id)
        lifecycle.ensure_can_manage(event, actor)

        self.invitations.delete_for_event(event.id)
        self.feedback.delete_for_event(event.id)
        self.events.delete(event.id)
        logger.info(f"Event {event.id} deleted by user {actor.id}")

        await self.publisher.publish_event_deleted(event.id)

    async def decide_approval(
        self,
        actor: Actor,
        event_id: int,
        decision: str,
        notes: Optional[str] = None
    ) -> EventRecord:
        event = self.load_event(event_id)
        decided = lifecycle.decide_approval(event, actor, decision, notes, self.clock.now())
        saved = self.events.save(decided)
        logger.info(f"Event {saved.id} {saved.approval_status.value} by user {actor.id}")

        await self.publisher.publish_approval_decided(saved)
        return saved

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def assign_coordinators(self, actor: Actor, event_id: int, coordinator_ids: List[int]) -> EventRecord:
        event = self.load_event(event_id)
        updated = lifecycle.add_coordinators(event, actor, coordinator_ids)
        self._require_users(coordinator_ids)

        saved = self.events.save(updated) if updated != event else event
        self._seed_coordinator_invitations(saved, coordinator_ids, actor)
        logger.info(f"Coordinators {list(coordinator_ids)} assigned to event {saved.id}")
        return saved

    def _resolve_invitees(self, invitees: List[InviteeSpec]) -> List[Tuple[User, InviteeSpec]]:
        """Match each invitee to a user by id or email; unresolved ones are dropped."""
        by_id = self.users.get_many(invitee.user_id for invitee in invitees if invitee.user_id)
        by_email = self.users.get_many_by_email(invitee.email for invitee in invitees if invitee.email and not invitee.user_id)

        resolved: Dict[int, Tuple[User, InviteeSpec]] = {}
        for invitee in invitees:
            user = by_id.get(invitee.user_id) if invitee.user_id else by_email.get(invitee.email)
            if user is None:
                logger.warning(f"Skipping unresolved invitee {invitee.user_id or invitee.email}")
                continue
            resolved[user.id] = (user, invitee)
        return list(resolved.values())

    async def invite(self, actor: Actor, event_id: int, invitees: List[InviteeSpec]) -> List[InvitationRecord]:
        """
        Upsert pending invitations and email each resolved invitee.

        Returns:
            The stored invitations, one per resolved invitee
        """
        event = self.load_event(event_id)
        lifecycle.ensure_can_manage(event, actor)

        resolved = self._resolve_invitees(invitees)
        if not resolved:
            raise InvalidInputError("No valid invitees provided")

        pending = [
            lifecycle.pending_invitation(event.id, user.id, actor, invitee.role_at_event, invitee.message)
            for user, invitee in resolved
        ]
        invitations = self.invitations.bulk_upsert(pending)
        logger.info(f"User {actor.id} invited {len(invitations)} users to event {event.id}")

        inviter_name = actor.name
        if not inviter_name:
            inviter = self.users.get_by_id(actor.id)
            inviter_name = inviter.name if inviter else None

        for (user, invitee), invitation in zip(resolved, invitations):
            if not user.email:
                continue
            await self.notifier.send_invitation(
                user.email, event, user.name, inviter_name,
                invitation.role_at_event.value, invitation.message
            )
        return invitations

    def resolve_invitations(self, invitations: List[InvitationRecord]) -> List[InvitationResponse]:
        """Attach invitee, inviter and event summaries to invitation records."""
        users = self.users.get_many(
            [i.invitee_id for i in invitations] + [i.invited_by for i in invitations]
        )
        events: Dict[int, Optional[EventRecord]] = {}
        responses = []
        for invitation in invitations:
            if invitation.event_id not in events:
                events[invitation.event_id] = self.events.get_by_id(invitation.event_id)
            event = events[invitation.event_id]
            invitee = users.get(invitation.invitee_id)
            inviter = users.get(invitation.invited_by)
            responses.append(InvitationResponse(
                **invitation.model_dump(exclude={"created_at", "updated_at"}),
                invitee=UserSummary.model_validate(invitee) if invitee else None,
                inviter=UserSummary.model_validate(inviter) if inviter else None,
                event=EventSummary.model_validate(event) if event else None,
            ))
        return responses

    def list_invitations(self, actor: Actor, event_id: int) -> List[InvitationRecord]:
        event = self.load_event(event_id)
        lifecycle.ensure_can_manage(event, actor)
        return self.invitations.list_for_event(event.id)

    def my_invitations(self, actor: Actor, status: Optional[str] = None) -> List[InvitationRecord]:
        return self.invitations.list_for_invitee(actor.id, status)

    async def respond_to_invitation(self, actor: Actor, invitation_id: int, decision: str) -> InvitationRecord:
        invitation = self.load_invitation(invitation_id)
        answered = lifecycle.respond_to_invitation(invitation, actor, decision, self.clock.now())

        event = self.load_event(invitation.event_id)
        admitted = lifecycle.admit_invitee(event, answered)
        if admitted is not event:
            self.events.save(admitted)

        stored = self.invitations.upsert(answered)
        logger.info(f"User {actor.id} {stored.status.value} invitation {stored.id}")
        return stored

    async def revoke_invitation(self, actor: Actor, invitation_id: int) -> InvitationRecord:
        invitation = self.load_invitation(invitation_id)
        event = self.load_event(invitation.event_id)
        revoked = lifecycle.revoke_invitation(event, invitation, actor)
        if revoked is invitation:
            return invitation

        stored = self.invitations.upsert(revoked)
        logger.info(f"Invitation {stored.id} revoked by user {actor.id}")
        return stored

    async def register(self, actor: Actor, event_id: int) -> Tuple[EventRecord, bool]:
        """
        Self-registration.

        Returns:
            The event and whether the actor was already registered
        """
        event = self.load_event(event_id)
        existing = self.invitations.get_for(event.id, actor.id)
        registered, already = lifecycle.register_attendee(event, actor, existing)
        if already:
            return event, True

        saved = self.events.save(registered)
        self.invitations.upsert(
            lifecycle.registration_invitation(event.id, actor, existing, self.clock.now())
        )
        logger.info(f"User {actor.id} registered for event {event.id}")
        await self.publisher.publish_event_updated(saved)
        return saved, False

    def my_events(self, actor: Actor) -> List[EventRecord]:
        return self.events.list_for_attendee(actor.id)

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    async def generate_attendance_code(self, actor: Actor, event_id: int) -> EventRecord:
        event = self.load_event(event_id)
        issued = lifecycle.issue_attendance_code(event, actor, self.clock.now())
        saved = self.events.save(issued)
        logger.info(f"Attendance code issued for event {saved.id} by user {actor.id}")
        return saved

    def _mark_invitation_attended(self, event_id: int, user_id: int):
        invitation = self.invitations.get_for(event_id, user_id)
        if invitation is not None and invitation.status != InvitationStatus.ACCEPTED:
            self.invitations.upsert(lifecycle.mark_invitation_attended(invitation, self.clock.now()))

    async def check_in(self, actor: Actor, event_id: int, code: str) -> Tuple[EventRecord, bool]:
        """
        Redeem an attendance code.

        Returns:
            The event and whether the actor was already checked in
        """
        event = self.load_event(event_id)
        checked_in, already = lifecycle.check_in(event, actor, code, self.clock.now())
        if already:
            return event, True

        saved = self.events.save(checked_in)
        self._mark_invitation_attended(event.id, actor.id)
        logger.info(f"User {actor.id} checked in to event {event.id}")
        return saved, False

    async def record_attendance(self, actor: Actor, event_id: int, user_id: int) -> Tuple[EventRecord, bool]:
        event = self.load_event(event_id)
        recorded, already = lifecycle.record_attendance(event, actor, user_id)
        if already:
            return event, True

        saved = self.events.save(recorded)
        self._mark_invitation_attended(event.id, user_id)
        logger.info(f"User {actor.id} recorded attendance of user {user_id} at event {event.id}")
        return saved, False

    def list_attendance(self, actor: Actor, event_id: int) -> List[User]:
        event = self.load_event(event_id)
        lifecycle.ensure_can_manage(event, actor)
        users = self.users.get_many(event.attendance)
        return [users[user_id] for user_id in event.attendance if user_id in users]

    # ------------------------------------------------------------------
    # Feedback and finalisation
    # ------------------------------------------------------------------

    def submit_feedback(self, actor: Actor, event_id: int, rating, comments: Optional[str] = None) -> Feedback:
        event = self.load_event(event_id)
        lifecycle.validate_feedback(event, actor, rating)
        feedback = self.feedback.create(event.id, actor.id, rating, comments)
        logger.info(f"Feedback {feedback.id} submitted for event {event.id}")
        return feedback

    def list_feedback(self, actor: Actor, event_id: int) -> List[Feedback]:
        event = self.load_event(event_id)
        lifecycle.ensure_can_manage(event, actor)
        return self.feedback.list_for_event(event.id)

    async def finalize(
        self,
        actor: Actor,
        event_id: int,
        notes: Optional[str] = None,
        force_resend: bool = False
    ) -> Tuple[EventRecord, List[int]]:
        """
        Complete the event and mail its report to every dean.

        Returns:
            The stored event and the ids of the deans the report was sent to
        """
        event = self.load_event(event_id)
        lifecycle.ensure_can_finalize(event, actor)
        if lifecycle.report_already_sent(event, force_resend):
            return event, []

        now = self.clock.now()
        finalized = lifecycle.finalize_event(
            event, actor, self.feedback.ratings_for_event(event.id), notes, now
        )

        recipients = [user for user in self.users.list_by_roles(DEAN_ROLE_NAMES) if user.email]
        delivered = lifecycle.record_report_delivery(finalized, [user.id for user in recipients], now)

        # Mail only once the report is stored so a stale write notifies nobody
        saved = self.events.save(delivered)
        for recipient in recipients:
            await self.notifier.send_event_report(recipient.email, saved, saved.report)
        logger.info(f"Event {saved.id} finalised; report sent to {len(recipients)} deans")

        await self.publisher.publish_event_finalized(saved)
        return saved, [user.id for user in recipients]
