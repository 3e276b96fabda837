"""
Pure event lifecycle transitions.

Every function takes immutable records, the acting user and the current time,
validates its preconditions, and returns new records. Nothing here touches
storage or sends notifications; ``EventLifecycleManager`` does the loading,
persisting and notifying around these calls.
"""

import hmac
import secrets
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence, Tuple

from ..core.errors import (
    ForbiddenError, InvalidStateError, InvalidInputError, ExpiredError
)
from ..core.roles import Actor, Role
from ..models.event import (
    EventStatus, ApprovalStatus, InvitationMode, InvitationStatus, RoleAtEvent
)
from ..schemas.event import (
    EventRecord, EventCreate, EventUpdate, EventReport, Budget, AgendaItem, ImportantContact,
    ensure_utc
)
from ..schemas.invitation import InvitationRecord

ATTENDANCE_CODE_TTL = timedelta(minutes=5)
ATTENDANCE_CODE_BYTES = 16

# Changing any of these on an approved event sends it back for review
APPROVAL_RELEVANT_FIELDS = (
    "name", "date", "location", "time", "capacity", "school", "department",
    "tags", "sponsors", "agenda", "budget", "invitation_mode",
    "allow_self_check_in", "category", "event_format", "delivery_mode",
)
PLAIN_EDITABLE_FIELDS = ("description", "banner", "important_contacts")
NON_NULLABLE_FIELDS = (
    "name", "date", "location", "time", "capacity", "category", "event_format",
    "delivery_mode", "invitation_mode", "allow_self_check_in",
)


def add_unique(values: Iterable[int], *new_values: int) -> Tuple[int, ...]:
    """Set-style append that keeps insertion order."""
    result = list(values)
    for value in new_values:
        if value not in result:
            result.append(value)
    return tuple(result)


def unique_ids(values: Optional[Iterable[int]]) -> Tuple[int, ...]:
    return add_unique((), *[v for v in (values or []) if v])


# ---------------------------------------------------------------------------
# Authorization predicates
# ---------------------------------------------------------------------------

def can_manage(event: EventRecord, actor: Actor) -> bool:
    """Deans, the creator and listed coordinators hold manage-rights."""
    if actor.is_dean:
        return True
    return actor.id == event.created_by or actor.id in event.coordinators


def ensure_can_manage(event: EventRecord, actor: Actor) -> None:
    if not can_manage(event, actor):
        raise ForbiddenError("Not authorized to manage this event")


def ensure_dean(actor: Actor, message: str) -> None:
    if not actor.is_dean:
        raise ForbiddenError(message)


# ---------------------------------------------------------------------------
# Creation, update and approval
# ---------------------------------------------------------------------------

def create_event(payload: EventCreate, actor: Actor, now: datetime) -> EventRecord:
    """
    Build a new event record.

    Deans, and any request with ``requires_approval`` turned off, produce an
    approved event; everything else starts pending in draft.
    """
    if actor.role == Role.STUDENT:
        raise ForbiddenError("Students cannot create events")

    coordinators = unique_ids(payload.coordinator_ids)
    if actor.role == Role.COORDINATOR:
        coordinators = add_unique((actor.id,), *coordinators)

    auto_approve = not payload.requires_approval or actor.is_dean
    if auto_approve:
        status = payload.status or EventStatus.SCHEDULED
        approval = {
            "approval_status": ApprovalStatus.APPROVED,
            "approved_by": actor.id,
            "approved_at": now,
            "approval_notes": payload.approval_notes,
        }
    else:
        status = EventStatus.DRAFT
        approval = {"approval_status": ApprovalStatus.PENDING}

    return EventRecord(
        name=payload.name,
        description=payload.description,
        date=ensure_utc(payload.date),
        time=payload.time,
        location=payload.location,
        capacity=payload.capacity,
        banner=payload.banner,
        school=payload.school,
        department=payload.department,
        category=payload.category,
        event_format=payload.event_format,
        delivery_mode=payload.delivery_mode,
        tags=tuple(payload.tags),
        sponsors=tuple(payload.sponsors),
        budget=payload.budget,
        agenda=tuple(payload.agenda),
        important_contacts=tuple(payload.important_contacts),
        created_by=actor.id,
        coordinators=coordinators,
        status=status,
        requires_approval=payload.requires_approval,
        invitation_mode=payload.invitation_mode,
        allow_self_check_in=payload.allow_self_check_in,
        finalized_at=now if status == EventStatus.COMPLETED else None,
        **approval,
    )


def _coerce_update_value(event: EventRecord, field: str, value):
    if field in ("tags", "sponsors"):
        return tuple(value or ())
    if field == "agenda":
        return tuple(AgendaItem.model_validate(item) for item in (value or ()))
    if field == "important_contacts":
        return tuple(ImportantContact.model_validate(item) for item in (value or ()))
    if field == "budget":
        incoming = value.model_dump(exclude_none=True) if value is not None else {}
        return Budget(
            currency=incoming.get("currency") or event.budget.currency or "INR",
            amount=incoming["amount"] if incoming.get("amount") is not None else event.budget.amount,
        )
    if field == "date":
        return ensure_utc(value)
    return value


def apply_update(event: EventRecord, changes: EventUpdate, actor: Actor, now: datetime) -> EventRecord:
    """
    Apply the fields present in ``changes``.

    A real change to an approval-relevant field on an approved event resets it
    to pending; a completed event keeps its status.
    """
    ensure_can_manage(event, actor)

    present = changes.model_fields_set
    updates = {}
    requires_reapproval = False

    for field in APPROVAL_RELEVANT_FIELDS + PLAIN_EDITABLE_FIELDS:
        if field not in present:
            continue
        raw_value = getattr(changes, field)
        if raw_value is None and field in NON_NULLABLE_FIELDS:
            continue
        value = _coerce_update_value(event, field, raw_value)
        if value == getattr(event, field):
            continue
        updates[field] = value
        if field in APPROVAL_RELEVANT_FIELDS:
            requires_reapproval = True

    if (
        "requires_approval" in present
        and changes.requires_approval is not None
        and changes.requires_approval != event.requires_approval
    ):
        ensure_dean(actor, "Only deans can change approval requirements")
        updates["requires_approval"] = changes.requires_approval
        if not changes.requires_approval and not event.is_approved:
            updates["approval_status"] = ApprovalStatus.APPROVED
            updates["approved_by"] = actor.id
            updates["approved_at"] = now
            if event.status == EventStatus.DRAFT:
                updates["status"] = EventStatus.SCHEDULED

    if "coordinator_ids" in present and changes.coordinator_ids is not None:
        updates["coordinators"] = unique_ids(changes.coordinator_ids)

    if requires_reapproval and event.is_approved:
        updates["approval_status"] = ApprovalStatus.PENDING
        updates["requires_approval"] = True
        updates["approved_by"] = None
        updates["approved_at"] = None
        if not event.is_completed:
            updates["status"] = EventStatus.DRAFT

    if "status" in present and changes.status is not None and changes.status != event.status:
        # Completed is terminal; completion requires an approved event
        if event.is_completed:
            raise InvalidStateError("Completed events cannot be reopened")
        if changes.status == EventStatus.COMPLETED:
            if updates.get("approval_status", event.approval_status) != ApprovalStatus.APPROVED:
                raise InvalidStateError("Event not approved yet")
            if not event.finalized_at:
                updates["finalized_at"] = now
        elif updates.get("status") == EventStatus.DRAFT and changes.status != EventStatus.DRAFT:
            raise InvalidStateError("Event must be re-approved before it can be scheduled")
        updates["status"] = changes.status

    if not updates:
        return event
    return event.model_copy(update=updates)


def decide_approval(
    event: EventRecord,
    actor: Actor,
    decision: str,
    notes: Optional[str],
    now: datetime
) -> EventRecord:
    """Record a dean's approve/reject decision."""
    ensure_dean(actor, "Only deans can approve or reject events")

    if decision not in (ApprovalStatus.APPROVED.value, ApprovalStatus.REJECTED.value):
        raise InvalidInputError("Decision must be approved or rejected")
    outcome = ApprovalStatus(decision)

    if event.is_completed:
        raise InvalidStateError("Completed events cannot be re-reviewed")
    if outcome == ApprovalStatus.APPROVED and event.is_approved:
        raise InvalidStateError("Event is already approved")

    updates = {
        "requires_approval": False,
        "approval_status": outcome,
        "approval_notes": notes,
    }
    if outcome == ApprovalStatus.APPROVED:
        updates["approved_by"] = actor.id
        updates["approved_at"] = now
        if event.status == EventStatus.DRAFT:
            updates["status"] = EventStatus.SCHEDULED
    else:
        updates["approved_by"] = None
        updates["approved_at"] = None
        updates["status"] = EventStatus.DRAFT

    return event.model_copy(update=updates)


def add_coordinators(event: EventRecord, actor: Actor, coordinator_ids: Sequence[int]) -> EventRecord:
    ensure_can_manage(event, actor)
    ids = unique_ids(coordinator_ids)
    if not ids:
        raise InvalidInputError("No coordinators provided")
    return event.model_copy(update={"coordinators": add_unique(event.coordinators, *ids)})


def coordinator_invitations(
    event_id: int,
    coordinator_ids: Iterable[int],
    invited_by: int,
    now: datetime
) -> Tuple[InvitationRecord, ...]:
    """Accepted coordinator invitations mirroring a coordinator assignment."""
    return tuple(
        InvitationRecord(
            event_id=event_id,
            invitee_id=coordinator_id,
            invited_by=invited_by,
            role_at_event=RoleAtEvent.COORDINATOR,
            status=InvitationStatus.ACCEPTED,
            responded_at=now,
        )
        for coordinator_id in unique_ids(coordinator_ids)
    )


# ---------------------------------------------------------------------------
# Invitations and registration
# ---------------------------------------------------------------------------

def pending_invitation(
    event_id: int,
    invitee_id: int,
    inviter: Actor,
    role_at_event: RoleAtEvent,
    message: Optional[str]
) -> InvitationRecord:
    """A fresh (or re-issued) invitation awaiting the invitee's answer."""
    return InvitationRecord(
        event_id=event_id,
        invitee_id=invitee_id,
        invited_by=inviter.id,
        role_at_event=role_at_event,
        status=InvitationStatus.PENDING,
        responded_at=None,
        message=message,
    )


def respond_to_invitation(
    invitation: InvitationRecord,
    actor: Actor,
    decision: str,
    now: datetime
) -> InvitationRecord:
    if invitation.invitee_id != actor.id:
        raise ForbiddenError("Not authorized for this invitation")
    if decision not in (InvitationStatus.ACCEPTED.value, InvitationStatus.DECLINED.value):
        raise InvalidInputError("Invalid status")
    if invitation.status == InvitationStatus.REVOKED:
        raise InvalidStateError("Invitation has been revoked")

    return invitation.model_copy(update={
        "status": InvitationStatus(decision),
        "responded_at": now,
    })


def admit_invitee(event: EventRecord, invitation: InvitationRecord) -> EventRecord:
    """Add an accepted invitee to coordinators or attendees per their role."""
    if invitation.status != InvitationStatus.ACCEPTED:
        return event
    if invitation.role_at_event == RoleAtEvent.COORDINATOR:
        coordinators = add_unique(event.coordinators, invitation.invitee_id)
        if coordinators == event.coordinators:
            return event
        return event.model_copy(update={"coordinators": coordinators})
    attendees = add_unique(event.attendees, invitation.invitee_id)
    if attendees == event.attendees:
        return event
    return event.model_copy(update={"attendees": attendees})


def revoke_invitation(
    event: EventRecord,
    invitation: InvitationRecord,
    actor: Actor
) -> InvitationRecord:
    ensure_can_manage(event, actor)
    if invitation.status == InvitationStatus.REVOKED:
        return invitation
    return invitation.model_copy(update={"status": InvitationStatus.REVOKED})


def register_attendee(
    event: EventRecord,
    actor: Actor,
    invitation: Optional[InvitationRecord]
) -> Tuple[EventRecord, bool]:
    """
    Self-registration.

    Returns the next event record and whether the actor was already registered.
    """
    if event.is_completed:
        raise InvalidStateError("Event is already completed")
    if not event.is_approved:
        raise InvalidStateError("Event is not open for registration")

    if event.invitation_mode == InvitationMode.INVITE_ONLY:
        if invitation is None or invitation.status in (InvitationStatus.DECLINED, InvitationStatus.REVOKED):
            raise ForbiddenError("This event is invite-only. Please contact the coordinator.")

    if actor.id in event.attendees:
        return event, True
    return event.model_copy(update={"attendees": add_unique(event.attendees, actor.id)}), False


def registration_invitation(
    event_id: int,
    actor: Actor,
    existing: Optional[InvitationRecord],
    now: datetime
) -> InvitationRecord:
    """Accepted attendee invitation kept as the audit trail of a registration."""
    return InvitationRecord(
        id=existing.id if existing else None,
        event_id=event_id,
        invitee_id=actor.id,
        invited_by=existing.invited_by if existing else actor.id,
        role_at_event=RoleAtEvent.ATTENDEE,
        status=InvitationStatus.ACCEPTED,
        responded_at=now,
        message=existing.message if existing else None,
    )


def mark_invitation_attended(invitation: InvitationRecord, now: datetime) -> InvitationRecord:
    return invitation.model_copy(update={
        "status": InvitationStatus.ACCEPTED,
        "responded_at": now,
    })


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------

def issue_attendance_code(
    event: EventRecord,
    actor: Actor,
    now: datetime,
    token: Optional[str] = None
) -> EventRecord:
    """Replace the event's attendance code with a new one valid for five minutes."""
    ensure_can_manage(event, actor)
    if not event.is_approved:
        raise InvalidStateError(
            "Event approval pending. Please approve before generating attendance codes."
        )
    if event.is_completed:
        raise InvalidStateError("Event is already completed")

    return event.model_copy(update={
        "attendance_code": token or secrets.token_hex(ATTENDANCE_CODE_BYTES),
        "attendance_code_expires_at": now + ATTENDANCE_CODE_TTL,
    })


def _codes_match(expected: Optional[str], submitted: Optional[str]) -> bool:
    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), submitted.encode("utf-8"))


def check_in(
    event: EventRecord,
    actor: Actor,
    submitted_code: Optional[str],
    now: datetime
) -> Tuple[EventRecord, bool]:
    """
    Redeem an attendance code for the actor.

    Returns the next event record and whether the actor had already checked in.
    """
    if event.is_completed:
        raise InvalidStateError("Event is already completed")
    if not event.is_approved:
        raise InvalidStateError("Event not approved yet")
    if not _codes_match(event.attendance_code, submitted_code):
        raise InvalidInputError("Invalid code")
    expires_at = event.attendance_code_expires_at
    if expires_at is None or now > expires_at:
        raise ExpiredError("Code expired")

    is_coordinator = actor.id in event.coordinators
    is_attendee = actor.id in event.attendees
    if event.invitation_mode == InvitationMode.INVITE_ONLY and not (is_coordinator or is_attendee):
        raise ForbiddenError("This event requires an invitation")
    if not event.allow_self_check_in and not is_coordinator:
        raise ForbiddenError("Coordinator must record attendance for you")

    if actor.id in event.attendance:
        return event, True
    return event.model_copy(update={"attendance": add_unique(event.attendance, actor.id)}), False


def record_attendance(event: EventRecord, actor: Actor, user_id: int) -> Tuple[EventRecord, bool]:
    """Coordinator path for marking someone else present."""
    ensure_can_manage(event, actor)
    if event.is_completed:
        raise InvalidStateError("Event is already completed")
    if not event.is_approved:
        raise InvalidStateError("Event not approved yet")
    if user_id not in event.attendees and user_id not in event.coordinators:
        raise InvalidStateError("User is not registered for this event")

    if user_id in event.attendance:
        return event, True
    return event.model_copy(update={"attendance": add_unique(event.attendance, user_id)}), False


# ---------------------------------------------------------------------------
# Feedback and finalisation
# ---------------------------------------------------------------------------

def validate_feedback(event: EventRecord, actor: Actor, rating) -> None:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidInputError("Rating must be between 1 and 5")
    if actor.id not in event.attendance:
        raise ForbiddenError("Feedback allowed after attending the event")


def summarize_ratings(ratings: Sequence[int]) -> Tuple[int, float]:
    """Feedback count and mean rating rounded to two decimals (0 without feedback)."""
    count = len(ratings)
    if count == 0:
        return 0, 0.0
    return count, round(sum(ratings) / count, 2)


def ensure_can_finalize(event: EventRecord, actor: Actor) -> None:
    ensure_can_manage(event, actor)
    if not event.is_approved:
        raise InvalidStateError("Event must be approved before finalisation")


def report_already_sent(event: EventRecord, force_resend: bool) -> bool:
    return event.report_sent_at is not None and event.report is not None and not force_resend


def finalize_event(
    event: EventRecord,
    actor: Actor,
    ratings: Sequence[int],
    notes: Optional[str],
    now: datetime
) -> EventRecord:
    """Mark the event completed and attach a freshly computed report."""
    ensure_can_finalize(event, actor)

    feedback_count, average_rating = summarize_ratings(ratings)
    report = EventReport(
        generated_at=now,
        attendee_count=len(event.attendance),
        feedback_count=feedback_count,
        average_rating=average_rating,
        notes=notes,
        recipients=event.report.recipients if event.report else (),
    )
    return event.model_copy(update={
        "status": EventStatus.COMPLETED,
        "finalized_at": event.finalized_at or now,
        "report": report,
    })


def record_report_delivery(event: EventRecord, recipient_ids: Sequence[int], now: datetime) -> EventRecord:
    """Stamp delivery once at least one dean was addressed."""
    if not recipient_ids or event.report is None:
        return event
    report = event.report.model_copy(update={"recipients": tuple(recipient_ids)})
    return event.model_copy(update={"report": report, "report_sent_at": now})
