"""
Event, invitation and feedback models for the UniPal Events Service.
Collection-valued event fields are stored as JSON columns so each event row
carries its whole document.
"""

from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, JSON,
    ForeignKey, Index, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventStatus(str, Enum):
    """Event scheduling status."""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class ApprovalStatus(str, Enum):
    """Dean approval status."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InvitationMode(str, Enum):
    OPEN = "open"
    INVITE_ONLY = "invite-only"


class EventCategory(str, Enum):
    SEMINAR = "seminar"
    WORKSHOP = "workshop"
    COMPETITION = "competition"
    GUEST_LECTURE = "guest-lecture"
    HACKATHON = "hackathon"
    ORIENTATION = "orientation"
    CULTURAL = "cultural"
    SPORTS = "sports"
    OTHER = "other"


class EventFormat(str, Enum):
    SEMINAR = "seminar"
    PANEL = "panel"
    HANDS_ON = "hands-on"
    NETWORKING = "networking"
    CEREMONY = "ceremony"
    OTHER = "other"


class DeliveryMode(str, Enum):
    IN_PERSON = "in-person"
    ONLINE = "online"
    HYBRID = "hybrid"


class InvitationStatus(str, Enum):
    """Invitation response status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    REVOKED = "revoked"


class RoleAtEvent(str, Enum):
    COORDINATOR = "coordinator"
    ATTENDEE = "attendee"


class Event(Base):
    """
    Event model representing a university event and its lifecycle state.
    """
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    time = Column(String(50), nullable=False, default="")
    location = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=False, default=0)
    banner = Column(String(500), nullable=True)
    school = Column(String(255), nullable=True, index=True)
    department = Column(String(255), nullable=True, index=True)
    category = Column(String(30), nullable=False, default=EventCategory.OTHER.value)
    event_format = Column(String(30), nullable=False, default=EventFormat.OTHER.value)
    delivery_mode = Column(String(30), nullable=False, default=DeliveryMode.IN_PERSON.value)
    tags = Column(JSON, nullable=False, default=list)
    sponsors = Column(JSON, nullable=False, default=list)
    budget = Column(JSON, nullable=False, default=dict)
    agenda = Column(JSON, nullable=False, default=list)
    important_contacts = Column(JSON, nullable=False, default=list)

    # Ownership and participation
    created_by = Column(Integer, nullable=False, index=True)
    coordinators = Column(JSON, nullable=False, default=list)
    attendees = Column(JSON, nullable=False, default=list)
    attendance = Column(JSON, nullable=False, default=list)

    # Lifecycle
    status = Column(String(20), nullable=False, default=EventStatus.DRAFT.value, index=True)
    approval_status = Column(String(20), nullable=False, default=ApprovalStatus.PENDING.value, index=True)
    requires_approval = Column(Boolean, nullable=False, default=True)
    approval_notes = Column(Text, nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    invitation_mode = Column(String(20), nullable=False, default=InvitationMode.INVITE_ONLY.value)
    allow_self_check_in = Column(Boolean, nullable=False, default=True)

    attendance_code = Column(String(64), nullable=True)
    attendance_code_expires_at = Column(DateTime(timezone=True), nullable=True)

    finalized_at = Column(DateTime(timezone=True), nullable=True)
    report = Column(JSON, nullable=True)
    report_sent_at = Column(DateTime(timezone=True), nullable=True)

    # Metadata
    version = Column(Integer, nullable=False, default=1)  # For optimistic locking
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint('capacity >= 0', name='check_event_capacity_non_negative'),
        CheckConstraint('version > 0', name='check_event_version_positive'),
        Index('idx_event_approval_status', 'approval_status', 'status'),
    )

    def __repr__(self):
        return f"<Event(id={self.id}, name='{self.name}', status='{self.status}')>"


class EventInvitation(Base):
    """
    Per (event, invitee) invitation tracking the offered role and the response.
    """
    __tablename__ = "event_invitations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    invitee_id = Column(Integer, nullable=False, index=True)
    invited_by = Column(Integer, nullable=False)
    role_at_event = Column(String(20), nullable=False, default=RoleAtEvent.ATTENDEE.value)
    status = Column(String(20), nullable=False, default=InvitationStatus.PENDING.value)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint('event_id', 'invitee_id', name='uq_invitation_event_invitee'),
    )

    def __repr__(self):
        return f"<EventInvitation(id={self.id}, event_id={self.event_id}, invitee_id={self.invitee_id}, status='{self.status}')>"


class Feedback(Base):
    """
    Attendee feedback and rating for an event.
    """
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='check_feedback_rating_range'),
    )

    def __repr__(self):
        return f"<Feedback(id={self.id}, event_id={self.event_id}, rating={self.rating})>"
