"""
Pydantic schemas for invitations, registration and user summaries.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.event import InvitationStatus, RoleAtEvent, EventStatus
from .event import ensure_utc


class InvitationRecord(BaseModel):
    """Immutable snapshot of an invitation row."""
    id: Optional[int] = None
    event_id: int
    invitee_id: int
    invited_by: int
    role_at_event: RoleAtEvent = RoleAtEvent.ATTENDEE
    status: InvitationStatus = InvitationStatus.PENDING
    responded_at: Optional[datetime] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        frozen = True
        from_attributes = True

    @field_validator("responded_at", "created_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v):
        return ensure_utc(v)


class UserSummary(BaseModel):
    """Public identity of a user referenced by an event or invitation."""
    id: int
    name: str
    email: str
    role: str
    school: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None

    class Config:
        from_attributes = True


class EventSummary(BaseModel):
    id: int
    name: str
    date: datetime
    location: str
    status: EventStatus

    class Config:
        from_attributes = True


class InvitationResponse(BaseModel):
    """Invitation with the invitee, inviter and event resolved."""
    id: int
    event_id: int
    invitee_id: int
    invited_by: int
    role_at_event: RoleAtEvent
    status: InvitationStatus
    responded_at: Optional[datetime] = None
    message: Optional[str] = None
    invitee: Optional[UserSummary] = None
    inviter: Optional[UserSummary] = None
    event: Optional[EventSummary] = None


class InviteeSpec(BaseModel):
    """One invitee, identified by user id or by email."""
    user_id: Optional[int] = None
    email: Optional[str] = None
    role_at_event: RoleAtEvent = RoleAtEvent.ATTENDEE
    message: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_identifier(cls, data):
        """A bare integer is a user id, a bare string an email."""
        if isinstance(data, bool):
            return data
        if isinstance(data, int):
            return {"user_id": data}
        if isinstance(data, str):
            return {"email": data}
        return data

    @field_validator("role_at_event", mode="before")
    @classmethod
    def validate_role_at_event(cls, v):
        return RoleAtEvent.COORDINATOR if v in (RoleAtEvent.COORDINATOR, "coordinator") else RoleAtEvent.ATTENDEE

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v is None:
            return None
        v = v.strip().lower()
        return v or None


class InviteRequest(BaseModel):
    invitees: List[InviteeSpec] = Field(default_factory=list)


class RespondRequest(BaseModel):
    """Invitee response; validated against accepted/declined by the workflow."""
    status: str = Field("", description="accepted or declined")


class RegistrationResponse(BaseModel):
    message: str
    event_id: int
    already_registered: bool = False
