"""
Pydantic schemas for event records and event-related API operations.

``EventRecord`` is the immutable value the lifecycle functions operate on;
the request schemas normalise loosely-shaped client input before it reaches them.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.event import (
    EventStatus, ApprovalStatus, InvitationMode, EventCategory, EventFormat, DeliveryMode
)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalise_string_list(value: Any) -> List[str]:
    """Accept a list or a comma-delimited string; trim, drop blanks and duplicates."""
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        return []

    result = []
    for item in items:
        if isinstance(item, str):
            item = item.strip()
        if item and item not in result:
            result.append(item)
    return result


def normalise_agenda(value: Any) -> List[Dict[str, Any]]:
    """Drop agenda placeholders with no title, times or speaker."""
    if not isinstance(value, (list, tuple)):
        return []
    entries = []
    for item in value:
        if isinstance(item, BaseModel):
            item = item.model_dump()
        if not isinstance(item, dict):
            continue
        if not any(item.get(key) for key in ("title", "start_time", "end_time", "speaker")):
            continue
        entries.append(item)
    return entries


def normalise_contacts(value: Any) -> List[Dict[str, Any]]:
    """Drop contact placeholders with no name, email or phone."""
    if not isinstance(value, (list, tuple)):
        return []
    entries = []
    for item in value:
        if isinstance(item, BaseModel):
            item = item.model_dump()
        if not isinstance(item, dict):
            continue
        if not any(item.get(key) for key in ("name", "email", "phone")):
            continue
        entries.append(item)
    return entries


def normalise_invitation_mode(value: Any) -> InvitationMode:
    """Anything other than "open" means invite-only."""
    if value == InvitationMode.OPEN or value == "open":
        return InvitationMode.OPEN
    return InvitationMode.INVITE_ONLY


class AgendaItem(BaseModel):
    """Single agenda slot."""
    title: str = ""
    start_time: str = ""
    end_time: str = ""
    speaker: str = ""
    location: str = ""

    class Config:
        frozen = True


class ImportantContact(BaseModel):
    """Point of contact listed on the event page."""
    name: str = ""
    role: str = ""
    email: str = ""
    phone: str = ""

    class Config:
        frozen = True


class Budget(BaseModel):
    currency: str = "INR"
    amount: float = 0.0

    class Config:
        frozen = True


class EventReport(BaseModel):
    """Post-event summary generated on finalisation."""
    generated_at: datetime
    attendee_count: int = 0
    feedback_count: int = 0
    average_rating: float = 0.0
    notes: Optional[str] = None
    recipients: Tuple[int, ...] = ()

    class Config:
        frozen = True

    @field_validator("generated_at")
    @classmethod
    def validate_generated_at(cls, v):
        return ensure_utc(v)


class EventRecord(BaseModel):
    """
    Immutable snapshot of an event document.
    Transitions return a new record via ``model_copy(update=...)``.
    """
    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    date: datetime
    time: str = ""
    location: str
    capacity: int = 0
    banner: Optional[str] = None
    school: Optional[str] = None
    department: Optional[str] = None
    category: EventCategory = EventCategory.OTHER
    event_format: EventFormat = EventFormat.OTHER
    delivery_mode: DeliveryMode = DeliveryMode.IN_PERSON
    tags: Tuple[str, ...] = ()
    sponsors: Tuple[str, ...] = ()
    budget: Budget = Budget()
    agenda: Tuple[AgendaItem, ...] = ()
    important_contacts: Tuple[ImportantContact, ...] = ()

    created_by: int
    coordinators: Tuple[int, ...] = ()
    attendees: Tuple[int, ...] = ()
    attendance: Tuple[int, ...] = ()

    status: EventStatus = EventStatus.DRAFT
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    requires_approval: bool = True
    approval_notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None

    invitation_mode: InvitationMode = InvitationMode.INVITE_ONLY
    allow_self_check_in: bool = True

    attendance_code: Optional[str] = None
    attendance_code_expires_at: Optional[datetime] = None

    finalized_at: Optional[datetime] = None
    report: Optional[EventReport] = None
    report_sent_at: Optional[datetime] = None

    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        frozen = True
        from_attributes = True

    @field_validator(
        "date", "approved_at", "attendance_code_expires_at", "finalized_at",
        "report_sent_at", "created_at", "updated_at"
    )
    @classmethod
    def validate_timestamps(cls, v):
        return ensure_utc(v)

    @field_validator("budget", mode="before")
    @classmethod
    def validate_budget(cls, v):
        return v or {}

    @property
    def is_approved(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED

    @property
    def is_completed(self) -> bool:
        return self.status == EventStatus.COMPLETED


class EventCreate(BaseModel):
    """Schema for creating a new event."""
    name: str = Field(..., min_length=1, max_length=255, description="Event name")
    description: Optional[str] = Field(None, description="Event description")
    date: datetime = Field(..., description="Event date")
    time: str = Field("", max_length=50, description="Human readable start time")
    location: str = Field(..., min_length=1, max_length=255, description="Event location")
    capacity: int = Field(0, ge=0, description="Event capacity")
    banner: Optional[str] = Field(None, max_length=500)
    school: Optional[str] = None
    department: Optional[str] = None
    category: EventCategory = EventCategory.OTHER
    event_format: EventFormat = EventFormat.OTHER
    delivery_mode: DeliveryMode = DeliveryMode.IN_PERSON
    tags: List[str] = Field(default_factory=list)
    sponsors: List[str] = Field(default_factory=list)
    budget: Budget = Field(default_factory=Budget)
    agenda: List[AgendaItem] = Field(default_factory=list)
    important_contacts: List[ImportantContact] = Field(default_factory=list)
    invitation_mode: InvitationMode = InvitationMode.INVITE_ONLY
    allow_self_check_in: bool = True
    status: Optional[EventStatus] = Field(None, description="Requested status when created approved")
    coordinator_ids: List[int] = Field(default_factory=list)
    requires_approval: bool = True
    approval_notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_title_alias(cls, data):
        """Older clients send ``title`` instead of ``name``."""
        if isinstance(data, dict) and not data.get("name") and data.get("title"):
            data = {**data, "name": data["title"]}
        return data

    @field_validator("tags", "sponsors", mode="before")
    @classmethod
    def validate_string_lists(cls, v):
        return normalise_string_list(v)

    @field_validator("agenda", mode="before")
    @classmethod
    def validate_agenda(cls, v):
        return normalise_agenda(v)

    @field_validator("important_contacts", mode="before")
    @classmethod
    def validate_contacts(cls, v):
        return normalise_contacts(v)

    @field_validator("invitation_mode", mode="before")
    @classmethod
    def validate_invitation_mode(cls, v):
        return normalise_invitation_mode(v)

    @field_validator("allow_self_check_in", mode="before")
    @classmethod
    def validate_allow_self_check_in(cls, v):
        return v is not False

    @field_validator("budget", mode="before")
    @classmethod
    def validate_budget(cls, v):
        return v or {}

    @field_validator("coordinator_ids", mode="before")
    @classmethod
    def validate_coordinator_ids(cls, v):
        return v or []


class BudgetUpdate(BaseModel):
    currency: Optional[str] = None
    amount: Optional[float] = None


class EventUpdate(BaseModel):
    """
    Schema for updating an event.
    Only fields present in the request are applied.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    date: Optional[datetime] = None
    time: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    capacity: Optional[int] = Field(None, ge=0)
    banner: Optional[str] = Field(None, max_length=500)
    school: Optional[str] = None
    department: Optional[str] = None
    category: Optional[EventCategory] = None
    event_format: Optional[EventFormat] = None
    delivery_mode: Optional[DeliveryMode] = None
    tags: Optional[List[str]] = None
    sponsors: Optional[List[str]] = None
    budget: Optional[BudgetUpdate] = None
    agenda: Optional[List[AgendaItem]] = None
    important_contacts: Optional[List[ImportantContact]] = None
    invitation_mode: Optional[InvitationMode] = None
    allow_self_check_in: Optional[bool] = None
    status: Optional[EventStatus] = None
    coordinator_ids: Optional[List[int]] = None
    requires_approval: Optional[bool] = None

    @field_validator("tags", "sponsors", mode="before")
    @classmethod
    def validate_string_lists(cls, v):
        return normalise_string_list(v)

    @field_validator("agenda", mode="before")
    @classmethod
    def validate_agenda(cls, v):
        return normalise_agenda(v)

    @field_validator("important_contacts", mode="before")
    @classmethod
    def validate_contacts(cls, v):
        return normalise_contacts(v)

    @field_validator("invitation_mode", mode="before")
    @classmethod
    def validate_invitation_mode(cls, v):
        return None if v is None else normalise_invitation_mode(v)

    @field_validator("allow_self_check_in", mode="before")
    @classmethod
    def validate_allow_self_check_in(cls, v):
        return None if v is None else v is not False

    @field_validator("budget", mode="before")
    @classmethod
    def validate_budget(cls, v):
        return v or {}


class ApprovalRequest(BaseModel):
    """Dean decision; validated against approved/rejected by the workflow."""
    decision: str = Field("", description="approved or rejected")
    notes: Optional[str] = Field(None, max_length=2000)


class AssignCoordinatorsRequest(BaseModel):
    coordinator_ids: List[int] = Field(default_factory=list)


class EventResponse(BaseModel):
    """Schema for event response. The attendance code itself is never included."""
    id: int
    name: str
    description: Optional[str] = None
    date: datetime
    time: str
    location: str
    capacity: int
    banner: Optional[str] = None
    school: Optional[str] = None
    department: Optional[str] = None
    category: EventCategory
    event_format: EventFormat
    delivery_mode: DeliveryMode
    tags: List[str]
    sponsors: List[str]
    budget: Budget
    agenda: List[AgendaItem]
    important_contacts: List[ImportantContact]
    created_by: int
    coordinators: List[int]
    attendees: List[int]
    attendance: List[int]
    status: EventStatus
    approval_status: ApprovalStatus
    requires_approval: bool
    approval_notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    invitation_mode: InvitationMode
    allow_self_check_in: bool
    attendance_code_expires_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    report: Optional[EventReport] = None
    report_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventListResponse(BaseModel):
    """Schema for event list response."""
    events: List[EventResponse]
    total: int


class MessageResponse(BaseModel):
    """Generic message response schema."""
    message: str
    success: bool = True
