"""
Pydantic schemas for attendance codes, check-in, finalisation and feedback.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from .event import EventReport


class AttendanceCodeResponse(BaseModel):
    code: str
    expires_at: datetime


class CheckInRequest(BaseModel):
    code: str = Field("", max_length=128)


class RecordAttendanceRequest(BaseModel):
    user_id: int = Field(..., gt=0)


class CheckInResponse(BaseModel):
    message: str
    event_id: int
    user_id: int
    already_checked_in: bool = False


class FinalizeRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=5000)
    force_resend: bool = False


class FinalizeResponse(BaseModel):
    message: str
    report: Optional[EventReport] = None
    notified: List[int] = Field(default_factory=list)


class FeedbackCreate(BaseModel):
    """Rating range is enforced by the workflow so it reports InvalidInput."""
    rating: int
    comments: Optional[str] = Field(None, max_length=5000)


class FeedbackResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    rating: int
    comments: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
