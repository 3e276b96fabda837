"""
Pydantic schemas for dashboard statistics.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from ..models.event import EventStatus, ApprovalStatus


class EventRollup(BaseModel):
    """Event and attendance totals for one (approval status, status, department) group."""
    approval_status: ApprovalStatus
    status: EventStatus
    department: Optional[str] = None
    events: int = 0
    attendance: int = 0

    class Config:
        frozen = True


class DeanSummary(BaseModel):
    events: int
    attendance: int
    completed_events: int


class CoordinatorSummary(BaseModel):
    assigned_events: int
    attendance: int
    completed_events: int


class DepartmentStat(BaseModel):
    department: str
    events: int
    attendance: int


class RecentEvent(BaseModel):
    id: int
    name: str
    date: datetime
    status: EventStatus
    approval_status: ApprovalStatus
    school: Optional[str] = None
    department: Optional[str] = None
    created_at: Optional[datetime] = None


class DeanOverview(BaseModel):
    """Adoption figures for the dean dashboard."""
    pending_approvals: int
    rejected_approvals: int
    upcoming_approved: int
    total_attendance: int
    top_departments: List[DepartmentStat]
    recent_events: List[RecentEvent]
