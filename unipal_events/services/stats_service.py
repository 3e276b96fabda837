"""
Dashboard statistics computed from grouped event totals.

The repository aggregates events per (approval status, status, department) in
SQL; the functions here fold those groups into the dashboard figures.
"""

from typing import Dict, List, Sequence

from ..models.event import EventStatus, ApprovalStatus
from ..schemas.event import EventRecord
from ..schemas.stats import (
    EventRollup, DeanSummary, CoordinatorSummary, DeanOverview, DepartmentStat, RecentEvent
)

TOP_DEPARTMENTS_LIMIT = 5
RECENT_EVENTS_LIMIT = 6
DEFAULT_DEPARTMENT = "General"


def _event_count(rollups: Sequence[EventRollup]) -> int:
    return sum(r.events for r in rollups)


def _attendance(rollups: Sequence[EventRollup]) -> int:
    return sum(r.attendance for r in rollups)


def _completed(rollups: Sequence[EventRollup]) -> int:
    return sum(r.events for r in rollups if r.status == EventStatus.COMPLETED)


def dean_summary(rollups: Sequence[EventRollup]) -> DeanSummary:
    return DeanSummary(
        events=_event_count(rollups),
        attendance=_attendance(rollups),
        completed_events=_completed(rollups),
    )


def coordinator_summary(rollups: Sequence[EventRollup]) -> CoordinatorSummary:
    """Snapshot of the events a coordinator is assigned to."""
    return CoordinatorSummary(
        assigned_events=_event_count(rollups),
        attendance=_attendance(rollups),
        completed_events=_completed(rollups),
    )


def top_departments(rollups: Sequence[EventRollup], limit: int = TOP_DEPARTMENTS_LIMIT) -> List[DepartmentStat]:
    """Approved events grouped by department, ranked by attendance then event count."""
    totals: Dict[str, Dict[str, int]] = {}
    for rollup in rollups:
        if rollup.approval_status != ApprovalStatus.APPROVED:
            continue
        department = (rollup.department or "").strip() or DEFAULT_DEPARTMENT
        bucket = totals.setdefault(department, {"events": 0, "attendance": 0})
        bucket["events"] += rollup.events
        bucket["attendance"] += rollup.attendance

    ranked = sorted(totals.items(), key=lambda item: (-item[1]["attendance"], -item[1]["events"], item[0]))
    return [
        DepartmentStat(department=name, events=values["events"], attendance=values["attendance"])
        for name, values in ranked[:limit]
    ]


def dean_overview(rollups: Sequence[EventRollup], recent_events: Sequence[EventRecord]) -> DeanOverview:
    approved = [r for r in rollups if r.approval_status == ApprovalStatus.APPROVED]

    return DeanOverview(
        pending_approvals=sum(r.events for r in rollups if r.approval_status == ApprovalStatus.PENDING),
        rejected_approvals=sum(r.events for r in rollups if r.approval_status == ApprovalStatus.REJECTED),
        upcoming_approved=sum(
            r.events for r in approved if r.status in (EventStatus.SCHEDULED, EventStatus.ONGOING)
        ),
        total_attendance=_attendance(approved),
        top_departments=top_departments(rollups),
        recent_events=[
            RecentEvent(
                id=e.id,
                name=e.name,
                date=e.date,
                status=e.status,
                approval_status=e.approval_status,
                school=e.school,
                department=e.department,
                created_at=e.created_at,
            )
            for e in recent_events[:RECENT_EVENTS_LIMIT]
        ],
    )
