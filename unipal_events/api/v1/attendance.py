"""
Attendance code, check-in and finalisation endpoints.
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status

from ...core.errors import EventWorkflowError
from ...core.roles import Actor
from ...schemas.attendance import (
    AttendanceCodeResponse, CheckInRequest, CheckInResponse, RecordAttendanceRequest,
    FinalizeRequest, FinalizeResponse
)
from ...schemas.invitation import UserSummary
from ...services.event_manager import EventLifecycleManager
from ..dependencies import get_current_actor, get_event_manager

router = APIRouter(prefix="/events/{event_id}", tags=["Attendance"])


@router.post("/attendance-code", response_model=AttendanceCodeResponse)
async def generate_attendance_code(
    event_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Issue a fresh attendance code valid for five minutes."""
    try:
        event = await manager.generate_attendance_code(current_actor, event_id)
        return AttendanceCodeResponse(
            code=event.attendance_code,
            expires_at=event.attendance_code_expires_at
        )

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate attendance code: {str(e)}"
        )


@router.post("/check-in", response_model=CheckInResponse)
async def check_in(
    event_id: int,
    check_in_request: CheckInRequest,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        event, already_checked_in = await manager.check_in(current_actor, event_id, check_in_request.code)
        return CheckInResponse(
            message="Already checked in" if already_checked_in else "Checked in",
            event_id=event.id,
            user_id=current_actor.id,
            already_checked_in=already_checked_in
        )

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check in: {str(e)}"
        )


@router.post("/attendance", response_model=CheckInResponse)
async def record_attendance(
    event_id: int,
    record_request: RecordAttendanceRequest,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Mark a registered attendee present on their behalf."""
    try:
        event, already_checked_in = await manager.record_attendance(
            current_actor, event_id, record_request.user_id
        )
        return CheckInResponse(
            message="Attendance already marked" if already_checked_in else "Attendance marked",
            event_id=event.id,
            user_id=record_request.user_id,
            already_checked_in=already_checked_in
        )

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to record attendance: {str(e)}"
        )


@router.get("/attendance", response_model=List[UserSummary])
async def list_attendance(
    event_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        return [UserSummary.model_validate(user) for user in manager.list_attendance(current_actor, event_id)]

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve attendance: {str(e)}"
        )


@router.post("/finalize", response_model=FinalizeResponse)
async def finalize_event(
    event_id: int,
    finalize_request: FinalizeRequest,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """
    Complete the event and email its report to the deans.

    A report that was already sent is returned as-is unless ``force_resend`` is set.
    """
    try:
        event, notified = await manager.finalize(
            current_actor, event_id, finalize_request.notes, finalize_request.force_resend
        )
        if notified:
            message = "Event finalised and report sent to deans"
        elif event.report_sent_at and not finalize_request.force_resend:
            message = "Report already sent to deans"
        else:
            message = "Event finalised; no dean recipients found"
        return FinalizeResponse(message=message, report=event.report, notified=notified)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to finalise event: {str(e)}"
        )
