"""
Event management endpoints: CRUD, approval and coordinator assignment.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...core.errors import EventWorkflowError
from ...core.roles import Actor
from ...models.event import EventStatus, ApprovalStatus, EventCategory
from ...schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventListResponse, MessageResponse,
    ApprovalRequest, AssignCoordinatorsRequest
)
from ...services.event_manager import EventLifecycleManager
from ..dependencies import get_current_actor, get_event_manager

router = APIRouter(prefix="/events", tags=["Events"])


def to_response(event) -> EventResponse:
    return EventResponse.model_validate(event)


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """
    Create a new event.

    Deans, and requests with ``requires_approval`` off, get an approved event;
    coordinators otherwise get a pending draft awaiting a dean.
    """
    try:
        event = await manager.create_event(current_actor, event_data)
        return to_response(event)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create event: {str(e)}"
        )


@router.get("", response_model=EventListResponse)
async def list_events(
    skip: int = Query(0, ge=0, description="Number of events to skip"),
    limit: int = Query(100, ge=1, le=500, description="Number of events to return"),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    approval_status: Optional[ApprovalStatus] = Query(None),
    school: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    category: Optional[EventCategory] = Query(None),
    upcoming: bool = Query(False, description="Only events dated from now on"),
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        events, total = manager.list_events(
            skip=skip,
            limit=limit,
            status=status_filter.value if status_filter else None,
            approval_status=approval_status.value if approval_status else None,
            school=school,
            department=department,
            category=category.value if category else None,
            upcoming_only=upcoming,
        )
        return EventListResponse(events=[to_response(e) for e in events], total=total)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve events: {str(e)}"
        )


@router.get("/mine", response_model=List[EventResponse])
async def my_events(
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Events the caller is registered for."""
    try:
        return [to_response(e) for e in manager.my_events(current_actor)]

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve events: {str(e)}"
        )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        return to_response(manager.get_event(event_id))

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve event: {str(e)}"
        )


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    event_data: EventUpdate,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """
    Update an event.

    Changing an approval-relevant field on an approved event sends it back for review.
    """
    try:
        event = await manager.update_event(current_actor, event_id, event_data)
        return to_response(event)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update event: {str(e)}"
        )


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        await manager.delete_event(current_actor, event_id)
        return MessageResponse(message="Event deleted")

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete event: {str(e)}"
        )


@router.patch("/{event_id}/approval", response_model=EventResponse)
async def decide_approval(
    event_id: int,
    approval: ApprovalRequest,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Approve or reject an event (deans only)."""
    try:
        event = await manager.decide_approval(current_actor, event_id, approval.decision, approval.notes)
        return to_response(event)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update approval: {str(e)}"
        )


@router.post("/{event_id}/coordinators", response_model=EventResponse)
async def assign_coordinators(
    event_id: int,
    assignment: AssignCoordinatorsRequest,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        event = await manager.assign_coordinators(current_actor, event_id, assignment.coordinator_ids)
        return to_response(event)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to assign coordinators: {str(e)}"
        )
