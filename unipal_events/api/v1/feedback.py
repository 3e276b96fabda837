"""
Feedback endpoints.
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status

from ...core.errors import EventWorkflowError
from ...core.roles import Actor
from ...schemas.attendance import FeedbackCreate, FeedbackResponse
from ...services.event_manager import EventLifecycleManager
from ..dependencies import get_current_actor, get_event_manager

router = APIRouter(prefix="/events/{event_id}/feedback", tags=["Feedback"])


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    event_id: int,
    feedback_data: FeedbackCreate,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Rate an attended event from 1 to 5."""
    try:
        feedback = manager.submit_feedback(
            current_actor, event_id, feedback_data.rating, feedback_data.comments
        )
        return FeedbackResponse.model_validate(feedback)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to submit feedback: {str(e)}"
        )


@router.get("", response_model=List[FeedbackResponse])
async def list_feedback(
    event_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        return [FeedbackResponse.model_validate(f) for f in manager.list_feedback(current_actor, event_id)]

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve feedback: {str(e)}"
        )
