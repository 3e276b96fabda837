"""
Dashboard statistics endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from ...core.roles import Actor
from ...schemas.stats import DeanSummary, CoordinatorSummary, DeanOverview
from ...services import stats_service
from ...services.event_manager import EventLifecycleManager
from ..dependencies import get_current_dean, get_current_staff, get_event_manager

router = APIRouter(prefix="/stats", tags=["Statistics"])


@router.get("/summary", response_model=DeanSummary)
async def dean_summary(
    current_actor: Actor = Depends(get_current_dean),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        return stats_service.dean_summary(manager.event_rollup())
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute statistics: {str(e)}"
        )


@router.get("/coordinator", response_model=CoordinatorSummary)
async def coordinator_summary(
    current_actor: Actor = Depends(get_current_staff),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Performance snapshot for the events the caller coordinates."""
    try:
        return stats_service.coordinator_summary(manager.event_rollup(coordinator_id=current_actor.id))
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute statistics: {str(e)}"
        )


@router.get("/overview", response_model=DeanOverview)
async def dean_overview(
    current_actor: Actor = Depends(get_current_dean),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        return stats_service.dean_overview(
            manager.event_rollup(), manager.recent_events(stats_service.RECENT_EVENTS_LIMIT)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute statistics: {str(e)}"
        )
