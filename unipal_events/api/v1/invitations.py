"""
Invitation and registration endpoints.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...core.errors import EventWorkflowError
from ...core.roles import Actor
from ...models.event import InvitationStatus
from ...schemas.invitation import InviteRequest, InvitationResponse, RespondRequest, RegistrationResponse
from ...services.event_manager import EventLifecycleManager
from ..dependencies import get_current_actor, get_event_manager

router = APIRouter(tags=["Invitations"])


@router.get("/events/{event_id}/invitations", response_model=List[InvitationResponse])
async def list_event_invitations(
    event_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """All invitations for an event (managers only)."""
    try:
        invitations = manager.list_invitations(current_actor, event_id)
        return manager.resolve_invitations(invitations)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve invitations: {str(e)}"
        )


@router.post(
    "/events/{event_id}/invitations",
    response_model=List[InvitationResponse],
    status_code=status.HTTP_201_CREATED
)
async def invite_participants(
    event_id: int,
    invite_request: InviteRequest,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """
    Invite users by id or email.

    Unknown invitees are skipped; the request fails only if none resolve.
    """
    try:
        invitations = await manager.invite(current_actor, event_id, invite_request.invitees)
        return manager.resolve_invitations(invitations)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to invite participants: {str(e)}"
        )


@router.get("/invitations/mine", response_model=List[InvitationResponse])
async def my_invitations(
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        invitations = manager.my_invitations(
            current_actor, status_filter.value if status_filter else None
        )
        return manager.resolve_invitations(invitations)

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve invitations: {str(e)}"
        )


@router.post("/invitations/{invitation_id}/respond", response_model=InvitationResponse)
async def respond_to_invitation(
    invitation_id: int,
    response: RespondRequest,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Accept or decline an invitation addressed to the caller."""
    try:
        invitation = await manager.respond_to_invitation(current_actor, invitation_id, response.status)
        return manager.resolve_invitations([invitation])[0]

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to respond to invitation: {str(e)}"
        )


@router.post("/invitations/{invitation_id}/revoke", response_model=InvitationResponse)
async def revoke_invitation(
    invitation_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    try:
        invitation = await manager.revoke_invitation(current_actor, invitation_id)
        return manager.resolve_invitations([invitation])[0]

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to revoke invitation: {str(e)}"
        )


@router.post("/events/{event_id}/register", response_model=RegistrationResponse)
async def register_for_event(
    event_id: int,
    current_actor: Actor = Depends(get_current_actor),
    manager: EventLifecycleManager = Depends(get_event_manager)
):
    """Self-registration; invite-only events need a live invitation."""
    try:
        event, already_registered = await manager.register(current_actor, event_id)
        return RegistrationResponse(
            message="Already registered" if already_registered else "Registered successfully",
            event_id=event.id,
            already_registered=already_registered
        )

    except (HTTPException, EventWorkflowError):
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to register: {str(e)}"
        )
