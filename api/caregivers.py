"""
Caregivers API Router
Endpoints for inviting, accepting and removing caregivers
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from api.schemas.common import ERROR_RESPONSES, Envelope, ListEnvelope
from api.schemas.caregiver import (
    CaregiverInvite,
    RelationshipResponse,
    CaregiverEntry,
    PendingInvitation,
)
import models
from services.caregiver_service import caregiver_service


router = APIRouter(prefix="/caregivers", tags=["caregivers"], responses=ERROR_RESPONSES)


@router.get("", response_model=ListEnvelope[CaregiverEntry])
async def list_caregivers(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The requester's open caregiver relationships, Active or Pending"""
    caregivers = await caregiver_service.list_caregivers(current_user.id, db=db)
    return {"success": True, "count": len(caregivers), "data": caregivers}


@router.post("/invite", response_model=Envelope[RelationshipResponse], status_code=status.HTTP_201_CREATED)
async def invite_caregiver(
    invite: CaregiverInvite,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Invite a registered caregiver by email

    - **email**: The caregiver's account email
    - **relationship**: e.g. family, friend, nurse (default other)
    - **permissions**: Capability map, e.g. {"viewAdherence": false}
    """
    relation = await caregiver_service.invite_caregiver(
        current_user,
        invite.email,
        relationship_type=invite.relationship,
        permissions=invite.permissions,
        db=db
    )
    return {"success": True, "message": "Invitation sent", "data": relation}


@router.get("/pending", response_model=ListEnvelope[PendingInvitation])
async def list_pending_invitations(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Invitations waiting on the requester"""
    invitations = await caregiver_service.list_pending_invitations(current_user.id, db=db)
    return {"success": True, "count": len(invitations), "data": invitations}


@router.post("/{relationship_id}/accept", response_model=Envelope[RelationshipResponse])
async def accept_invitation(
    relationship_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Accept a pending invitation addressed to the requester"""
    relation = await caregiver_service.accept_invitation(relationship_id, current_user, db=db)
    return {"success": True, "message": "Invitation accepted", "data": relation}


@router.post("/{relationship_id}/decline", response_model=Envelope[RelationshipResponse])
async def decline_invitation(
    relationship_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Decline a pending invitation addressed to the requester"""
    relation = await caregiver_service.decline_invitation(relationship_id, current_user, db=db)
    return {"success": True, "message": "Invitation declined", "data": relation}


@router.delete("/{relationship_id}", response_model=Envelope[RelationshipResponse])
async def remove_caregiver(
    relationship_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Remove one of the requester's caregivers, by relationship id or by
    caregiver user id
    """
    relation = await caregiver_service.remove_caregiver(relationship_id, current_user, db=db)
    return {"success": True, "message": "Caregiver removed", "data": relation}
