"""Match invitation route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, get_current_user
from sportsync.models.schemas import (
    UserRecord,
    InvitationCreate,
    InvitationResponse,
    InvitationResponseRequest,
)
from sportsync.repositories.base import Repository
from sportsync.services import invitation_service
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches/{match_id}/invitations", response_model=List[InvitationResponse])
async def get_match_invitations(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Invitations of a match visible to the caller."""
    try:
        return await invitation_service.list_match_invitations(repo, current_user, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching invitations", e)


@router.post("/api/matches/{match_id}/invitations", response_model=InvitationResponse)
async def create_invitation(
    match_id: int,
    payload: InvitationCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Invite a registered user or an email address to a match."""
    try:
        return await invitation_service.invite_user(repo, current_user, match_id, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("sending invitation", e)


@router.get("/api/invitations", response_model=List[InvitationResponse])
async def get_my_invitations(
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Invitations addressed to the caller."""
    try:
        return await invitation_service.list_user_invitations(repo, current_user)
    except Exception as e:
        raise internal_error("fetching invitations", e)


@router.put("/api/invitations/{invitation_id}", response_model=InvitationResponse)
async def respond_to_invitation(
    invitation_id: int,
    payload: InvitationResponseRequest,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Accept or reject an invitation. Accepting confirms the invitee."""
    try:
        return await invitation_service.respond_to_invitation(
            repo, current_user, invitation_id, payload.status
        )
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("responding to invitation", e)
