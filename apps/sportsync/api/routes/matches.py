"""Match lifecycle and participation route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, get_current_user
from sportsync.models.schemas import (
    UserRecord,
    MatchCreate,
    MatchUpdate,
    MatchResponse,
    JoinByCodeRequest,
    ConfirmationResponse,
    ParticipantResponse,
    ParticipantReviewRequest,
    AttendanceRequest,
    MessageResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import match_service
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches", response_model=List[MatchResponse])
async def list_matches(
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Public matches plus private ones the caller created or takes part in."""
    try:
        return await match_service.list_visible_matches(repo, current_user)
    except Exception as e:
        raise internal_error("listing matches", e)


@router.get("/api/matches/mine", response_model=List[MatchResponse])
async def list_my_matches(
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Matches created by the caller."""
    try:
        return await match_service.list_my_matches(repo, current_user)
    except Exception as e:
        raise internal_error("listing matches", e)


@router.post("/api/matches", response_model=MatchResponse)
async def create_match(
    payload: MatchCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """
    Create a match. Subject to the caller's plan quota; a refusal is a 403
    carrying the quota evaluation in `detail.limits`.
    """
    try:
        return await match_service.create_match(repo, current_user, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("creating match", e)


@router.post("/api/matches/join-by-code", response_model=MatchResponse)
async def join_by_code(
    payload: JoinByCodeRequest,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Join a match through its invite code (case-insensitive)."""
    try:
        return await match_service.join_by_code(repo, current_user, payload.code)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("joining match", e)


@router.get("/api/matches/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Private matches are a 404 for users outside them."""
    try:
        return await match_service.get_visible_match(repo, current_user, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching match", e)


@router.put("/api/matches/{match_id}", response_model=MatchResponse)
async def update_match(
    match_id: int,
    payload: MatchUpdate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Partial update. Creator or admin only."""
    try:
        return await match_service.update_match(repo, current_user, match_id, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("updating match", e)


@router.delete("/api/matches/{match_id}", response_model=MessageResponse)
async def delete_match(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Delete a match with its confirmations, statistics, invitations and finances."""
    try:
        await match_service.delete_match(repo, current_user, match_id)
        return MessageResponse(success=True, message="Match deleted")
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("deleting match", e)


@router.post("/api/matches/{match_id}/confirm", response_model=ConfirmationResponse)
async def confirm_attendance(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Confirm the caller's participation."""
    try:
        return await match_service.set_confirmation(repo, current_user, match_id, True)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("confirming attendance", e)


@router.delete("/api/matches/{match_id}/confirm", response_model=ConfirmationResponse)
async def cancel_attendance(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Withdraw the caller's participation."""
    try:
        return await match_service.set_confirmation(repo, current_user, match_id, False)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("cancelling attendance", e)


@router.get("/api/matches/{match_id}/confirmations", response_model=List[ConfirmationResponse])
async def get_confirmations(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await match_service.list_confirmations(repo, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching confirmations", e)


@router.get("/api/matches/{match_id}/participants", response_model=List[ParticipantResponse])
async def get_participants(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Confirmations with each participant's public profile."""
    try:
        return await match_service.list_participants(repo, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching participants", e)


@router.put(
    "/api/matches/{match_id}/participants/{user_id}", response_model=ConfirmationResponse
)
async def review_participant(
    match_id: int,
    user_id: int,
    payload: ParticipantReviewRequest,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Approve or reject a participant. Creator, moderator or admin."""
    try:
        return await match_service.review_participant(
            repo, current_user, match_id, user_id, payload.status
        )
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("reviewing participant", e)


@router.put(
    "/api/matches/{match_id}/attendance/{user_id}", response_model=ConfirmationResponse
)
async def record_attendance(
    match_id: int,
    user_id: int,
    payload: AttendanceRequest,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Record whether a participant actually showed up."""
    try:
        return await match_service.set_attendance(
            repo, current_user, match_id, user_id, payload.attended
        )
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("recording attendance", e)
