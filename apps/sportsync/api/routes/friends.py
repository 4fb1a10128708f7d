"""Friend system route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, get_current_user
from sportsync.models.schemas import (
    UserRecord,
    UserResponse,
    FriendRequestCreate,
    FriendRequestUpdate,
    FriendshipResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import friend_service
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/friends", response_model=List[UserResponse])
async def get_friends(
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Accepted friends as public profiles."""
    try:
        return await friend_service.get_friends(repo, current_user.id)
    except Exception as e:
        raise internal_error("fetching friends", e)


@router.post("/api/friends", response_model=FriendshipResponse)
@router.post("/api/friend-requests", response_model=FriendshipResponse)
async def send_friend_request(
    payload: FriendRequestCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Send a friend request to another user."""
    try:
        return await friend_service.send_friend_request(repo, current_user, payload.user_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("sending friend request", e)


@router.get("/api/friend-requests", response_model=List[FriendshipResponse])
async def get_friend_requests(
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Pending requests addressed to the caller, with the requester's profile."""
    try:
        return await friend_service.get_incoming_requests(repo, current_user.id)
    except Exception as e:
        raise internal_error("fetching friend requests", e)


@router.put("/api/friend-requests/{request_id}", response_model=FriendshipResponse)
async def respond_to_friend_request(
    request_id: int,
    payload: FriendRequestUpdate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Accept or reject a pending friend request."""
    try:
        return await friend_service.respond_to_friend_request(
            repo, current_user, request_id, payload.status
        )
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("answering friend request", e)
