"""Social feed route handlers: posts, likes and comments."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, get_current_user
from sportsync.models.schemas import (
    UserRecord,
    PostCreate,
    PostUpdate,
    PostResponse,
    CommentCreate,
    CommentResponse,
    MessageResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import social_service
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/posts", response_model=List[PostResponse])
async def list_posts(
    match_id: Optional[int] = None,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Feed posts, newest first, optionally for one match."""
    try:
        return await social_service.list_posts(repo, match_id=match_id)
    except Exception as e:
        raise internal_error("fetching posts", e)


@router.post("/api/posts", response_model=PostResponse)
async def create_post(
    payload: PostCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await social_service.create_post(repo, current_user, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("creating post", e)


@router.put("/api/posts/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    payload: PostUpdate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Edit a post. Author, moderator or admin."""
    try:
        return await social_service.update_post(repo, current_user, post_id, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("updating post", e)


@router.delete("/api/posts/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        await social_service.delete_post(repo, current_user, post_id)
        return MessageResponse(success=True, message="Post deleted")
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("deleting post", e)


@router.post("/api/posts/{post_id}/like", response_model=PostResponse)
async def toggle_like(
    post_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Like the post, or unlike it when the caller already does."""
    try:
        return await social_service.toggle_like(repo, current_user, post_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("liking post", e)


@router.get("/api/posts/{post_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    post_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await social_service.list_comments(repo, post_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching comments", e)


@router.post("/api/posts/{post_id}/comments", response_model=CommentResponse)
async def add_comment(
    post_id: int,
    payload: CommentCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await social_service.add_comment(repo, current_user, post_id, payload.content)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("adding comment", e)
