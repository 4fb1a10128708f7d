"""
Social feed service: posts, likes, comments and player ratings.
"""

import logging
from typing import List, Optional

from sportsync.models.schemas import (
    UserRecord,
    PostCreate,
    PostUpdate,
    PostResponse,
    CommentResponse,
    RatingCreate,
    RatingResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import auth_service
from sportsync.services.errors import ForbiddenError, NotFoundError, ValidationFailedError
from sportsync.services.match_service import get_match
from sportsync.services.websocket_manager import EventType, publish
from sportsync.utils.constants import MIN_RATING, MAX_RATING

logger = logging.getLogger(__name__)


async def get_post(repo: Repository, post_id: int) -> PostResponse:
    post = await repo.get_post(post_id)
    if post is None:
        raise NotFoundError("Post not found")
    return post


def _can_edit_post(user: UserRecord, post: PostResponse) -> bool:
    return post.user_id == user.id or auth_service.is_staff(user)


async def create_post(repo: Repository, author: UserRecord, data: PostCreate) -> PostResponse:
    """
    Publish a post, optionally attached to a match, and broadcast NEW_POST.

    Raises:
        ValidationFailedError: empty content
        NotFoundError: match_id given but unknown
    """
    content = data.content.strip()
    if not content:
        raise ValidationFailedError("Post content cannot be empty")
    if data.match_id is not None:
        await get_match(repo, data.match_id)
    post = await repo.create_post(
        user_id=author.id, content=content, match_id=data.match_id, image_url=data.image_url
    )
    await publish(EventType.NEW_POST, post)
    return post


async def list_posts(repo: Repository, match_id: Optional[int] = None) -> List[PostResponse]:
    return await repo.list_posts(match_id=match_id)


async def update_post(
    repo: Repository, user: UserRecord, post_id: int, data: PostUpdate
) -> PostResponse:
    """
    Raises:
        NotFoundError: unknown post
        ForbiddenError: caller is neither the author nor staff
        ValidationFailedError: content set to blank
    """
    post = await get_post(repo, post_id)
    if not _can_edit_post(user, post):
        raise ForbiddenError("You can only edit your own posts")
    fields = data.model_dump(exclude_unset=True)
    if "content" in fields:
        content = (fields["content"] or "").strip()
        if not content:
            raise ValidationFailedError("Post content cannot be empty")
        fields["content"] = content
    if not fields:
        return post
    return await repo.update_post(post_id, **fields)


async def delete_post(repo: Repository, user: UserRecord, post_id: int) -> None:
    post = await get_post(repo, post_id)
    if not _can_edit_post(user, post):
        raise ForbiddenError("You can only delete your own posts")
    await repo.delete_post(post_id)
    logger.info(f"Post {post_id} deleted by user {user.id}")


async def toggle_like(repo: Repository, user: UserRecord, post_id: int) -> PostResponse:
    """Like the post, or unlike it if the user already does."""
    return await repo.toggle_like(post_id, user.id)


async def list_comments(repo: Repository, post_id: int) -> List[CommentResponse]:
    await get_post(repo, post_id)
    return await repo.list_comments_by_post(post_id)


async def add_comment(repo: Repository, user: UserRecord, post_id: int, content: str) -> CommentResponse:
    """
    Raises:
        NotFoundError: unknown post
        ValidationFailedError: empty content
    """
    await get_post(repo, post_id)
    content = (content or "").strip()
    if not content:
        raise ValidationFailedError("Comment cannot be empty")
    return await repo.create_comment(post_id=post_id, user_id=user.id, content=content)


async def rate_player(
    repo: Repository, rater: UserRecord, player_id: int, data: RatingCreate
) -> RatingResponse:
    """
    Rate a player's performance in a match (1-10).

    Raises:
        ValidationFailedError: rating out of range or rating yourself
        NotFoundError: unknown player or match
    """
    if not MIN_RATING <= data.rating <= MAX_RATING:
        raise ValidationFailedError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    if rater.id == player_id:
        raise ValidationFailedError("You cannot rate yourself")
    if await repo.get_user(player_id) is None:
        raise NotFoundError("User not found")
    await get_match(repo, data.match_id)
    return await repo.create_rating(
        rater_id=rater.id,
        player_id=player_id,
        match_id=data.match_id,
        rating=data.rating,
        comment=data.comment,
    )


async def list_player_ratings(repo: Repository, player_id: int) -> List[RatingResponse]:
    return await repo.list_ratings_by_player(player_id)


async def list_match_ratings(repo: Repository, match_id: int) -> List[RatingResponse]:
    await get_match(repo, match_id)
    return await repo.list_ratings_by_match(match_id)
