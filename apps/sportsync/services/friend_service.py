"""
Friend service for managing friend requests and friendships.

A friendship is a directed request (requester -> addressee). Once accepted it
is symmetric: each side appears in the other's friend list.
"""

from typing import List, Optional, Set
import logging

from sportsync.database.models import FriendshipStatus, NotificationType
from sportsync.models.schemas import UserRecord, UserResponse, FriendshipResponse
from sportsync.repositories.base import Repository
from sportsync.services import notification_service
from sportsync.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from sportsync.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def _other_side(friendship: FriendshipResponse, user_id: int) -> int:
    if friendship.requester_id == user_id:
        return friendship.addressee_id
    return friendship.requester_id


async def get_friend_ids(repo: Repository, user_id: int) -> Set[int]:
    """
    Get the set of all friend user_ids for a given user.

    Args:
        repo: Repository
        user_id: User to look up friends for

    Returns:
        Set of friend user IDs
    """
    accepted = await repo.list_friendships_by_user(user_id, status=FriendshipStatus.ACCEPTED)
    return {_other_side(f, user_id) for f in accepted}


async def are_friends(repo: Repository, user_id: int, other_user_id: int) -> bool:
    """Check if two users are friends."""
    return other_user_id in await get_friend_ids(repo, user_id)


async def get_pending_request(
    repo: Repository, user_id: int, other_user_id: int
) -> Optional[FriendshipResponse]:
    """
    Get a pending friend request between two users (in either direction).
    """
    for requester, addressee in ((user_id, other_user_id), (other_user_id, user_id)):
        friendship = await repo.get_friendship_between(requester, addressee)
        if friendship is not None and friendship.status == FriendshipStatus.PENDING:
            return friendship
    return None


async def send_friend_request(
    repo: Repository, requester: UserRecord, addressee_id: int
) -> FriendshipResponse:
    """
    Send a friend request from one user to another.

    Validates that users aren't already friends and no pending request exists.
    Creates a notification for the addressee. A previously rejected request is
    reopened rather than duplicated.

    Raises:
        ValidationFailedError: request to yourself
        NotFoundError: unknown addressee
        ConflictError: already friends or a request is pending
    """
    if requester.id == addressee_id:
        raise ValidationFailedError("Cannot send a friend request to yourself")

    if await repo.get_user(addressee_id) is None:
        raise NotFoundError("User not found")

    if await are_friends(repo, requester.id, addressee_id):
        raise ConflictError("Already friends with this user")

    existing = await get_pending_request(repo, requester.id, addressee_id)
    if existing:
        if existing.requester_id == requester.id:
            raise ConflictError("Friend request already sent")
        raise ConflictError("This user already sent you a friend request. Accept it instead.")

    previous = await repo.get_friendship_between(requester.id, addressee_id)
    if previous is not None:
        friendship = await repo.update_friendship(
            previous.id, status=FriendshipStatus.PENDING, accepted_at=None, created_at=utcnow()
        )
    else:
        friendship = await repo.create_friendship(requester.id, addressee_id)

    await notification_service.notify(
        repo,
        addressee_id,
        NotificationType.FRIEND_REQUEST,
        "Friend Request",
        f"{requester.name} sent you a friend request",
        related_id=friendship.id,
    )
    return friendship


async def respond_to_friend_request(
    repo: Repository, user: UserRecord, friendship_id: int, status: FriendshipStatus
) -> FriendshipResponse:
    """
    Accept or reject a pending friend request. Only the addressee may answer.

    Raises:
        NotFoundError: unknown request
        ForbiddenError: caller is not the addressee
        ValidationFailedError: status is not accepted/rejected
        ConflictError: request is no longer pending
    """
    friendship = await repo.get_friendship(friendship_id)
    if friendship is None:
        raise NotFoundError("Friend request not found")
    if friendship.addressee_id != user.id:
        raise ForbiddenError("Not authorized to answer this request")
    if status not in (FriendshipStatus.ACCEPTED, FriendshipStatus.REJECTED):
        raise ValidationFailedError("Status must be 'accepted' or 'rejected'")
    if friendship.status != FriendshipStatus.PENDING:
        raise ConflictError("Friend request is no longer pending")

    if status == FriendshipStatus.REJECTED:
        return await repo.update_friendship(friendship_id, status=status)

    updated = await repo.update_friendship(friendship_id, status=status, accepted_at=utcnow())
    await notification_service.notify(
        repo,
        friendship.requester_id,
        NotificationType.FRIEND_ACCEPTED,
        "Friend Request Accepted",
        f"{user.name} accepted your friend request",
        related_id=friendship_id,
    )
    return updated


async def get_friends(repo: Repository, user_id: int) -> List[UserResponse]:
    """Public profiles of the user's friends (id asc)."""
    return [u.to_public() for u in await repo.get_users(await get_friend_ids(repo, user_id))]


async def get_incoming_requests(repo: Repository, user_id: int) -> List[FriendshipResponse]:
    """Pending requests addressed to the user, with the requester's profile."""
    pending = [
        f for f in await repo.list_friendships_by_user(user_id, status=FriendshipStatus.PENDING)
        if f.addressee_id == user_id
    ]
    requesters = {u.id: u.to_public() for u in await repo.get_users(f.requester_id for f in pending)}
    return [f.model_copy(update={"requester": requesters.get(f.requester_id)}) for f in pending]
