"""
Unit tests for friend service.

Tests friend request lifecycle, duplicate prevention, authorization and the
notifications sent along the way.
"""

import pytest

from sportsync.database.models import FriendshipStatus, NotificationType
from sportsync.services import friend_service
from sportsync.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)


# ──────────────────────────────────────────────────────────────
# Send request
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_send_friend_request(repo, users):
    """Test sending a friend request creates a pending request and notifies the addressee."""
    alice, bob = users["alice"], users["bob"]

    result = await friend_service.send_friend_request(repo, alice, bob.id)

    assert result.requester_id == alice.id
    assert result.addressee_id == bob.id
    assert result.status == FriendshipStatus.PENDING
    notifications = await repo.list_notifications_by_user(bob.id)
    assert [n.type for n in notifications] == [NotificationType.FRIEND_REQUEST]
    assert notifications[0].related_id == result.id


@pytest.mark.asyncio
async def test_cannot_friend_yourself(repo, users):
    with pytest.raises(ValidationFailedError, match="yourself"):
        await friend_service.send_friend_request(repo, users["alice"], users["alice"].id)


@pytest.mark.asyncio
async def test_unknown_addressee(repo, users):
    with pytest.raises(NotFoundError):
        await friend_service.send_friend_request(repo, users["alice"], 9999)


@pytest.mark.asyncio
async def test_duplicate_request_prevention(repo, users):
    await friend_service.send_friend_request(repo, users["alice"], users["bob"].id)

    with pytest.raises(ConflictError, match="Friend request already sent"):
        await friend_service.send_friend_request(repo, users["alice"], users["bob"].id)


@pytest.mark.asyncio
async def test_reverse_request_blocked(repo, users):
    """Test that a reverse request is blocked with helpful message."""
    await friend_service.send_friend_request(repo, users["alice"], users["bob"].id)

    with pytest.raises(ConflictError, match="already sent you a friend request"):
        await friend_service.send_friend_request(repo, users["bob"], users["alice"].id)


# ──────────────────────────────────────────────────────────────
# Respond
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_accept_friend_request(repo, users):
    alice, bob = users["alice"], users["bob"]
    req = await friend_service.send_friend_request(repo, alice, bob.id)

    result = await friend_service.respond_to_friend_request(
        repo, bob, req.id, FriendshipStatus.ACCEPTED
    )

    assert result.status == FriendshipStatus.ACCEPTED
    assert result.accepted_at is not None
    assert await friend_service.are_friends(repo, alice.id, bob.id)
    assert await friend_service.are_friends(repo, bob.id, alice.id)
    types = [n.type for n in await repo.list_notifications_by_user(alice.id)]
    assert types == [NotificationType.FRIEND_ACCEPTED]


@pytest.mark.asyncio
async def test_only_addressee_can_respond(repo, users):
    req = await friend_service.send_friend_request(repo, users["alice"], users["bob"].id)

    with pytest.raises(ForbiddenError, match="Not authorized"):
        await friend_service.respond_to_friend_request(
            repo, users["alice"], req.id, FriendshipStatus.ACCEPTED
        )
    with pytest.raises(ForbiddenError):
        await friend_service.respond_to_friend_request(
            repo, users["org"], req.id, FriendshipStatus.ACCEPTED
        )


@pytest.mark.asyncio
async def test_respond_with_pending_is_invalid(repo, users):
    req = await friend_service.send_friend_request(repo, users["alice"], users["bob"].id)

    with pytest.raises(ValidationFailedError):
        await friend_service.respond_to_friend_request(
            repo, users["bob"], req.id, FriendshipStatus.PENDING
        )


@pytest.mark.asyncio
async def test_cannot_answer_twice(repo, users):
    req = await friend_service.send_friend_request(repo, users["alice"], users["bob"].id)
    await friend_service.respond_to_friend_request(repo, users["bob"], req.id, FriendshipStatus.REJECTED)

    with pytest.raises(ConflictError):
        await friend_service.respond_to_friend_request(
            repo, users["bob"], req.id, FriendshipStatus.ACCEPTED
        )


@pytest.mark.asyncio
async def test_rejected_request_can_be_resent(repo, users):
    alice, bob = users["alice"], users["bob"]
    req = await friend_service.send_friend_request(repo, alice, bob.id)
    await friend_service.respond_to_friend_request(repo, bob, req.id, FriendshipStatus.REJECTED)

    again = await friend_service.send_friend_request(repo, alice, bob.id)

    assert again.id == req.id
    assert again.status == FriendshipStatus.PENDING


@pytest.mark.asyncio
async def test_already_friends(repo, users):
    alice, bob = users["alice"], users["bob"]
    req = await friend_service.send_friend_request(repo, alice, bob.id)
    await friend_service.respond_to_friend_request(repo, bob, req.id, FriendshipStatus.ACCEPTED)

    with pytest.raises(ConflictError, match="Already friends"):
        await friend_service.send_friend_request(repo, bob, alice.id)


# ──────────────────────────────────────────────────────────────
# Listings
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_get_friends_returns_public_profiles(repo, users):
    alice, bob, org = users["alice"], users["bob"], users["org"]
    for other in (bob, org):
        req = await friend_service.send_friend_request(repo, alice, other.id)
        await friend_service.respond_to_friend_request(repo, other, req.id, FriendshipStatus.ACCEPTED)

    friends = await friend_service.get_friends(repo, alice.id)

    assert [f.id for f in friends] == sorted([bob.id, org.id])
    assert all(not hasattr(f, "password_hash") for f in friends)


@pytest.mark.asyncio
async def test_get_incoming_requests(repo, users):
    alice, bob, org = users["alice"], users["bob"], users["org"]
    await friend_service.send_friend_request(repo, alice, bob.id)
    await friend_service.send_friend_request(repo, org, bob.id)
    await friend_service.send_friend_request(repo, bob, users["mod"].id)

    incoming = await friend_service.get_incoming_requests(repo, bob.id)

    assert {r.requester_id for r in incoming} == {alice.id, org.id}
    assert {r.requester.name for r in incoming} == {"Alice Alpha", "Olga Organiser"}
