"""
Unit tests for notification service.
Tests notification creation, retrieval, marking as read, and bulk operations.
"""

import json
import pytest
from unittest.mock import AsyncMock
from starlette.websockets import WebSocketState

from sportsync.database.models import NotificationType
from sportsync.services import notification_service
from sportsync.services.errors import NotFoundError, ValidationFailedError
from sportsync.services.websocket_manager import get_websocket_manager


async def _seed(repo, user_id, count):
    created = []
    for i in range(count):
        created.append(
            await notification_service.create_notification(
                repo,
                user_id=user_id,
                type=NotificationType.PAYMENT_DUE,
                title=f"Update {i}",
                message=f"Match changed ({i})",
                related_id=i,
            )
        )
    return created


@pytest.mark.asyncio
async def test_create_notification(repo, users):
    """Test creating a single notification."""
    notification = await notification_service.create_notification(
        repo,
        user_id=users["alice"].id,
        type=NotificationType.FRIEND_REQUEST,
        title="Friend request",
        message="Bob wants to be friends",
        related_id=12,
    )

    assert notification.id is not None
    assert notification.user_id == users["alice"].id
    assert notification.type == NotificationType.FRIEND_REQUEST
    assert notification.related_id == 12
    assert notification.is_read is False
    assert notification.read_at is None


@pytest.mark.asyncio
@pytest.mark.parametrize("title,message", [("", "body"), ("Title", "")])
async def test_create_notification_requires_fields(repo, users, title, message):
    with pytest.raises(ValidationFailedError):
        await notification_service.create_notification(
            repo, users["alice"].id, NotificationType.PAYMENT_DUE, title, message
        )


@pytest.mark.asyncio
async def test_notify_swallows_failures(repo, users):
    """A failing side-effect notification returns None instead of raising."""
    result = await notification_service.notify(
        repo, users["alice"].id, NotificationType.PAYMENT_DUE, "", "body"
    )

    assert result is None
    assert await repo.list_notifications_by_user(users["alice"].id) == []


@pytest.mark.asyncio
async def test_get_user_notifications_pagination(repo, users):
    """Test retrieving notifications newest first with pagination."""
    alice = users["alice"]
    await _seed(repo, alice.id, 5)

    first_page = await notification_service.get_user_notifications(repo, alice.id, limit=2)
    last_page = await notification_service.get_user_notifications(repo, alice.id, limit=2, offset=4)

    assert [n.title for n in first_page.notifications] == ["Update 4", "Update 3"]
    assert first_page.total_count == 5
    assert first_page.has_more is True
    assert [n.title for n in last_page.notifications] == ["Update 0"]
    assert last_page.has_more is False


@pytest.mark.asyncio
async def test_notifications_are_per_user(repo, users):
    await _seed(repo, users["alice"].id, 2)
    await _seed(repo, users["bob"].id, 1)

    result = await notification_service.get_user_notifications(repo, users["bob"].id)

    assert result.total_count == 1


@pytest.mark.asyncio
async def test_unread_count_and_mark_as_read(repo, users):
    alice = users["alice"]
    created = await _seed(repo, alice.id, 3)

    assert await notification_service.get_unread_count(repo, alice.id) == 3

    read = await notification_service.mark_as_read(repo, created[0].id, alice.id)
    assert read.is_read is True
    assert read.read_at is not None

    # Marking again is a no-op
    again = await notification_service.mark_as_read(repo, created[0].id, alice.id)
    assert again.read_at == read.read_at

    assert await notification_service.get_unread_count(repo, alice.id) == 2
    unread = await notification_service.get_user_notifications(repo, alice.id, unread_only=True)
    assert {n.id for n in unread.notifications} == {created[1].id, created[2].id}


@pytest.mark.asyncio
async def test_mark_as_read_wrong_user(repo, users):
    """Another user's notification looks like it doesn't exist."""
    created = await _seed(repo, users["alice"].id, 1)

    with pytest.raises(NotFoundError):
        await notification_service.mark_as_read(repo, created[0].id, users["bob"].id)
    with pytest.raises(NotFoundError):
        await notification_service.mark_as_read(repo, 9999, users["alice"].id)


@pytest.mark.asyncio
async def test_mark_all_as_read(repo, users):
    alice = users["alice"]
    await _seed(repo, alice.id, 4)
    await _seed(repo, users["bob"].id, 1)

    assert await notification_service.mark_all_as_read(repo, alice.id) == 4
    assert await notification_service.get_unread_count(repo, alice.id) == 0
    assert await notification_service.get_unread_count(repo, users["bob"].id) == 1
    assert await notification_service.mark_all_as_read(repo, alice.id) == 0


@pytest.mark.asyncio
async def test_notification_pushed_to_live_connection(repo, users):
    alice = users["alice"]
    socket = AsyncMock()
    socket.client_state = WebSocketState.CONNECTED
    await get_websocket_manager().connect(alice.id, socket)

    notification = (await _seed(repo, alice.id, 1))[0]

    socket.send_text.assert_called_once()
    frame = json.loads(socket.send_text.call_args[0][0])
    assert frame["type"] == "NOTIFICATION"
    assert frame["data"]["id"] == notification.id


@pytest.mark.asyncio
async def test_push_failure_does_not_fail_creation(repo, users):
    alice = users["alice"]
    socket = AsyncMock()
    socket.client_state = WebSocketState.CONNECTED
    socket.send_text.side_effect = RuntimeError("socket gone")
    await get_websocket_manager().connect(alice.id, socket)

    notification = (await _seed(repo, alice.id, 1))[0]

    assert notification.id is not None
    assert await notification_service.get_unread_count(repo, alice.id) == 1
