"""
Notification service for managing user notifications.

Handles creation, retrieval, and status updates for in-app notifications.
Creating a notification also pushes it to the addressee's live connection.
"""

import logging
from typing import Optional

from sportsync.database.models import NotificationType
from sportsync.models.schemas import NotificationResponse, NotificationListResponse
from sportsync.repositories.base import Repository
from sportsync.services.errors import NotFoundError, ValidationFailedError
from sportsync.services.websocket_manager import EventType, get_websocket_manager
from sportsync.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def create_notification(
    repo: Repository,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[int] = None,
) -> NotificationResponse:
    """
    Create a single notification for a user.

    Args:
        repo: Repository
        user_id: ID of the user to notify
        type: Notification type
        title: Notification title
        message: Notification message text
        related_id: Optional id of the match/invitation/payment/... it refers to

    Returns:
        The created notification

    Raises:
        ValidationFailedError: If required fields are missing
    """
    if not user_id:
        raise ValidationFailedError("user_id is required")
    if not title:
        raise ValidationFailedError("title is required")
    if not message:
        raise ValidationFailedError("message is required")

    notification = await repo.create_notification(
        user_id=user_id,
        type=NotificationType(type),
        title=title,
        message=message,
        related_id=related_id,
    )

    # Push via WebSocket (errors won't fail the notification creation)
    try:
        manager = get_websocket_manager()
        await manager.send_to_user(user_id, EventType.NOTIFICATION, notification)
    except Exception as e:
        logger.warning(f"Failed to push notification via WebSocket for user {user_id}: {e}")

    return notification


async def notify(
    repo: Repository,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[int] = None,
) -> Optional[NotificationResponse]:
    """
    Best-effort variant used as a side effect of other operations.

    A failure here is logged and never undoes the operation that triggered it.
    """
    try:
        return await create_notification(repo, user_id, type, title, message, related_id)
    except Exception as e:
        logger.warning(f"Failed to create {NotificationType(type).value} notification for user {user_id}: {e}")
        return None


async def get_user_notifications(
    repo: Repository,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
) -> NotificationListResponse:
    """
    Get notifications for a user, newest first.

    Args:
        repo: Repository
        user_id: ID of the user
        limit: Maximum number of notifications to return
        offset: Number of notifications to skip
        unread_only: Only return unread notifications
    """
    notifications = await repo.list_notifications_by_user(user_id, unread_only=unread_only)
    page = notifications[offset:offset + limit]
    return NotificationListResponse(
        notifications=page,
        total_count=len(notifications),
        has_more=offset + len(page) < len(notifications),
    )


async def get_unread_count(repo: Repository, user_id: int) -> int:
    """Get count of unread notifications for a user."""
    return len(await repo.list_notifications_by_user(user_id, unread_only=True))


async def mark_as_read(repo: Repository, notification_id: int, user_id: int) -> NotificationResponse:
    """
    Mark a notification as read.

    Raises:
        NotFoundError: If notification not found or doesn't belong to user
    """
    notification = await repo.get_notification(notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification not found")
    if notification.is_read:
        return notification
    return await repo.update_notification(notification_id, is_read=True, read_at=utcnow())


async def mark_all_as_read(repo: Repository, user_id: int) -> int:
    """
    Mark all notifications as read for a user.

    Returns:
        Number of notifications marked as read
    """
    return await repo.mark_all_notifications_read(user_id)
