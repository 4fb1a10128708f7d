"""Notification and WebSocket route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, require_user
from sportsync.models.schemas import (
    UserRecord,
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import auth_service, notification_service
from sportsync.services.errors import ServiceError
from sportsync.services.websocket_manager import get_websocket_manager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/notifications", response_model=NotificationListResponse)
async def get_notifications(
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
    user: UserRecord = Depends(require_user),
    repo: Repository = Depends(get_repository),
):
    """Get user notifications with pagination, newest first."""
    try:
        return await notification_service.get_user_notifications(
            repo, user.id, limit=limit, offset=offset, unread_only=unread_only
        )
    except Exception as e:
        raise internal_error("fetching notifications", e)


@router.get("/api/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    user: UserRecord = Depends(require_user), repo: Repository = Depends(get_repository)
):
    """Get unread notification count for user."""
    try:
        count = await notification_service.get_unread_count(repo, user.id)
        return {"count": count}
    except Exception as e:
        raise internal_error("fetching unread count", e)


@router.put("/api/notifications/mark-all-read")
async def mark_all_notifications_as_read(
    user: UserRecord = Depends(require_user), repo: Repository = Depends(get_repository)
):
    """Mark all user notifications as read."""
    try:
        count = await notification_service.mark_all_as_read(repo, user.id)
        return {"success": True, "count": count}
    except Exception as e:
        raise internal_error("marking all notifications as read", e)


@router.put("/api/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_as_read(
    notification_id: int,
    user: UserRecord = Depends(require_user),
    repo: Repository = Depends(get_repository),
):
    """Mark a single notification as read."""
    try:
        return await notification_service.mark_as_read(repo, notification_id, user.id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("marking notification as read", e)


@router.websocket("/ws")
async def websocket_events(websocket: WebSocket):
    """
    WebSocket endpoint for real-time events and notifications.

    Requires JWT token in query parameter: ?token=<jwt_token>
    Client "ping" frames are answered with "pong"; anything else is ignored.
    """
    await websocket.accept()

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008, reason="Missing authentication token")
        return

    repo = getattr(websocket.app.state, "repository", None)
    user = await auth_service.authenticate(repo, token) if repo is not None else None
    if user is None:
        await websocket.close(code=1008, reason="Invalid authentication token")
        return

    # Replaces any previous connection of this user
    manager = get_websocket_manager()
    await manager.connect(user.id, websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user.id}")
    except Exception as e:
        logger.error(f"WebSocket error for user {user.id}: {e}")
    finally:
        await manager.disconnect(user.id, websocket)
