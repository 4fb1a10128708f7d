"""
Authentication dependencies for FastAPI routes.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from sportsync.database.models import Role
from sportsync.models.schemas import UserRecord
from sportsync.repositories.base import Repository
from sportsync.services import auth_service

# auto_error=False so a missing header is reported as 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_repository(request: Request) -> Repository:
    """The repository chosen at startup (see the app lifespan)."""
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage is not ready"
        )
    return repository


async def get_current_user(
    repo: Repository = Depends(get_repository),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UserRecord:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        repo: Repository
        credentials: HTTP Bearer token credentials

    Returns:
        Stored user record

    Raises:
        HTTPException: If token is missing or invalid, or the user no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = auth_service.verify_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await repo.get_user(int(user_id))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def require_user(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """Require any authenticated user."""
    return user


def require_roles(*roles: Role):
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        user: UserRecord = Depends(require_roles(Role.MODERATOR, Role.ADMIN))
    """
    allowed = {Role(r) for r in roles}

    async def checker(user: UserRecord = Depends(get_current_user)) -> UserRecord:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
            )
        return user

    return checker


require_staff = require_roles(Role.MODERATOR, Role.ADMIN)
require_admin = require_roles(Role.ADMIN)
