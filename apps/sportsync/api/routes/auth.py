"""Authentication route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from sportsync.api.routes import (
    limiter,
    INVALID_CREDENTIALS_RESPONSE,
    service_error_response,
    internal_error,
)
from sportsync.api.auth_dependencies import get_repository, get_current_user
from sportsync.models.schemas import (
    RegisterRequest,
    LoginRequest,
    AuthResponse,
    UserRecord,
    UserResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import auth_service
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/auth/register", response_model=AuthResponse)
@limiter.limit("10/minute")
async def register(
    request: Request, payload: RegisterRequest, repo: Repository = Depends(get_repository)
):
    """Create an account on the free plan and log it in."""
    try:
        user = await auth_service.register_user(repo, payload)
        return AuthResponse(user=user.to_public(), token=auth_service.issue_token(user))
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("during registration", e)


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request, payload: LoginRequest, repo: Repository = Depends(get_repository)
):
    """Login with email and password."""
    try:
        user = await auth_service.login(repo, payload.email, payload.password)
        if user is None:
            raise INVALID_CREDENTIALS_RESPONSE
        return AuthResponse(user=user.to_public(), token=auth_service.issue_token(user))
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("during login", e)


@router.get("/api/auth/me", response_model=UserResponse)
async def get_me(user: UserRecord = Depends(get_current_user)):
    """Get the authenticated user's profile."""
    return user.to_public()
