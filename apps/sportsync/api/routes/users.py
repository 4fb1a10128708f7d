"""User profile, plan, stats and rating route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, get_current_user, require_admin
from sportsync.models.schemas import (
    UserRecord,
    UserResponse,
    UserUpdate,
    PlanUpdateRequest,
    RoleUpdateRequest,
    PlanLimitsResponse,
    UserStatsResponse,
    RatingCreate,
    RatingResponse,
    PaymentResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import (
    user_service,
    plan_limit_service,
    stats_service,
    social_service,
    finance_service,
)
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/api/users/me", response_model=UserResponse)
async def update_current_user(
    payload: UserUpdate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """
    Update the current user's profile (name, position, photo_url).
    Email, role and plan cannot be changed here.
    """
    try:
        user = await user_service.update_profile(repo, current_user, payload)
        return user.to_public()
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("updating user profile", e)


@router.get("/api/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Public profile of any user."""
    try:
        return await user_service.get_user_profile(repo, user_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching user", e)


@router.put("/api/users/{user_id}/plan", response_model=UserResponse)
async def update_user_plan(
    user_id: int,
    payload: PlanUpdateRequest,
    admin: UserRecord = Depends(require_admin),
    repo: Repository = Depends(get_repository),
):
    """Change a user's subscription plan. Admin only."""
    try:
        user = await user_service.set_plan(repo, user_id, payload.plan)
        return user.to_public()
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("updating plan", e)


@router.put("/api/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: int,
    payload: RoleUpdateRequest,
    admin: UserRecord = Depends(require_admin),
    repo: Repository = Depends(get_repository),
):
    """Change a user's role. Admin only."""
    try:
        user = await user_service.set_role(repo, user_id, payload.role)
        return user.to_public()
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("updating role", e)


@router.get("/api/users/{user_id}/stats", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Aggregated match, statistics and rating figures for a player."""
    try:
        return await stats_service.get_user_stats(repo, user_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching user stats", e)


@router.post("/api/users/{user_id}/rate", response_model=RatingResponse)
async def rate_user(
    user_id: int,
    payload: RatingCreate,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Rate a player's performance in a match (1-10)."""
    try:
        return await social_service.rate_player(repo, current_user, user_id, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("rating player", e)


@router.get("/api/users/{user_id}/ratings", response_model=List[RatingResponse])
async def get_user_ratings(
    user_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await social_service.list_player_ratings(repo, user_id)
    except Exception as e:
        raise internal_error("fetching ratings", e)


@router.get("/api/user/plan-limits", response_model=PlanLimitsResponse)
async def get_plan_limits(
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Current quota usage and whether the caller may create or join another match."""
    try:
        return await plan_limit_service.evaluate(repo, current_user.id)
    except Exception as e:
        raise internal_error("evaluating plan limits", e)


@router.get("/api/user/payments", response_model=List[PaymentResponse])
async def get_my_payments(
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """The caller's payments; pending ones past due read as overdue."""
    try:
        return await finance_service.list_user_payments(repo, current_user)
    except Exception as e:
        raise internal_error("fetching payments", e)
