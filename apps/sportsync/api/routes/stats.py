"""Match statistics and match rating route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from sportsync.api.routes import service_error_response, internal_error
from sportsync.api.auth_dependencies import get_repository, get_current_user, require_staff
from sportsync.models.schemas import (
    UserRecord,
    StatisticsCreate,
    StatisticsResponse,
    RatingResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import stats_service, social_service
from sportsync.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches/{match_id}/statistics", response_model=List[StatisticsResponse])
async def get_match_statistics(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await stats_service.list_match_statistics(repo, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching statistics", e)


@router.post("/api/matches/{match_id}/statistics", response_model=StatisticsResponse)
async def record_statistics(
    match_id: int,
    payload: StatisticsCreate,
    current_user: UserRecord = Depends(require_staff),
    repo: Repository = Depends(get_repository),
):
    """Record a player's goals, assists and cards. Moderator or admin."""
    try:
        return await stats_service.record_statistics(repo, current_user, match_id, payload)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("recording statistics", e)


@router.post("/api/statistics/{statistics_id}/approve", response_model=StatisticsResponse)
async def approve_statistics(
    statistics_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Attest a statistics line. Staff approval is final."""
    try:
        return await stats_service.approve_statistics(repo, current_user, statistics_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("approving statistics", e)


@router.post("/api/statistics/{statistics_id}/reject", response_model=StatisticsResponse)
async def reject_statistics(
    statistics_id: int,
    current_user: UserRecord = Depends(require_staff),
    repo: Repository = Depends(get_repository),
):
    try:
        return await stats_service.reject_statistics(repo, current_user, statistics_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("rejecting statistics", e)


@router.get("/api/matches/{match_id}/ratings", response_model=List[RatingResponse])
async def get_match_ratings(
    match_id: int,
    current_user: UserRecord = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await social_service.list_match_ratings(repo, match_id)
    except HTTPException:
        raise
    except ServiceError as e:
        raise service_error_response(e)
    except Exception as e:
        raise internal_error("fetching ratings", e)
