"""
Match statistics and per-player aggregates.

Statistics lines are recorded by staff and become authoritative once enough
distinct users attest them (STATS_APPROVALS_REQUIRED) or a moderator/admin
approves.
"""

import logging
import os
from typing import List

from sportsync.database.models import StatisticsStatus
from sportsync.models.schemas import (
    UserRecord,
    StatisticsCreate,
    StatisticsResponse,
    UserStatsResponse,
)
from sportsync.repositories.base import Repository
from sportsync.services import auth_service
from sportsync.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from sportsync.services.match_service import get_match

logger = logging.getLogger(__name__)

COUNT_FIELDS = ("goals", "assists", "yellow_cards", "red_cards")


def approvals_required() -> int:
    return max(1, int(os.getenv("STATS_APPROVALS_REQUIRED", "2")))


async def record_statistics(
    repo: Repository, recorder: UserRecord, match_id: int, data: StatisticsCreate
) -> StatisticsResponse:
    """
    Record a player's counts for a match (moderator/admin).

    Raises:
        ForbiddenError: recorder is not staff
        NotFoundError: unknown match or player
        ValidationFailedError: a negative count
    """
    if not auth_service.is_staff(recorder):
        raise ForbiddenError("Insufficient permissions")
    await get_match(repo, match_id)
    if await repo.get_user(data.user_id) is None:
        raise NotFoundError("User not found")
    for field in COUNT_FIELDS:
        if getattr(data, field) < 0:
            raise ValidationFailedError(f"{field} cannot be negative")

    statistics = await repo.create_statistics(match_id=match_id, **data.model_dump())
    logger.info(f"Statistics {statistics.id} recorded for user {data.user_id} in match {match_id}")
    return statistics


async def list_match_statistics(repo: Repository, match_id: int) -> List[StatisticsResponse]:
    await get_match(repo, match_id)
    return await repo.list_statistics_by_match(match_id)


async def approve_statistics(
    repo: Repository, approver: UserRecord, statistics_id: int
) -> StatisticsResponse:
    """
    Add the caller to the line's approvers (set semantics).

    The line turns approved when the approver count reaches the threshold or
    the approver is staff.

    Raises:
        NotFoundError: unknown statistics line
        ConflictError: the line was rejected
    """
    statistics = await repo.get_statistics(statistics_id)
    if statistics is None:
        raise NotFoundError("Statistics not found")
    if statistics.status == StatisticsStatus.REJECTED:
        raise ConflictError("Rejected statistics cannot be approved")

    approved_by = list(statistics.approved_by)
    if approver.id not in approved_by:
        approved_by.append(approver.id)

    status = statistics.status
    if auth_service.is_staff(approver) or len(approved_by) >= approvals_required():
        status = StatisticsStatus.APPROVED

    if approved_by == statistics.approved_by and status == statistics.status:
        return statistics
    return await repo.update_statistics(statistics_id, approved_by=approved_by, status=status)


async def reject_statistics(
    repo: Repository, reviewer: UserRecord, statistics_id: int
) -> StatisticsResponse:
    """
    Raises:
        ForbiddenError: reviewer is not staff
        NotFoundError: unknown statistics line
    """
    if not auth_service.is_staff(reviewer):
        raise ForbiddenError("Insufficient permissions")
    if await repo.get_statistics(statistics_id) is None:
        raise NotFoundError("Statistics not found")
    return await repo.update_statistics(statistics_id, status=StatisticsStatus.REJECTED)


async def get_user_stats(repo: Repository, user_id: int) -> UserStatsResponse:
    """
    Aggregated stats for a player.

    Raises:
        NotFoundError: unknown user
    """
    if await repo.get_user(user_id) is None:
        raise NotFoundError("User not found")
    return await repo.get_user_stats(user_id)
