"""
Plan-limit evaluation.

Decides whether a user may create or join another match from the static tier
table and the user's current open (non-finished) matches.
"""

import asyncio
import logging
import weakref
from typing import Dict

from sportsync.database.models import Plan, MatchStatus, ConfirmationStatus
from sportsync.models.schemas import PlanLimitsResponse
from sportsync.repositories.base import Repository
from sportsync.services.errors import QuotaExceededError

logger = logging.getLogger(__name__)

# (max created open matches, max joined open matches). Every Plan member must be present.
PLAN_LIMITS: Dict[Plan, Dict[str, int]] = {
    Plan.FREE: {"max_created": 0, "max_joined": 1},
    Plan.BASIC: {"max_created": 2, "max_joined": 4},
    Plan.INTERMEDIATE: {"max_created": 5, "max_joined": 10},
    Plan.ADVANCED: {"max_created": 10, "max_joined": 20},
}
_missing_plans = set(Plan) - set(PLAN_LIMITS)
if _missing_plans:
    raise RuntimeError(f"PLAN_LIMITS is missing: {sorted(p.value for p in _missing_plans)}")

# Per-user locks serializing check-then-act on quotas within this process
_quota_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def quota_lock(user_id: int) -> asyncio.Lock:
    """Lock guarding a user's quota check and the write that consumes it."""
    lock = _quota_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _quota_locks[user_id] = lock
    return lock


def is_counted(confirmation) -> bool:
    """A confirmation holds a join slot while pending, or while approved and confirmed."""
    if confirmation.status == ConfirmationStatus.PENDING:
        return True
    return confirmation.status == ConfirmationStatus.APPROVED and confirmation.confirmed


def coerce_plan(plan) -> Plan:
    """Unrecognized plan values are treated as free."""
    try:
        return Plan(plan)
    except ValueError:
        return Plan.FREE


def decide(plan, created_count: int, joined_count: int) -> PlanLimitsResponse:
    """Pure decision from counts and the tier table."""
    plan = coerce_plan(plan)
    limits = PLAN_LIMITS[plan]
    return PlanLimitsResponse(
        plan=plan,
        can_create=created_count < limits["max_created"],
        can_join=joined_count < limits["max_joined"],
        created_count=created_count,
        joined_count=joined_count,
        max_created=limits["max_created"],
        max_joined=limits["max_joined"],
    )


async def count_open_matches(repo: Repository, user_id: int) -> Dict[str, int]:
    """
    Count the user's created and joined matches that are not finished.

    Joined counts confirmations that hold a seat (see is_counted) on a match
    that still exists and is not finished.
    """
    created = [
        m for m in await repo.list_matches_by_creator(user_id)
        if m.status != MatchStatus.FINISHED
    ]
    open_match_ids = {
        m.id for m in await repo.list_matches() if m.status != MatchStatus.FINISHED
    }
    joined = [
        c for c in await repo.list_confirmations_by_user(user_id)
        if is_counted(c) and c.match_id in open_match_ids
    ]
    return {"created": len(created), "joined": len(joined)}


async def evaluate(repo: Repository, user_id: int) -> PlanLimitsResponse:
    """
    Evaluate a user's quotas.

    An exhausted quota is reported through can_create / can_join, never raised.
    """
    user = await repo.get_user(user_id)
    plan = user.plan if user is not None else Plan.FREE
    counts = await count_open_matches(repo, user_id)
    return decide(plan, counts["created"], counts["joined"])


async def ensure_can_create(repo: Repository, user_id: int) -> PlanLimitsResponse:
    """
    Raises:
        QuotaExceededError: the user's plan allows no further created match
    """
    result = await evaluate(repo, user_id)
    if not result.can_create:
        logger.info(
            f"User {user_id} denied match creation ({result.created_count}/{result.max_created} on {result.plan.value})"
        )
        raise QuotaExceededError(
            "Your plan does not allow creating more matches", limits=result.model_dump(mode="json")
        )
    return result


async def ensure_can_join(repo: Repository, user_id: int) -> PlanLimitsResponse:
    """
    Raises:
        QuotaExceededError: the user's plan allows no further joined match
    """
    result = await evaluate(repo, user_id)
    if not result.can_join:
        logger.info(
            f"User {user_id} denied joining a match ({result.joined_count}/{result.max_joined} on {result.plan.value})"
        )
        raise QuotaExceededError(
            "Your plan does not allow joining more matches", limits=result.model_dump(mode="json")
        )
    return result
