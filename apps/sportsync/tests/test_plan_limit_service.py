"""
Unit tests for plan-limit evaluation.

Covers the pure decision table, counting of open matches and the
QuotaExceededError raised by the ensure_* guards.
"""

import pytest
from datetime import timedelta

from sportsync.database.models import Plan, MatchStatus, ConfirmationStatus
from sportsync.models.schemas import MatchCreate, MatchUpdate
from sportsync.services import plan_limit_service, match_service
from sportsync.services.errors import QuotaExceededError
from sportsync.utils.datetime_utils import utcnow


def _match_payload(title="Sunday Kickabout"):
    return MatchCreate(title=title, location="Riverside Park", date=utcnow() + timedelta(days=3))


class TestDecide:
    """The decision depends only on plan and counts."""

    @pytest.mark.parametrize(
        "plan,created,joined,can_create,can_join",
        [
            (Plan.FREE, 0, 0, False, True),
            (Plan.FREE, 0, 1, False, False),
            (Plan.BASIC, 1, 3, True, True),
            (Plan.BASIC, 2, 4, False, False),
            (Plan.INTERMEDIATE, 4, 9, True, True),
            (Plan.INTERMEDIATE, 5, 10, False, False),
            (Plan.ADVANCED, 9, 19, True, True),
            (Plan.ADVANCED, 10, 20, False, False),
        ],
    )
    def test_limits_per_plan(self, plan, created, joined, can_create, can_join):
        result = plan_limit_service.decide(plan, created, joined)

        assert result.can_create is can_create
        assert result.can_join is can_join
        assert result.created_count == created
        assert result.joined_count == joined

    def test_every_plan_has_limits(self):
        assert set(plan_limit_service.PLAN_LIMITS) == set(Plan)

    def test_unknown_plan_is_treated_as_free(self):
        result = plan_limit_service.decide("platinum", 0, 0)

        assert result.plan == Plan.FREE
        assert result.max_created == 0


@pytest.mark.asyncio
async def test_free_user_cannot_create(repo, users):
    with pytest.raises(QuotaExceededError) as exc_info:
        await match_service.create_match(repo, users["alice"], _match_payload())

    assert exc_info.value.limits["can_create"] is False
    assert exc_info.value.limits["plan"] == "free"
    assert await repo.list_matches() == []


@pytest.mark.asyncio
async def test_basic_user_blocked_after_two_open_matches(repo, users):
    org = users["org"]
    await match_service.create_match(repo, org, _match_payload("One"))
    await match_service.create_match(repo, org, _match_payload("Two"))

    with pytest.raises(QuotaExceededError):
        await match_service.create_match(repo, org, _match_payload("Three"))

    result = await plan_limit_service.evaluate(repo, org.id)
    assert result.created_count == 2
    assert result.can_create is False


@pytest.mark.asyncio
async def test_finished_matches_free_the_quota(repo, users):
    org = users["org"]
    first = await match_service.create_match(repo, org, _match_payload("One"))
    await match_service.create_match(repo, org, _match_payload("Two"))

    await match_service.update_match(repo, org, first.id, MatchUpdate(status=MatchStatus.FINISHED))

    result = await plan_limit_service.evaluate(repo, org.id)
    assert result.created_count == 1
    assert result.can_create is True


@pytest.mark.asyncio
async def test_joined_counts_pending_and_confirmed_only(repo, users):
    org, alice = users["org"], users["alice"]
    m1 = await match_service.create_match(repo, org, _match_payload("One"))
    m2 = await match_service.create_match(repo, org, _match_payload("Two"))

    await repo.upsert_confirmation(alice.id, m1.id, status=ConfirmationStatus.PENDING, confirmed=False)
    await repo.upsert_confirmation(alice.id, m2.id, status=ConfirmationStatus.APPROVED, confirmed=False)

    counts = await plan_limit_service.count_open_matches(repo, alice.id)
    assert counts == {"created": 0, "joined": 1}


@pytest.mark.asyncio
async def test_free_user_can_join_only_one_open_match(repo, users):
    org, alice = users["org"], users["alice"]
    m1 = await match_service.create_match(repo, org, _match_payload("One"))
    m2 = await match_service.create_match(repo, org, _match_payload("Two"))

    await match_service.join_by_code(repo, alice, m1.invite_code)
    with pytest.raises(QuotaExceededError) as exc_info:
        await match_service.join_by_code(repo, alice, m2.invite_code)

    assert exc_info.value.limits["joined_count"] == 1
    assert await repo.get_confirmation(alice.id, m2.id) is None


@pytest.mark.asyncio
async def test_cancelled_participation_releases_join_slot(repo, users):
    org, alice = users["org"], users["alice"]
    m1 = await match_service.create_match(repo, org, _match_payload("One"))
    m2 = await match_service.create_match(repo, org, _match_payload("Two"))

    await match_service.join_by_code(repo, alice, m1.invite_code)
    await match_service.set_confirmation(repo, alice, m1.id, False)
    await match_service.join_by_code(repo, alice, m2.invite_code)

    result = await plan_limit_service.evaluate(repo, alice.id)
    assert result.joined_count == 1


@pytest.mark.asyncio
async def test_evaluate_unknown_user_as_free(repo):
    result = await plan_limit_service.evaluate(repo, 12345)

    assert result.plan == Plan.FREE
    assert result.created_count == 0
    assert result.can_join is True
