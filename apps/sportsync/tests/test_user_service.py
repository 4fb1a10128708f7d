"""
Unit tests for user service: profiles, plans and roles.
"""

import pytest

from sportsync.database.models import Plan, Role
from sportsync.models.schemas import UserUpdate
from sportsync.services import user_service
from sportsync.services.errors import NotFoundError, ValidationFailedError


@pytest.mark.asyncio
async def test_get_user_profile_hides_credentials(repo, users):
    profile = await user_service.get_user_profile(repo, users["alice"].id)

    assert profile.name == "Alice Alpha"
    assert "password_hash" not in profile.model_dump()


@pytest.mark.asyncio
async def test_get_unknown_profile(repo):
    with pytest.raises(NotFoundError):
        await user_service.get_user_profile(repo, 9999)


@pytest.mark.asyncio
async def test_update_profile(repo, users):
    alice = users["alice"]

    updated = await user_service.update_profile(
        repo, alice, UserUpdate(name="  Alice A. ", position="striker")
    )

    assert updated.name == "Alice A."
    assert updated.position == "striker"
    assert updated.email == alice.email
    assert (await repo.get_user(alice.id)).position == "striker"


@pytest.mark.asyncio
async def test_update_profile_rejects_blank_name(repo, users):
    with pytest.raises(ValidationFailedError):
        await user_service.update_profile(repo, users["alice"], UserUpdate(name=" "))


@pytest.mark.asyncio
async def test_empty_update_is_a_no_op(repo, users):
    unchanged = await user_service.update_profile(repo, users["bob"], UserUpdate())

    assert unchanged.id == users["bob"].id
    assert unchanged.name == "Bob Beta"


@pytest.mark.asyncio
async def test_set_plan_and_role(repo, users):
    bob = users["bob"]

    assert (await user_service.set_plan(repo, bob.id, Plan.INTERMEDIATE)).plan == Plan.INTERMEDIATE
    assert (await user_service.set_role(repo, bob.id, Role.MODERATOR)).role == Role.MODERATOR
    with pytest.raises(NotFoundError):
        await user_service.set_plan(repo, 9999, Plan.BASIC)


@pytest.mark.asyncio
async def test_get_profiles_in_id_order(repo, users):
    profiles = await user_service.get_profiles(repo, [users["bob"].id, users["alice"].id])

    assert [p.id for p in profiles] == sorted([users["alice"].id, users["bob"].id])
