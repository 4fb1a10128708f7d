"""
User service layer: profiles, plan and role management.
"""

import logging
from typing import List

from sportsync.database.models import Role, Plan
from sportsync.models.schemas import UserRecord, UserResponse, UserUpdate
from sportsync.repositories.base import Repository
from sportsync.services.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)


async def get_user_profile(repo: Repository, user_id: int) -> UserResponse:
    """
    Get a user's public profile.

    Raises:
        NotFoundError: unknown user
    """
    user = await repo.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user.to_public()


async def get_profiles(repo: Repository, user_ids) -> List[UserResponse]:
    """Public profiles for several users (id asc)."""
    return [u.to_public() for u in await repo.get_users(user_ids)]


async def update_profile(repo: Repository, user: UserRecord, updates: UserUpdate) -> UserRecord:
    """
    Update the caller's own profile. Only name, position and photo_url are editable.

    Raises:
        ValidationFailedError: blank name
    """
    fields = updates.model_dump(exclude_unset=True)
    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise ValidationFailedError("Name cannot be empty")
        fields["name"] = name
    if not fields:
        return user
    return await repo.update_user(user.id, **fields)


async def set_plan(repo: Repository, user_id: int, plan: Plan) -> UserRecord:
    """Change a user's subscription plan."""
    user = await repo.update_user(user_id, plan=plan)
    logger.info(f"User {user_id} moved to plan {plan.value}")
    return user


async def set_role(repo: Repository, user_id: int, role: Role) -> UserRecord:
    """Change a user's role."""
    user = await repo.update_user(user_id, role=role)
    logger.info(f"User {user_id} role set to {role.value}")
    return user
