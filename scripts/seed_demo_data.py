#!/usr/bin/env python3
"""
Seed the local dev database with demo accounts and one upcoming match.

Creates an admin, a moderator, an organiser on the basic plan and two free
players, all with easy-to-remember credentials. Idempotent: accounts that
already exist are skipped, and the demo match is only created once.

Usage:
    STORAGE_BACKEND=sql python scripts/seed_demo_data.py
"""

import asyncio
from datetime import timedelta

from sportsync.database.models import Plan, Role
from sportsync.models.schemas import MatchCreate
from sportsync.repositories.factory import create_repository, BACKEND_SQL
from sportsync.services import match_service
from sportsync.services.auth_service import hash_password
from sportsync.utils.datetime_utils import utcnow

DEMO_PASSWORD = "test1234"

DEMO_USERS = [
    {"name": "Ada Admin", "email": "admin@sportsync.test", "role": Role.ADMIN, "plan": Plan.ADVANCED},
    {"name": "Max Moderator", "email": "mod@sportsync.test", "role": Role.MODERATOR, "plan": Plan.BASIC},
    {"name": "Olga Organiser", "email": "olga@sportsync.test", "role": Role.PLAYER, "plan": Plan.BASIC, "position": "midfielder"},
    {"name": "Alice Test", "email": "alice@sportsync.test", "role": Role.PLAYER, "plan": Plan.FREE, "position": "defender"},
    {"name": "Bob Test", "email": "bob@sportsync.test", "role": Role.PLAYER, "plan": Plan.FREE, "position": "goalkeeper"},
]

DEMO_MATCH_TITLE = "Thursday Five-a-side"


async def main():
    """Create the demo accounts and match."""
    print("\n⚽  Seeding demo data...\n")

    repo = await create_repository(BACKEND_SQL)
    try:
        users = {}
        for user_data in DEMO_USERS:
            existing = await repo.get_user_by_email(user_data["email"])
            if existing:
                print(f"  ⏭️  {user_data['name']} already exists (user #{existing.id})")
                users[user_data["email"]] = existing
                continue

            user = await repo.create_user(
                name=user_data["name"],
                email=user_data["email"],
                password_hash=hash_password(DEMO_PASSWORD),
                role=user_data["role"],
                plan=user_data["plan"],
                position=user_data.get("position"),
            )
            users[user_data["email"]] = user
            print(f"  ✅ Created {user.name} (user #{user.id}, {user.role.value}/{user.plan.value})")

        organiser = users["olga@sportsync.test"]
        own_matches = await repo.list_matches_by_creator(organiser.id)
        if any(m.title == DEMO_MATCH_TITLE for m in own_matches):
            print(f"  ⏭️  '{DEMO_MATCH_TITLE}' already exists")
        else:
            match = await match_service.create_match(
                repo,
                organiser,
                MatchCreate(
                    title=DEMO_MATCH_TITLE,
                    location="Riverside Astro, Pitch 2",
                    date=utcnow() + timedelta(days=3),
                    max_players=10,
                ),
            )
            await match_service.join_by_code(repo, users["alice@sportsync.test"], match.invite_code)
            print(f"  ✅ Created match #{match.id} (invite code {match.invite_code})")
    finally:
        await repo.close()

    # Print summary
    print("\n" + "─" * 50)
    print("📋 Demo credentials (password for all: " + DEMO_PASSWORD + "):")
    print("─" * 50)
    for u in DEMO_USERS:
        print(f"  {u['name']:<15} {u['email']:<24} {u['role'].value}/{u['plan'].value}")
    print("─" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
