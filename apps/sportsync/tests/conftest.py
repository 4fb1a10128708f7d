"""
Shared pytest configuration for SportSync tests.

Service and repository tests run against both storage backends: the
in-memory store and the SQL store on an in-memory SQLite database
(aiosqlite + StaticPool so every session sees the same connection).
Route tests force STORAGE_BACKEND=memory so the app never needs PostgreSQL.
"""

import os

# Must be set before the app and the route package are imported
os.environ.setdefault("ENV", "test")
os.environ["STORAGE_BACKEND"] = "memory"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from sportsync.database.db import Base  # noqa: E402
from sportsync.database.models import Role, Plan  # noqa: E402
from sportsync.repositories.memory_repository import MemoryRepository  # noqa: E402
from sportsync.repositories.sql_repository import SqlRepository  # noqa: E402
from sportsync.services import websocket_manager  # noqa: E402

SQLITE_URL = "sqlite+aiosqlite://"


@pytest.fixture(autouse=True)
def fresh_websocket_manager():
    """Each test gets its own connection registry."""
    websocket_manager._websocket_manager = None
    yield
    websocket_manager._websocket_manager = None


@pytest.fixture(autouse=True)
def default_environment(monkeypatch):
    """Tests start from the documented defaults."""
    monkeypatch.delenv("STRICT_MATCH_CAPACITY", raising=False)
    monkeypatch.delenv("STATS_APPROVALS_REQUIRED", raising=False)
    monkeypatch.delenv("ADMIN_EMAILS", raising=False)


async def _create_sql_repository():
    engine = create_async_engine(
        SQLITE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        from sportsync.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    return SqlRepository(session_factory, engine=engine)


@pytest_asyncio.fixture
async def memory_repo():
    """Fresh in-memory repository."""
    repo = MemoryRepository()
    yield repo
    await repo.close()


@pytest_asyncio.fixture
async def sql_repo():
    """Fresh SQL repository on an in-memory SQLite database."""
    repo = await _create_sql_repository()
    yield repo
    await repo.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def repo(request):
    """The same test body, once per storage backend."""
    if request.param == "memory":
        repository = MemoryRepository()
    else:
        repository = await _create_sql_repository()
    yield repository
    await repository.close()


async def make_user(repo, name, role=Role.PLAYER, plan=Plan.FREE, email=None):
    """Helper: create a user directly through the repository."""
    return await repo.create_user(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        password_hash="hash",
        role=role,
        plan=plan,
    )


@pytest.fixture
def create_user(repo):
    """Factory fixture: ``await create_user("Name", plan=Plan.BASIC)``."""
    async def _create(name, role=Role.PLAYER, plan=Plan.FREE, email=None):
        return await make_user(repo, name, role=role, plan=plan, email=email)
    return _create


@pytest_asyncio.fixture
async def users(repo):
    """A small cast: an admin, a moderator, a basic-plan organiser and two free players."""
    return {
        "admin": await make_user(repo, "Ada Admin", role=Role.ADMIN, plan=Plan.ADVANCED),
        "mod": await make_user(repo, "Max Moderator", role=Role.MODERATOR, plan=Plan.BASIC),
        "org": await make_user(repo, "Olga Organiser", plan=Plan.BASIC),
        "alice": await make_user(repo, "Alice Alpha"),
        "bob": await make_user(repo, "Bob Beta"),
    }
