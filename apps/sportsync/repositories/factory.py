"""
Storage backend selection.

Called once from the application lifespan. The choice is explicit
(STORAGE_BACKEND) and, in ``auto`` mode, falls back to the in-memory store when
the durable database cannot be initialized or fails its liveness probe.
"""

import logging
import os
from typing import Optional

from sportsync.database import db
from sportsync.repositories.base import Repository
from sportsync.repositories.memory_repository import MemoryRepository
from sportsync.repositories.sql_repository import SqlRepository

logger = logging.getLogger(__name__)

BACKEND_AUTO = "auto"
BACKEND_SQL = "sql"
BACKEND_MEMORY = "memory"
VALID_BACKENDS = (BACKEND_AUTO, BACKEND_SQL, BACKEND_MEMORY)


async def create_sql_repository(engine=None, session_factory=None) -> SqlRepository:
    """Create tables if missing and verify the database answers."""
    engine = engine or db.engine
    session_factory = session_factory or db.AsyncSessionLocal
    await db.init_database(engine)
    await db.ping_database(engine)
    return SqlRepository(session_factory, engine=engine)


async def create_repository(backend: Optional[str] = None) -> Repository:
    """
    Build the repository for this process.

    Args:
        backend: "auto", "sql" or "memory". Defaults to STORAGE_BACKEND (auto).

    Returns:
        A ready-to-use repository. In auto mode the returned repository carries
        a ``fallback_reason`` attribute when the memory store was substituted.

    Raises:
        ValueError: unknown backend name
        Exception: whatever the driver raises, when backend is "sql" and the
            database is unreachable
    """
    backend = (backend or os.getenv("STORAGE_BACKEND", BACKEND_AUTO)).strip().lower()
    if backend not in VALID_BACKENDS:
        raise ValueError(f"Unknown STORAGE_BACKEND '{backend}' (expected one of {VALID_BACKENDS})")

    if backend == BACKEND_MEMORY:
        logger.info("Using in-memory storage backend")
        return MemoryRepository()

    if backend == BACKEND_SQL:
        repository = await create_sql_repository()
        logger.info("Using SQL storage backend")
        return repository

    try:
        repository = await create_sql_repository()
        logger.info("Using SQL storage backend")
        return repository
    except Exception as e:
        logger.warning(
            f"Durable store unavailable ({type(e).__name__}: {e}); "
            "falling back to in-memory storage. Data will not survive a restart."
        )
        repository = MemoryRepository()
        repository.fallback_reason = str(e)
        return repository
