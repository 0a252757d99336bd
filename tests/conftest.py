"""
Shared fixtures.

The environment is pinned BEFORE any eggconomy import so the `settings`
singleton never picks up a real database or a developer `.env`:
- no primary store configured (tests build their own)
- default business rules (5 listings/hour, 5 failed logins, 15 min lock)
"""

import os

for _var in ("DATABASE_URL", "DB_HOST", "DB_DATABASE_NAME", "FALLBACK_STORE_PATH"):
    os.environ.pop(_var, None)
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_USERNAMES"] = '["admin"]'
os.environ["LISTINGS_PER_HOUR"] = "5"
os.environ["MAX_FAILED_LOGINS"] = "5"
os.environ["LOCKOUT_MINUTES"] = "15"
os.environ["FRONTEND_URL"] = "http://localhost:3000"

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

import eggconomy.database.entities  # noqa: F401  (registers the tables on `metadata`)
from eggconomy.database.config.connection_engine import metadata
from eggconomy.database.core.policy import DegradationPolicy, reset_policy
from eggconomy.database.daos.fallback_store import FallbackStore
from eggconomy.database.daos.sql_record_store import SqlRecordStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fallback():
    """Empty, unpersisted fallback store."""
    return FallbackStore()


@pytest.fixture
def fallback_policy(fallback):
    """Policy with no primary store: everything runs on the fallback."""
    return DegradationPolicy(None, fallback)


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path):
    """SQLite (aiosqlite) database with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'primary.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def empty_engine(tmp_path):
    """SQLite database without any table, like a primary store never migrated."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(sqlite_engine):
    return SqlRecordStore(sqlite_engine)


@pytest.fixture
def primary_policy(sql_store, fallback):
    """Policy whose primary store is a migrated SQLite database."""
    return DegradationPolicy(sql_store, fallback)


@pytest.fixture
def unmigrated_policy(empty_engine, fallback):
    """Policy whose primary store is reachable but has no tables."""
    return DegradationPolicy(SqlRecordStore(empty_engine), fallback)


@pytest.fixture(autouse=True)
def fresh_policy_singleton():
    """Never leak the process-wide policy between tests."""
    reset_policy()
    yield
    reset_policy()
