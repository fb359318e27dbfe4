"""Integration test fixtures.

Runs the real repositories against an in-memory SQLite database (aiosqlite)
and the cache against fakeredis, so batching, caching and invalidation are
exercised end to end without external services.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import event, insert
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Executable

from taskhub.cache.redis import RedisCache
from taskhub.cache.ttl import TtlPolicy
from taskhub.config import Settings
from taskhub.persistence.db import init_db
from taskhub.persistence.origin import Params, Row, SqlOriginStore
from taskhub.persistence.tables import CommentTable, TaskTable, UserTable
from taskhub.runtime import DataLayer

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


USERS = [
    {"id": "U1", "name": "Alice", "email": "alice@example.com", "created_at": at(0)},
    {"id": "U2", "name": "Bob", "email": "bob@example.com", "created_at": at(1)},
    {"id": "U3", "name": "Alicia", "email": "alicia@example.com", "created_at": at(2)},
]

TASKS = [
    {
        "id": "T1",
        "title": "Ship release",
        "status": "PENDING",
        "priority": "HIGH",
        "assigned_to": "U2",
        "created_by": "U1",
        "created_at": at(10),
    },
    {
        "id": "T2",
        "title": "Write docs",
        "status": "IN_PROGRESS",
        "priority": "LOW",
        "assigned_to": "U1",
        "created_by": "U1",
        "created_at": at(11),
    },
    {
        "id": "T3",
        "title": "Fix login",
        "status": "COMPLETED",
        "priority": "HIGH",
        "assigned_to": None,
        "created_by": "U2",
        "created_at": at(12),
    },
]

COMMENTS = [
    {"id": "C1", "task_id": "T1", "user_id": "U2", "text": "On it", "created_at": at(20)},
    {"id": "C2", "task_id": "T1", "user_id": "U1", "text": "Thanks", "created_at": at(21)},
    {"id": "C3", "task_id": "T2", "user_id": "U1", "text": "Draft up", "created_at": at(22)},
]


class CountingOrigin:
    """Origin store wrapper that counts read statements."""

    def __init__(self, inner: SqlOriginStore):
        self.inner = inner
        self.queries = 0

    async def query(self, statement: Executable, params: Params = None) -> list[Row]:
        self.queries += 1
        return await self.inner.query(statement, params)

    async def execute(self, statement: Executable, params: Params = None) -> list[Row]:
        return await self.inner.execute(statement, params)


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    # SQLite leaves ON DELETE actions off unless asked, unlike PostgreSQL
    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_db(engine)

    async with engine.begin() as conn:
        await conn.execute(insert(UserTable), [{**u, "password_hash": "x"} for u in USERS])
        await conn.execute(insert(TaskTable), [{"description": None, **t} for t in TASKS])
        await conn.execute(insert(CommentTable), COMMENTS)

    yield engine
    await engine.dispose()


@pytest.fixture
def origin(engine: AsyncEngine) -> CountingOrigin:
    return CountingOrigin(SqlOriginStore(engine, source="sqlite"))


@pytest.fixture
def layer(cache: RedisCache, origin: CountingOrigin, ttl_policy: TtlPolicy) -> DataLayer:
    return DataLayer(
        cache=cache,
        origin=origin,
        ttl_policy=ttl_policy,
        settings=Settings(_env_file=None),
    )

