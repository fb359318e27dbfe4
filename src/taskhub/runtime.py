"""Process and operation lifecycle for the data-access layer.

One DataLayer per process owns the Redis client and the database engine.
Each logical operation (an API request) gets its own Operation with fresh
loaders, so per-operation dedup never leaks between requests while the
Redis entries are shared by all of them.

Usage:
    async with open_data_layer() as layer:
        async with layer.operation(actor_id=user_id) as op:
            task = await op.loaders.task_loader.load(task_id)
            await op.task_writer.change_status(task_id, "COMPLETED")
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from taskhub.cache.invalidation import (
    EntityChange,
    EntityKind,
    InvalidationEngine,
    InvalidationReport,
)
from taskhub.cache.read_through import FetchFn, T, read_through
from taskhub.cache.redis import RedisCache, create_redis
from taskhub.cache.ttl import CacheKind, TtlPolicy
from taskhub.config import Settings
from taskhub.config import settings as default_settings
from taskhub.dataloaders import DataLoaderContext
from taskhub.observability.logging import LogContext
from taskhub.observability.metrics import get_metrics
from taskhub.persistence.db import close_db, create_engine
from taskhub.persistence.origin import OriginStore, SqlOriginStore
from taskhub.readers import CommentReader, TaskReader, UserReader
from taskhub.writers import CommentWriter, TaskWriter, UserWriter

logger = logging.getLogger(__name__)


@dataclass
class Operation:
    """Everything one logical operation reads and writes through."""

    operation_id: str
    actor_id: str | None
    loaders: DataLoaderContext
    users: UserReader
    tasks: TaskReader
    comments: CommentReader
    user_writer: UserWriter
    task_writer: TaskWriter
    comment_writer: CommentWriter


class DataLayer:
    """Process-scoped cache client, origin store and invalidation engine."""

    def __init__(
        self,
        cache: RedisCache,
        origin: OriginStore,
        ttl_policy: TtlPolicy | None = None,
        settings: Settings | None = None,
        engine: AsyncEngine | None = None,
    ):
        self.cache = cache
        self.origin = origin
        self.settings = settings or default_settings
        self.ttl_policy = ttl_policy or TtlPolicy.from_settings(self.settings)
        self.engine = engine
        self.invalidation = InvalidationEngine(cache)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DataLayer:
        """Create connections from configuration. Nothing connects until first use."""
        s = settings or default_settings
        get_metrics(s)
        engine = create_engine(s)
        cache = RedisCache(create_redis(s), scan_count=s.cache_scan_count)
        logger.info(f"Data layer created ({s.env})")
        return cls(
            cache=cache,
            origin=SqlOriginStore(engine),
            ttl_policy=TtlPolicy.from_settings(s),
            settings=s,
            engine=engine,
        )

    async def close(self) -> None:
        """Close the Redis pool and dispose of the engine."""
        await self.cache.close()
        if self.engine is not None:
            await close_db(self.engine)
        logger.info("Data layer closed")

    def loaders(self) -> DataLoaderContext:
        return DataLoaderContext(
            self.cache,
            self.origin,
            self.ttl_policy,
            max_batch_size=self.settings.loader_max_batch_size,
        )

    async def read_through(self, key: str, fetch_fn: FetchFn[T], kind: CacheKind) -> T | None:
        return await read_through(self.cache, key, fetch_fn, self.ttl_policy.ttl_for(kind))

    async def invalidate(self, kind: EntityKind, change: EntityChange) -> InvalidationReport:
        return await self.invalidation.invalidate(kind, change)

    @asynccontextmanager
    async def operation(self, actor_id: str | None = None) -> AsyncIterator[Operation]:
        """Scope one logical operation.

        Logs emitted inside the block carry the operation id and actor.
        """
        operation_id = str(uuid.uuid4())
        with LogContext(operation_id=operation_id, actor_id=actor_id):
            yield Operation(
                operation_id=operation_id,
                actor_id=actor_id,
                loaders=self.loaders(),
                users=UserReader(self.cache, self.origin, self.ttl_policy),
                tasks=TaskReader(self.cache, self.origin, self.ttl_policy, actor_id),
                comments=CommentReader(self.cache, self.origin, self.ttl_policy),
                user_writer=UserWriter(self.origin, self.invalidation, actor_id),
                task_writer=TaskWriter(self.origin, self.invalidation, actor_id),
                comment_writer=CommentWriter(self.origin, self.invalidation, actor_id),
            )


@asynccontextmanager
async def open_data_layer(settings: Settings | None = None) -> AsyncIterator[DataLayer]:
    """Create a DataLayer and close it on exit."""
    layer = DataLayer.from_settings(settings)
    try:
        yield layer
    finally:
        await layer.close()
