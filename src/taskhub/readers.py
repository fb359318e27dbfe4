"""Cached read queries.

Every query that is not a plain id lookup goes through read_through with a
key from CacheKeys. Id lookups inside one operation should prefer the
loaders on DataLoaderContext, which batch across concurrent callers.
"""

from __future__ import annotations

from typing import Any

from taskhub.cache.keys import CacheKeys
from taskhub.cache.read_through import FetchFn, T, read_through
from taskhub.cache.redis import RedisCache
from taskhub.cache.ttl import CacheKind, TtlPolicy
from taskhub.persistence.origin import OriginStore, Row
from taskhub.persistence.repositories import (
    CommentRepository,
    Page,
    TaskFilter,
    TaskRepository,
    UserRepository,
)


class BaseReader:
    """Shared cache plumbing for the entity readers."""

    def __init__(self, cache: RedisCache, origin: OriginStore, ttl_policy: TtlPolicy):
        self.cache = cache
        self.origin = origin
        self.ttl_policy = ttl_policy

    async def _cached(self, key: str, kind: CacheKind, fetch_fn: FetchFn[T]) -> T | None:
        return await read_through(self.cache, key, fetch_fn, self.ttl_policy.ttl_for(kind))


class UserReader(BaseReader):
    def __init__(self, cache: RedisCache, origin: OriginStore, ttl_policy: TtlPolicy):
        super().__init__(cache, origin, ttl_policy)
        self.repo = UserRepository(origin)

    async def get(self, user_id: str) -> Row | None:
        return await self._cached(
            CacheKeys.user(user_id), CacheKind.USER, lambda: self.repo.get(user_id)
        )

    async def list_users(self, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.users_list(page, limit), CacheKind.LIST, lambda: self.repo.list_all(paging)
        )
        return rows or []

    async def search(self, term: str, page: int = 1, limit: int = 10) -> list[Row]:
        """Case-insensitive substring search on user names."""
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.users_search(term, page, limit),
            CacheKind.SEARCH,
            lambda: self.repo.search(term, paging),
        )
        return rows or []


class TaskReader(BaseReader):
    """Task queries.

    ``actor_id`` is the authenticated user and scopes my_tasks and
    created_by_me. Readers built without one reject those two queries.
    """

    def __init__(
        self,
        cache: RedisCache,
        origin: OriginStore,
        ttl_policy: TtlPolicy,
        actor_id: str | None = None,
    ):
        super().__init__(cache, origin, ttl_policy)
        self.repo = TaskRepository(origin)
        self.actor_id = actor_id

    def _require_actor(self) -> str:
        if not self.actor_id:
            raise ValueError("This query needs an authenticated actor")
        return self.actor_id

    async def get(self, task_id: str) -> Row | None:
        return await self._cached(
            CacheKeys.task(task_id), CacheKind.TASK, lambda: self.repo.get(task_id)
        )

    async def list_tasks(
        self, filters: TaskFilter | None = None, page: int = 1, limit: int = 10
    ) -> list[Row]:
        filters = filters or TaskFilter()
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.tasks_list(filters.as_dict(), page, limit),
            CacheKind.LIST,
            lambda: self.repo.list_all(filters, paging),
        )
        return rows or []

    async def by_status(self, status: str, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.tasks_by_status(status, page, limit),
            CacheKind.LIST,
            lambda: self.repo.by_status(status, paging),
        )
        return rows or []

    async def by_priority(self, priority: str, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.tasks_by_priority(priority, page, limit),
            CacheKind.LIST,
            lambda: self.repo.by_priority(priority, paging),
        )
        return rows or []

    async def my_tasks(self, page: int = 1, limit: int = 10) -> list[Row]:
        """Tasks assigned to the actor."""
        actor = self._require_actor()
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.my_tasks(actor, page, limit),
            CacheKind.LIST,
            lambda: self.repo.by_assignee(actor, paging),
        )
        return rows or []

    async def created_by_me(self, page: int = 1, limit: int = 10) -> list[Row]:
        actor = self._require_actor()
        return await self.by_creator(actor, page, limit)

    async def by_creator(self, user_id: str, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.tasks_by_creator(user_id, page, limit),
            CacheKind.LIST,
            lambda: self.repo.by_creator(user_id, paging),
        )
        return rows or []

    async def by_assignee(self, user_id: str, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.tasks_by_assignee(user_id, page, limit),
            CacheKind.LIST,
            lambda: self.repo.by_assignee(user_id, paging),
        )
        return rows or []

    async def user_stats(self, user_id: str | None = None) -> dict[str, Any]:
        """Status and priority counts for tasks assigned to a user (default: the actor)."""
        target = user_id or self._require_actor()
        stats = await self._cached(
            CacheKeys.user_stats(target), CacheKind.STATS, lambda: self.repo.stats(target)
        )
        return stats or {}

    async def global_stats(self) -> dict[str, Any]:
        stats = await self._cached(CacheKeys.global_stats(), CacheKind.STATS, self.repo.stats)
        return stats or {}


class CommentReader(BaseReader):
    def __init__(self, cache: RedisCache, origin: OriginStore, ttl_policy: TtlPolicy):
        super().__init__(cache, origin, ttl_policy)
        self.repo = CommentRepository(origin)

    async def get(self, comment_id: str) -> Row | None:
        return await self._cached(
            CacheKeys.comment(comment_id), CacheKind.COMMENT, lambda: self.repo.get(comment_id)
        )

    async def list_comments(self, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.comments_list(page, limit),
            CacheKind.LIST,
            lambda: self.repo.list_all(paging),
        )
        return rows or []

    async def by_task(self, task_id: str, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.comments_by_task(task_id, page, limit),
            CacheKind.LIST,
            lambda: self.repo.by_task(task_id, paging),
        )
        return rows or []

    async def by_user(self, user_id: str, page: int = 1, limit: int = 10) -> list[Row]:
        paging = Page(page, limit)
        rows = await self._cached(
            CacheKeys.comments_by_user(user_id, page, limit),
            CacheKind.LIST,
            lambda: self.repo.by_user(user_id, paging),
        )
        return rows or []

    async def count(self, task_id: str) -> int:
        """Number of comments on a task."""
        total = await self._cached(
            CacheKeys.comment_count(task_id),
            CacheKind.LIST,
            lambda: self.repo.count_for_task(task_id),
        )
        return total or 0
