"""DataLoaders for N+1 query prevention, backed by the shared Redis cache.

Provides six batch loaders:
- user_loader: users by id
- task_loader: tasks by id
- tasks_by_creator_loader: task lists by creator id
- tasks_by_assignee_loader: task lists by assignee id
- comments_by_task_loader: comment lists by task id
- comments_by_user_loader: comment lists by author id

All loads issued before the event loop gets control back land in one batch.
A batch does one Redis MGET for its distinct ids and at most one origin
query for the ids Redis did not have. Loaders cache their futures, so the
same id loaded twice in one operation resolves from the same batch.

Example:
    ctx = DataLoaderContext(cache, origin, ttl_policy)

    creator, assignee = await asyncio.gather(
        ctx.user_loader.load(task["created_by"]),
        ctx.user_loader.load(task["assigned_to"]),
    )
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from strawberry.dataloader import DataLoader

from taskhub.cache.keys import Namespace, build_key
from taskhub.cache.redis import RedisCache
from taskhub.cache.ttl import CacheKind, TtlPolicy
from taskhub.observability.metrics import record_batch, record_cache_hit, record_cache_miss
from taskhub.persistence.origin import OriginStore, Row
from taskhub.persistence.repositories import (
    CommentRepository,
    TaskRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

BatchFetch = Callable[[Sequence[str]], Awaitable[list[Row]]]


@dataclass(frozen=True)
class LoaderDefinition:
    """How one loader maps ids to cache keys and origin rows.

    Attributes:
        name: Loader name, used for metrics and logs
        namespace: Cache namespace for per-id entries
        kind: TTL kind for entries written by this loader
        fetch: Origin query selecting rows for a set of ids
        key_field: Row field holding the id the row belongs to
        many: One-to-many (list per id) instead of one-to-one
    """

    name: str
    namespace: str
    kind: CacheKind
    fetch: BatchFetch
    key_field: str = "id"
    many: bool = False


def _group(rows: list[Row], ids: list[str], definition: LoaderDefinition) -> dict[str, Any]:
    """Map every requested id to its row (or list of rows).

    Ids without rows map to None for one-to-one loaders and to an empty
    list for one-to-many loaders.
    """
    if definition.many:
        lists: dict[str, list[Row]] = {id_: [] for id_ in ids}
        for row in rows:
            owner = str(row[definition.key_field])
            if owner in lists:
                lists[owner].append(row)
        return lists

    singles: dict[str, Row | None] = dict.fromkeys(ids)
    for row in rows:
        owner = str(row[definition.key_field])
        if owner in singles:
            singles[owner] = row
    return singles


async def batch_load(
    ids: Sequence[Any],
    definition: LoaderDefinition,
    cache: RedisCache,
    ttl_policy: TtlPolicy,
) -> list[Any]:
    """Resolve a batch of ids through Redis, then the origin store.

    Args:
        ids: Requested ids in request order, possibly with duplicates
        definition: Loader definition
        cache: Shared cache client
        ttl_policy: TTL lookup for newly cached entries

    Returns:
        One result per requested id, in the same order as ``ids``
    """
    requested = [str(id_) for id_ in ids]
    unique = list(dict.fromkeys(requested))
    if not unique:
        return []

    record_batch(definition.name, len(unique))
    keys = [build_key(definition.namespace, id_) for id_ in unique]
    cached = await cache.multi_get(keys)

    resolved: dict[str, Any] = {}
    missing: list[str] = []
    for id_, value in zip(unique, cached):
        if value is None:
            missing.append(id_)
            record_cache_miss(definition.namespace)
        else:
            resolved[id_] = value
            record_cache_hit(definition.namespace)

    if missing:
        rows = await definition.fetch(missing)
        fetched = _group(rows, missing, definition)
        resolved.update(fetched)

        fresh = {
            build_key(definition.namespace, id_): value
            for id_, value in fetched.items()
            if value is not None
        }
        await cache.set_many(fresh, ttl_policy.ttl_for(definition.kind))

    logger.debug(
        f"{definition.name}: {len(requested)} load(s), {len(unique) - len(missing)} cached, "
        f"{len(missing)} from origin"
    )
    return [resolved[id_] for id_ in requested]


class DataLoaderContext:
    """Per-operation bundle of the six loaders.

    Create one per logical operation (API request). Loaders remember the
    ids they resolved for the lifetime of this object only; nothing is
    shared between operations except the Redis entries.
    """

    def __init__(
        self,
        cache: RedisCache,
        origin: OriginStore,
        ttl_policy: TtlPolicy | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        """Initialize context with fresh dataloaders.

        Args:
            cache: Shared Redis cache client
            origin: Origin store for cache misses
            ttl_policy: TTLs for entries populated by the loaders
            max_batch_size: Split batches above this many ids
        """
        self.cache = cache
        self.origin = origin
        self.ttl_policy = ttl_policy or TtlPolicy()
        self.max_batch_size = max_batch_size
        self.definitions = self._create_definitions()
        self._loaders = {
            name: self._create_loader(definition) for name, definition in self.definitions.items()
        }

    def _create_definitions(self) -> dict[str, LoaderDefinition]:
        users = UserRepository(self.origin)
        tasks = TaskRepository(self.origin)
        comments = CommentRepository(self.origin)
        return {
            "user_loader": LoaderDefinition(
                name="user_loader",
                namespace=Namespace.USER,
                kind=CacheKind.USER,
                fetch=users.get_by_ids,
            ),
            "task_loader": LoaderDefinition(
                name="task_loader",
                namespace=Namespace.TASK,
                kind=CacheKind.TASK,
                fetch=tasks.get_by_ids,
            ),
            "tasks_by_creator_loader": LoaderDefinition(
                name="tasks_by_creator_loader",
                namespace=Namespace.TASKS_CREATOR,
                kind=CacheKind.LIST,
                fetch=tasks.get_by_creators,
                key_field="created_by",
                many=True,
            ),
            "tasks_by_assignee_loader": LoaderDefinition(
                name="tasks_by_assignee_loader",
                namespace=Namespace.TASKS_ASSIGNEE,
                kind=CacheKind.LIST,
                fetch=tasks.get_by_assignees,
                key_field="assigned_to",
                many=True,
            ),
            "comments_by_task_loader": LoaderDefinition(
                name="comments_by_task_loader",
                namespace=Namespace.COMMENTS_TASK,
                kind=CacheKind.LIST,
                fetch=comments.get_by_tasks,
                key_field="task_id",
                many=True,
            ),
            "comments_by_user_loader": LoaderDefinition(
                name="comments_by_user_loader",
                namespace=Namespace.COMMENTS_BYUSER,
                kind=CacheKind.LIST,
                fetch=comments.get_by_users,
                key_field="user_id",
                many=True,
            ),
        }

    def _create_loader(self, definition: LoaderDefinition) -> DataLoader[str, Any]:
        return DataLoader(
            load_fn=lambda keys: batch_load(keys, definition, self.cache, self.ttl_policy),
            max_batch_size=self.max_batch_size,
        )

    @property
    def user_loader(self) -> DataLoader[str, Row | None]:
        """Get the user dataloader."""
        return self._loaders["user_loader"]

    @property
    def task_loader(self) -> DataLoader[str, Row | None]:
        """Get the task dataloader."""
        return self._loaders["task_loader"]

    @property
    def tasks_by_creator_loader(self) -> DataLoader[str, list[Row]]:
        return self._loaders["tasks_by_creator_loader"]

    @property
    def tasks_by_assignee_loader(self) -> DataLoader[str, list[Row]]:
        return self._loaders["tasks_by_assignee_loader"]

    @property
    def comments_by_task_loader(self) -> DataLoader[str, list[Row]]:
        return self._loaders["comments_by_task_loader"]

    @property
    def comments_by_user_loader(self) -> DataLoader[str, list[Row]]:
        return self._loaders["comments_by_user_loader"]
