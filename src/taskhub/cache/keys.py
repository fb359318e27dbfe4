"""Cache key schema for taskhub.

Key format: {namespace}:{part}:{part}...

Where:
- namespace: entity kind ("user", "task", "comment") or list/aggregate kind
  ("tasks:assignee", "stats", ...)
- parts: identifiers, page/limit markers and serialized filter descriptors,
  in caller-supplied order

Namespaces are shared with every process pointed at the same Redis, so the
strings below must not change between deployments.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from taskhub.errors import KeyConstructionError

DELIMITER = ":"
WILDCARD = "*"


class Namespace:
    """Stable namespace strings."""

    USER = "user"
    TASK = "task"
    COMMENT = "comment"
    TASKS = "tasks"
    COMMENTS = "comments"
    USERS_ALL = "users:all"
    TASKS_ALL = "tasks:all"
    COMMENTS_ALL = "comments:all"
    TASKS_MY = "tasks:my"
    TASKS_CREATOR = "tasks:creator"
    TASKS_ASSIGNEE = "tasks:assignee"
    TASKS_STATUS = "tasks:status"
    TASKS_PRIORITY = "tasks:priority"
    COMMENTS_TASK = "comments:task"
    COMMENTS_BYUSER = "comments:byuser"
    STATS = "stats"
    SEARCH = "search"


def _keep(part: Any) -> bool:
    return bool(part)


def build_key(namespace: str, *parts: Any) -> str:
    """Join a namespace and its parts into a cache key.

    Falsy parts (None, "", 0, False) are dropped so optional segments never
    produce adjacent delimiters. Order is preserved exactly as given.

    Raises:
        KeyConstructionError: If namespace is empty or blank.
    """
    if not isinstance(namespace, str) or not namespace.strip():
        raise KeyConstructionError(f"Cache key namespace must be non-empty, got {namespace!r}")
    return DELIMITER.join([namespace, *(str(p) for p in parts if _keep(p))])


def build_pattern(namespace: str, *parts: Any) -> str:
    """Glob pattern matching every key nested under namespace + parts."""
    return build_key(namespace, *parts, WILDCARD)


def filter_descriptor(filters: Mapping[str, Any] | None) -> str | None:
    """Serialize a filter mapping into a deterministic key part.

    Fields are sorted by name and unset fields skipped, so equivalent
    filters always share a key. Returns None when nothing is set.
    """
    if not filters:
        return None
    pairs = [f"{name}={value}" for name, value in sorted(filters.items()) if _keep(value)]
    return ",".join(pairs) or None


class CacheKeys:
    """Typed helpers for the keys read by loaders and readers."""

    @staticmethod
    def page(page: int, limit: int) -> tuple[str, str]:
        return (f"page:{page}", f"limit:{limit}")

    @classmethod
    def user(cls, user_id: Any) -> str:
        return build_key(Namespace.USER, user_id)

    @classmethod
    def task(cls, task_id: Any) -> str:
        return build_key(Namespace.TASK, task_id)

    @classmethod
    def comment(cls, comment_id: Any) -> str:
        return build_key(Namespace.COMMENT, comment_id)

    @classmethod
    def users_list(cls, page: int, limit: int) -> str:
        return build_key(Namespace.USERS_ALL, *cls.page(page, limit))

    @classmethod
    def users_search(cls, term: str, page: int, limit: int) -> str:
        """Key for a user name search.

        The lowercased term is part of the key; searches that differ only by
        case hit the same entry since the origin match is case-insensitive.
        """
        return build_key(Namespace.SEARCH, "users", term.strip().lower(), *cls.page(page, limit))

    @classmethod
    def tasks_list(cls, filters: Mapping[str, Any] | None, page: int, limit: int) -> str:
        return build_key(Namespace.TASKS_ALL, filter_descriptor(filters), *cls.page(page, limit))

    @classmethod
    def tasks_by_status(cls, status: str, page: int, limit: int) -> str:
        return build_key(Namespace.TASKS_STATUS, status, *cls.page(page, limit))

    @classmethod
    def tasks_by_priority(cls, priority: str, page: int, limit: int) -> str:
        return build_key(Namespace.TASKS_PRIORITY, priority, *cls.page(page, limit))

    @classmethod
    def my_tasks(cls, actor_id: Any, page: int, limit: int) -> str:
        return build_key(Namespace.TASKS_MY, actor_id, *cls.page(page, limit))

    @classmethod
    def tasks_by_creator(
        cls, user_id: Any, page: int | None = None, limit: int | None = None
    ) -> str:
        """Key for tasks created by a user.

        Without page/limit this is the loader entry holding the full list.
        """
        paging = cls.page(page, limit) if page is not None and limit is not None else ()
        return build_key(Namespace.TASKS_CREATOR, user_id, *paging)

    @classmethod
    def tasks_by_assignee(
        cls, user_id: Any, page: int | None = None, limit: int | None = None
    ) -> str:
        paging = cls.page(page, limit) if page is not None and limit is not None else ()
        return build_key(Namespace.TASKS_ASSIGNEE, user_id, *paging)

    @classmethod
    def comments_list(cls, page: int, limit: int) -> str:
        return build_key(Namespace.COMMENTS_ALL, *cls.page(page, limit))

    @classmethod
    def comments_by_task(
        cls, task_id: Any, page: int | None = None, limit: int | None = None
    ) -> str:
        paging = cls.page(page, limit) if page is not None and limit is not None else ()
        return build_key(Namespace.COMMENTS_TASK, task_id, *paging)

    @classmethod
    def comment_count(cls, task_id: Any) -> str:
        return build_key(Namespace.COMMENTS_TASK, task_id, "count")

    @classmethod
    def comments_by_user(
        cls, user_id: Any, page: int | None = None, limit: int | None = None
    ) -> str:
        paging = cls.page(page, limit) if page is not None and limit is not None else ()
        return build_key(Namespace.COMMENTS_BYUSER, user_id, *paging)

    @classmethod
    def user_stats(cls, user_id: Any) -> str:
        return build_key(Namespace.STATS, "user", user_id)

    @classmethod
    def global_stats(cls) -> str:
        return build_key(Namespace.STATS, "global")

    @classmethod
    def parse_key(cls, key: str) -> dict[str, Any] | None:
        """Split a key into its namespace and remaining parts.

        Two-segment namespaces ("tasks:assignee") are recognised before
        single-segment ones. Returns None for keys outside the catalogue.
        """
        segments = key.split(DELIMITER)
        if len(segments) >= 2:
            compound = DELIMITER.join(segments[:2])
            if compound in _COMPOUND_NAMESPACES:
                return {"namespace": compound, "parts": segments[2:]}
        if segments[0] in _SIMPLE_NAMESPACES and len(segments) >= 2:
            return {"namespace": segments[0], "parts": segments[1:]}
        return None


_ALL_NAMESPACES = {
    value for name, value in vars(Namespace).items() if not name.startswith("_")
}
_COMPOUND_NAMESPACES = {ns for ns in _ALL_NAMESPACES if DELIMITER in ns}
_SIMPLE_NAMESPACES = _ALL_NAMESPACES - _COMPOUND_NAMESPACES
