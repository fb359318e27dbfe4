"""Cache lifetimes per entity/query kind."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from taskhub.config import Settings
from taskhub.config import settings as default_settings


class CacheKind(str, Enum):
    """Kinds of cached data that carry their own TTL."""

    USER = "user"
    TASK = "task"
    COMMENT = "comment"
    LIST = "list"
    STATS = "stats"
    SEARCH = "search"
    DEFAULT = "default"


DEFAULT_TTLS: dict[CacheKind, int] = {
    CacheKind.USER: 3600,
    CacheKind.TASK: 600,
    CacheKind.COMMENT: 300,
    CacheKind.LIST: 300,
    CacheKind.STATS: 180,
    CacheKind.SEARCH: 300,
    CacheKind.DEFAULT: 3600,
}


class TtlPolicy:
    """Maps a cache kind to a TTL in seconds, falling back to the default entry.

    Overrides of zero or less are ignored, so an unset or zeroed
    CACHE_*_TTL keeps the built-in lifetime for that kind.
    """

    def __init__(self, table: Mapping[CacheKind | str, int] | None = None):
        merged: dict[str, int] = {kind.value: ttl for kind, ttl in DEFAULT_TTLS.items()}
        for kind, ttl in (table or {}).items():
            if int(ttl) <= 0:
                continue
            merged[kind.value if isinstance(kind, CacheKind) else str(kind)] = int(ttl)
        self._table = merged

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TtlPolicy:
        s = settings or default_settings
        return cls(
            {
                CacheKind.USER: s.cache_user_ttl,
                CacheKind.TASK: s.cache_task_ttl,
                CacheKind.COMMENT: s.cache_comment_ttl,
                CacheKind.LIST: s.cache_list_ttl,
                CacheKind.STATS: s.cache_stats_ttl,
                CacheKind.SEARCH: s.cache_search_ttl,
                CacheKind.DEFAULT: s.cache_default_ttl,
            }
        )

    def ttl_for(self, kind: CacheKind | str) -> int:
        key = kind.value if isinstance(kind, CacheKind) else kind
        return self._table.get(key, self._table[CacheKind.DEFAULT.value])

    def as_dict(self) -> dict[str, int]:
        return dict(self._table)
