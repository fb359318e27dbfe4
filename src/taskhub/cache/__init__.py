"""Cache layer for taskhub.

Provides Redis caching with the cache-aside pattern:
- Deterministic key construction per namespace
- TTL policy per entity/query kind
- Read-through accessor for single keys
- Rule-driven invalidation after writes
"""

from taskhub.cache.invalidation import (
    ChangeType,
    EntityChange,
    EntityKind,
    FieldChange,
    InvalidationEngine,
    InvalidationPlan,
    InvalidationReport,
    InvalidationRule,
    Ref,
)
from taskhub.cache.keys import CacheKeys, Namespace, build_key, build_pattern
from taskhub.cache.read_through import read_through
from taskhub.cache.redis import TTL_MISSING, TTL_NO_EXPIRY, RedisCache, create_redis
from taskhub.cache.ttl import CacheKind, TtlPolicy

__all__ = [
    # Keys and TTLs
    "CacheKeys",
    "Namespace",
    "build_key",
    "build_pattern",
    "CacheKind",
    "TtlPolicy",
    # Client
    "RedisCache",
    "create_redis",
    "TTL_MISSING",
    "TTL_NO_EXPIRY",
    "read_through",
    # Invalidation
    "ChangeType",
    "EntityChange",
    "EntityKind",
    "FieldChange",
    "InvalidationEngine",
    "InvalidationPlan",
    "InvalidationReport",
    "InvalidationRule",
    "Ref",
]
