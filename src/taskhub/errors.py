"""Error taxonomy for the data-access layer.

Only origin failures are meant to reach resolvers. Cache failures are
contained inside the cache client unless a call site explicitly asks for
confirmation with ``strict=True``.
"""

from __future__ import annotations


class DataLayerError(Exception):
    """Base class for all data-access layer errors."""


class CacheUnavailableError(DataLayerError):
    """The shared cache store could not be reached or returned garbage."""

    def __init__(self, operation: str, target: str, cause: BaseException | None = None):
        self.operation = operation
        self.target = target
        self.cause = cause
        super().__init__(f"Cache {operation} failed for {target}: {cause}")


class OriginQueryError(DataLayerError):
    """The authoritative store failed to answer a query."""


class EntityNotFoundError(DataLayerError):
    """A write targeted a row that does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidationError(DataLayerError):
    """One or more stale cache entries could not be removed."""

    def __init__(self, entity: str, failed: list[str]):
        self.entity = entity
        self.failed = failed
        super().__init__(f"Invalidation for {entity} left {len(failed)} target(s) stale: {failed}")


class KeyConstructionError(DataLayerError, ValueError):
    """A cache key was requested with a missing namespace."""
