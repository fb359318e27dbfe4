"""Origin store interface.

The cache layer only needs "issue one statement, await its rows". Rows come
back as plain dicts with JSON-native values (UUIDs and datetimes as
strings), so a value served from Redis is indistinguishable from one
fetched fresh.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql import Executable

from taskhub.errors import OriginQueryError
from taskhub.observability.metrics import record_origin_query

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Params = Mapping[str, Any] | None


class OriginStore(Protocol):
    """Authoritative store queried on cache misses."""

    async def query(self, statement: Executable, params: Params = None) -> list[Row]:
        """Run a read statement and return its rows."""
        ...

    async def execute(self, statement: Executable, params: Params = None) -> list[Row]:
        """Run a write statement in its own transaction, returning RETURNING rows."""
        ...


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


async def _run(conn: AsyncConnection, statement: Executable, params: Params) -> Any:
    if params:
        return await conn.execute(statement, dict(params))
    return await conn.execute(statement)


def to_record(mapping: Mapping[str, Any]) -> Row:
    """Convert a result mapping into a JSON-native dict."""
    return {key: _jsonable(value) for key, value in mapping.items()}


class SqlOriginStore:
    """OriginStore backed by a SQLAlchemy async engine."""

    def __init__(self, engine: AsyncEngine, source: str = "sql"):
        self.engine = engine
        self.source = source

    async def query(self, statement: Executable, params: Params = None) -> list[Row]:
        record_origin_query(self.source)
        try:
            async with self.engine.connect() as conn:
                result = await _run(conn, statement, params)
                return [to_record(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            logger.error(f"Origin query failed: {e}")
            raise OriginQueryError(str(e)) from e

    async def execute(self, statement: Executable, params: Params = None) -> list[Row]:
        record_origin_query(self.source)
        try:
            async with self.engine.begin() as conn:
                result = await _run(conn, statement, params)
                if not result.returns_rows:
                    return []
                return [to_record(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            logger.error(f"Origin write failed: {e}")
            raise OriginQueryError(str(e)) from e
