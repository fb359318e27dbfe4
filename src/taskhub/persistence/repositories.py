"""Repositories for origin store access.

Every method issues exactly one statement through the OriginStore:
- Batch methods select all rows whose key is in a given set, used by the
  loaders to answer a whole batch with one round trip
- List methods serve paginated and filtered reads behind read_through
- Write methods return the affected row via RETURNING so callers can
  describe the change for invalidation
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.sql import Select

from taskhub.persistence.origin import OriginStore, Row
from taskhub.persistence.tables import (
    COMMENT_COLUMNS,
    TASK_COLUMNS,
    USER_COLUMNS,
    CommentTable,
    TaskPriority,
    TaskStatus,
    TaskTable,
    UserTable,
)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Page:
    """1-based page number and page size."""

    page: int = 1
    limit: int = 10

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {self.limit}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, stmt: Select[Any]) -> Select[Any]:
        return stmt.limit(self.limit).offset(self.offset)


@dataclass(frozen=True)
class TaskFilter:
    """Optional equality filters for task listings."""

    status: str | None = None
    priority: str | None = None
    assigned_to: str | None = None
    created_by: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {name: value for name, value in asdict(self).items() if value}


class BaseRepository:
    """Base repository holding the origin store."""

    def __init__(self, origin: OriginStore):
        self.origin = origin

    async def _first(self, stmt: Any) -> Row | None:
        rows = await self.origin.query(stmt)
        return rows[0] if rows else None

    async def _write_one(self, stmt: Any) -> Row | None:
        rows = await self.origin.execute(stmt)
        return rows[0] if rows else None


class UserRepository(BaseRepository):
    """Repository for users."""

    async def get_by_ids(self, ids: Sequence[str]) -> list[Row]:
        if not ids:
            return []
        stmt = select(*USER_COLUMNS).where(UserTable.id.in_(list(ids)))
        return await self.origin.query(stmt)

    async def get(self, user_id: str) -> Row | None:
        return await self._first(select(*USER_COLUMNS).where(UserTable.id == user_id))

    async def list_all(self, page: Page) -> list[Row]:
        stmt = select(*USER_COLUMNS).order_by(UserTable.created_at.desc(), UserTable.id)
        return await self.origin.query(page.apply(stmt))

    async def search(self, term: str, page: Page) -> list[Row]:
        stmt = (
            select(*USER_COLUMNS)
            .where(UserTable.name.ilike(f"%{term.strip()}%"))
            .order_by(UserTable.name, UserTable.id)
        )
        return await self.origin.query(page.apply(stmt))

    async def create(self, name: str, email: str, password_hash: str = "") -> Row:
        stmt = (
            insert(UserTable)
            .values(name=name, email=email, password_hash=password_hash)
            .returning(*USER_COLUMNS)
        )
        row = await self._write_one(stmt)
        assert row is not None  # INSERT ... RETURNING always yields the row
        return row

    async def update(self, user_id: str, values: dict[str, Any]) -> Row | None:
        stmt = (
            update(UserTable)
            .where(UserTable.id == user_id)
            .values(**values)
            .returning(*USER_COLUMNS)
        )
        return await self._write_one(stmt)

    async def delete(self, user_id: str) -> Row | None:
        stmt = delete(UserTable).where(UserTable.id == user_id).returning(*USER_COLUMNS)
        return await self._write_one(stmt)


class TaskRepository(BaseRepository):
    """Repository for tasks."""

    def _select(self) -> Select[Any]:
        return select(*TASK_COLUMNS).order_by(TaskTable.created_at.desc(), TaskTable.id)

    async def get_by_ids(self, ids: Sequence[str]) -> list[Row]:
        if not ids:
            return []
        stmt = select(*TASK_COLUMNS).where(TaskTable.id.in_(list(ids)))
        return await self.origin.query(stmt)

    async def get_by_creators(self, user_ids: Sequence[str]) -> list[Row]:
        if not user_ids:
            return []
        return await self.origin.query(
            self._select().where(TaskTable.created_by.in_(list(user_ids)))
        )

    async def get_by_assignees(self, user_ids: Sequence[str]) -> list[Row]:
        if not user_ids:
            return []
        return await self.origin.query(
            self._select().where(TaskTable.assigned_to.in_(list(user_ids)))
        )

    async def get(self, task_id: str) -> Row | None:
        return await self._first(select(*TASK_COLUMNS).where(TaskTable.id == task_id))

    async def list_all(self, filters: TaskFilter, page: Page) -> list[Row]:
        stmt = self._select()
        for name, value in filters.as_dict().items():
            stmt = stmt.where(getattr(TaskTable, name) == value)
        return await self.origin.query(page.apply(stmt))

    async def by_status(self, status: str, page: Page) -> list[Row]:
        return await self.origin.query(
            page.apply(self._select().where(TaskTable.status == status))
        )

    async def by_priority(self, priority: str, page: Page) -> list[Row]:
        return await self.origin.query(
            page.apply(self._select().where(TaskTable.priority == priority))
        )

    async def by_assignee(self, user_id: str, page: Page) -> list[Row]:
        return await self.origin.query(
            page.apply(self._select().where(TaskTable.assigned_to == user_id))
        )

    async def by_creator(self, user_id: str, page: Page) -> list[Row]:
        return await self.origin.query(
            page.apply(self._select().where(TaskTable.created_by == user_id))
        )

    async def stats(self, user_id: str | None = None) -> dict[str, Any]:
        """Status and priority counts, for one assignee or for all tasks."""
        columns = [func.count().label("total")]
        columns += [
            func.count().filter(TaskTable.status == s.value).label(s.value.lower())
            for s in TaskStatus
        ]
        columns += [
            func.count().filter(TaskTable.priority == p.value).label(p.value.lower())
            for p in TaskPriority
        ]
        stmt = select(*columns).select_from(TaskTable)
        if user_id is not None:
            stmt = stmt.where(TaskTable.assigned_to == user_id)

        row = await self._first(stmt) or {}

        def count(name: str) -> int:
            return int(row.get(name) or 0)

        return {
            "total_tasks": count("total"),
            "pending_tasks": count("pending"),
            "in_progress_tasks": count("in_progress"),
            "completed_tasks": count("completed"),
            "cancelled_tasks": count("cancelled"),
            "tasks_by_priority": {p.value.lower(): count(p.value.lower()) for p in TaskPriority},
        }

    async def create(self, values: dict[str, Any]) -> Row:
        row = await self._write_one(insert(TaskTable).values(**values).returning(*TASK_COLUMNS))
        assert row is not None  # INSERT ... RETURNING always yields the row
        return row

    async def update(self, task_id: str, values: dict[str, Any]) -> Row | None:
        stmt = (
            update(TaskTable)
            .where(TaskTable.id == task_id)
            .values(**values)
            .returning(*TASK_COLUMNS)
        )
        return await self._write_one(stmt)

    async def delete(self, task_id: str) -> Row | None:
        stmt = delete(TaskTable).where(TaskTable.id == task_id).returning(*TASK_COLUMNS)
        return await self._write_one(stmt)


class CommentRepository(BaseRepository):
    """Repository for comments."""

    def _select(self) -> Select[Any]:
        return select(*COMMENT_COLUMNS).order_by(CommentTable.created_at.desc(), CommentTable.id)

    async def get(self, comment_id: str) -> Row | None:
        return await self._first(select(*COMMENT_COLUMNS).where(CommentTable.id == comment_id))

    async def get_by_tasks(self, task_ids: Sequence[str]) -> list[Row]:
        if not task_ids:
            return []
        return await self.origin.query(
            self._select().where(CommentTable.task_id.in_(list(task_ids)))
        )

    async def get_by_users(self, user_ids: Sequence[str]) -> list[Row]:
        if not user_ids:
            return []
        return await self.origin.query(
            self._select().where(CommentTable.user_id.in_(list(user_ids)))
        )

    async def list_all(self, page: Page) -> list[Row]:
        return await self.origin.query(page.apply(self._select()))

    async def by_task(self, task_id: str, page: Page) -> list[Row]:
        return await self.origin.query(
            page.apply(self._select().where(CommentTable.task_id == task_id))
        )

    async def by_user(self, user_id: str, page: Page) -> list[Row]:
        return await self.origin.query(
            page.apply(self._select().where(CommentTable.user_id == user_id))
        )

    async def count_for_task(self, task_id: str) -> int:
        stmt = (
            select(func.count().label("count"))
            .select_from(CommentTable)
            .where(CommentTable.task_id == task_id)
        )
        row = await self._first(stmt)
        return int(row["count"]) if row else 0

    async def create(self, task_id: str, user_id: str, text: str) -> Row:
        stmt = (
            insert(CommentTable)
            .values(task_id=task_id, user_id=user_id, text=text)
            .returning(*COMMENT_COLUMNS)
        )
        row = await self._write_one(stmt)
        assert row is not None  # INSERT ... RETURNING always yields the row
        return row

    async def update(self, comment_id: str, text: str) -> Row | None:
        stmt = (
            update(CommentTable)
            .where(CommentTable.id == comment_id)
            .values(text=text)
            .returning(*COMMENT_COLUMNS)
        )
        return await self._write_one(stmt)

    async def delete(self, comment_id: str) -> Row | None:
        stmt = delete(CommentTable).where(CommentTable.id == comment_id).returning(*COMMENT_COLUMNS)
        return await self._write_one(stmt)
