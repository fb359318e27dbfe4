"""Write handlers.

Each handler commits to the origin store, then invalidates the cache
entries the write made stale before returning. The row as it was before the
write is read from the origin (never from the cache) so the change record
carries true old values, e.g. the previous assignee of a reassigned task.

Invalidation failures do not fail the write; they are logged by the engine
and exposed on the writer as ``last_report``.
"""

from __future__ import annotations

import logging
from typing import Any

from taskhub.cache.invalidation import (
    ChangeType,
    EntityChange,
    EntityKind,
    InvalidationEngine,
    InvalidationReport,
)
from taskhub.errors import EntityNotFoundError
from taskhub.persistence.origin import OriginStore, Row
from taskhub.persistence.repositories import (
    CommentRepository,
    TaskRepository,
    UserRepository,
)
from taskhub.persistence.tables import TaskPriority, TaskStatus

logger = logging.getLogger(__name__)


class BaseWriter:
    """Commit-then-invalidate plumbing shared by the entity writers."""

    kind: EntityKind

    def __init__(
        self,
        origin: OriginStore,
        invalidation: InvalidationEngine,
        actor_id: str | None = None,
    ):
        self.origin = origin
        self.invalidation = invalidation
        self.actor_id = actor_id
        self.last_report: InvalidationReport | None = None

    def _require_actor(self) -> str:
        if not self.actor_id:
            raise ValueError(f"Writing a {self.kind.value} needs an authenticated actor")
        return self.actor_id

    async def _invalidate(self, change: EntityChange) -> None:
        self.last_report = await self.invalidation.invalidate(self.kind, change)
        logger.info(
            f"{self.kind.value} {change.change_type.value} {change.entity_id} committed",
            extra={
                "entity": self.kind.value,
                "entity_id": change.entity_id,
                "invalidated": self.last_report.deleted,
                "invalidation_failures": len(self.last_report.failed),
            },
        )

    async def _created(self, row: Row) -> Row:
        await self._invalidate(EntityChange.created(row["id"], row))
        return row

    async def _updated(
        self,
        before: Row,
        after: Row | None,
        change_type: ChangeType = ChangeType.UPDATE,
    ) -> Row:
        if after is None:
            raise EntityNotFoundError(self.kind.value, str(before["id"]))
        await self._invalidate(EntityChange.updated(after["id"], before, after, change_type))
        return after

    async def _deleted(self, entity_id: str, row: Row | None) -> Row:
        if row is None:
            raise EntityNotFoundError(self.kind.value, entity_id)
        await self._invalidate(EntityChange.deleted(entity_id, row))
        return row

    def _existing(self, entity_id: str, row: Row | None) -> Row:
        if row is None:
            raise EntityNotFoundError(self.kind.value, entity_id)
        return row


class UserWriter(BaseWriter):
    kind = EntityKind.USER

    def __init__(
        self,
        origin: OriginStore,
        invalidation: InvalidationEngine,
        actor_id: str | None = None,
    ):
        super().__init__(origin, invalidation, actor_id)
        self.repo = UserRepository(origin)

    async def create(self, name: str, email: str, password_hash: str = "") -> Row:
        return await self._created(await self.repo.create(name, email, password_hash))

    async def update_profile(self, user_id: str, **values: Any) -> Row:
        """Update name and/or email of a user."""
        before = self._existing(user_id, await self.repo.get(user_id))
        changes = {k: v for k, v in values.items() if k in ("name", "email") and v is not None}
        if not changes:
            return before
        return await self._updated(before, await self.repo.update(user_id, changes))

    async def delete(self, user_id: str) -> Row:
        return await self._deleted(user_id, await self.repo.delete(user_id))


class TaskWriter(BaseWriter):
    kind = EntityKind.TASK

    def __init__(
        self,
        origin: OriginStore,
        invalidation: InvalidationEngine,
        actor_id: str | None = None,
    ):
        super().__init__(origin, invalidation, actor_id)
        self.repo = TaskRepository(origin)

    async def create(
        self,
        title: str,
        description: str | None = None,
        priority: str = TaskPriority.MEDIUM.value,
        assigned_to: str | None = None,
        created_by: str | None = None,
    ) -> Row:
        """Create a task owned by ``created_by`` (default: the actor)."""
        values = {
            "title": title,
            "description": description,
            "status": TaskStatus.PENDING.value,
            "priority": TaskPriority(priority).value,
            "assigned_to": assigned_to,
            "created_by": created_by or self._require_actor(),
        }
        return await self._created(await self.repo.create(values))

    async def update(self, task_id: str, **values: Any) -> Row:
        """Update any of title, description, status, priority, assigned_to."""
        allowed = ("title", "description", "status", "priority", "assigned_to")
        changes = {k: v for k, v in values.items() if k in allowed}
        before = self._existing(task_id, await self.repo.get(task_id))
        if not changes:
            return before
        return await self._updated(before, await self.repo.update(task_id, changes))

    async def assign(self, task_id: str, user_id: str | None) -> Row:
        """Hand the task to another user (None unassigns it)."""
        before = self._existing(task_id, await self.repo.get(task_id))
        after = await self.repo.update(task_id, {"assigned_to": user_id})
        return await self._updated(before, after, ChangeType.REASSIGN)

    async def change_status(self, task_id: str, status: str) -> Row:
        before = self._existing(task_id, await self.repo.get(task_id))
        after = await self.repo.update(task_id, {"status": TaskStatus(status).value})
        return await self._updated(before, after, ChangeType.STATUS_CHANGE)

    async def delete(self, task_id: str) -> Row:
        return await self._deleted(task_id, await self.repo.delete(task_id))


class CommentWriter(BaseWriter):
    kind = EntityKind.COMMENT

    def __init__(
        self,
        origin: OriginStore,
        invalidation: InvalidationEngine,
        actor_id: str | None = None,
    ):
        super().__init__(origin, invalidation, actor_id)
        self.repo = CommentRepository(origin)

    async def create(self, task_id: str, text: str, user_id: str | None = None) -> Row:
        """Add a comment to a task, authored by ``user_id`` (default: the actor)."""
        author = user_id or self._require_actor()
        return await self._created(await self.repo.create(task_id, author, text))

    async def update(self, comment_id: str, text: str) -> Row:
        before = self._existing(comment_id, await self.repo.get(comment_id))
        return await self._updated(before, await self.repo.update(comment_id, text))

    async def delete(self, comment_id: str) -> Row:
        return await self._deleted(comment_id, await self.repo.delete(comment_id))
