"""Repository tests against SQLite."""

import pytest
from sqlalchemy import text

from taskhub.errors import OriginQueryError
from taskhub.persistence.origin import SqlOriginStore
from taskhub.persistence.repositories import (
    CommentRepository,
    Page,
    TaskFilter,
    TaskRepository,
    UserRepository,
)


def ids(rows: list[dict]) -> list[str]:
    return [row["id"] for row in rows]


class TestPage:
    """Test pagination arguments."""

    def test_offset(self) -> None:
        assert Page(1, 10).offset == 0
        assert Page(3, 5).offset == 10

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 101)])
    def test_rejects_out_of_range(self, page: int, limit: int) -> None:
        with pytest.raises(ValueError):
            Page(page, limit)


class TestUserRepository:
    """Test user queries."""

    @pytest.mark.asyncio
    async def test_get_by_ids_returns_found_rows(self, origin) -> None:
        rows = await UserRepository(origin).get_by_ids(["U1", "U9"])

        assert ids(rows) == ["U1"]
        assert "password_hash" not in rows[0]
        assert isinstance(rows[0]["created_at"], str)

    @pytest.mark.asyncio
    async def test_get_by_ids_empty(self, origin) -> None:
        assert await UserRepository(origin).get_by_ids([]) == []
        assert origin.queries == 0

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, origin) -> None:
        rows = await UserRepository(origin).search("ALI", Page())
        assert ids(rows) == ["U1", "U3"]

    @pytest.mark.asyncio
    async def test_list_newest_first(self, origin) -> None:
        rows = await UserRepository(origin).list_all(Page(1, 2))
        assert ids(rows) == ["U3", "U2"]

    @pytest.mark.asyncio
    async def test_create_update_delete(self, origin) -> None:
        repo = UserRepository(origin)

        created = await repo.create("Dana", "dana@example.com")
        updated = await repo.update(created["id"], {"name": "Dana S."})
        deleted = await repo.delete(created["id"])

        assert updated is not None and updated["name"] == "Dana S."
        assert deleted is not None and deleted["id"] == created["id"]
        assert await repo.get(created["id"]) is None

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, origin) -> None:
        assert await UserRepository(origin).update("U9", {"name": "Nobody"}) is None

    @pytest.mark.asyncio
    async def test_constraint_violation_is_origin_error(self, origin) -> None:
        with pytest.raises(OriginQueryError):
            await UserRepository(origin).create("Alice 2", "alice@example.com")


class TestTaskRepository:
    """Test task queries."""

    @pytest.mark.asyncio
    async def test_get_by_creators_spans_ids(self, origin) -> None:
        rows = await TaskRepository(origin).get_by_creators(["U1", "U2"])

        assert ids(rows) == ["T3", "T2", "T1"]
        assert origin.queries == 1

    @pytest.mark.asyncio
    async def test_get_by_assignees(self, origin) -> None:
        rows = await TaskRepository(origin).get_by_assignees(["U1", "U2", "U3"])
        assert {row["id"]: row["assigned_to"] for row in rows} == {"T1": "U2", "T2": "U1"}

    @pytest.mark.asyncio
    async def test_list_with_filter(self, origin) -> None:
        repo = TaskRepository(origin)

        assert ids(await repo.list_all(TaskFilter(priority="HIGH"), Page())) == ["T3", "T1"]
        assert ids(await repo.list_all(TaskFilter(), Page(2, 2))) == ["T1"]

    @pytest.mark.asyncio
    async def test_by_status_and_priority(self, origin) -> None:
        repo = TaskRepository(origin)

        assert ids(await repo.by_status("IN_PROGRESS", Page())) == ["T2"]
        assert ids(await repo.by_priority("LOW", Page())) == ["T2"]

    @pytest.mark.asyncio
    async def test_global_stats(self, origin) -> None:
        stats = await TaskRepository(origin).stats()

        assert stats["total_tasks"] == 3
        assert stats["pending_tasks"] == 1
        assert stats["in_progress_tasks"] == 1
        assert stats["completed_tasks"] == 1
        assert stats["cancelled_tasks"] == 0
        assert stats["tasks_by_priority"] == {"low": 1, "medium": 0, "high": 2, "urgent": 0}

    @pytest.mark.asyncio
    async def test_user_stats(self, origin) -> None:
        stats = await TaskRepository(origin).stats("U2")

        assert stats["total_tasks"] == 1
        assert stats["pending_tasks"] == 1

    @pytest.mark.asyncio
    async def test_update_returns_new_row(self, origin) -> None:
        row = await TaskRepository(origin).update("T1", {"assigned_to": "U1"})
        assert row is not None and row["assigned_to"] == "U1"


class TestCommentRepository:
    """Test comment queries."""

    @pytest.mark.asyncio
    async def test_get_by_tasks(self, origin) -> None:
        rows = await CommentRepository(origin).get_by_tasks(["T1", "T3"])
        assert ids(rows) == ["C2", "C1"]

    @pytest.mark.asyncio
    async def test_get_by_users(self, origin) -> None:
        rows = await CommentRepository(origin).get_by_users(["U1"])
        assert ids(rows) == ["C3", "C2"]

    @pytest.mark.asyncio
    async def test_count_for_task(self, origin) -> None:
        repo = CommentRepository(origin)

        assert await repo.count_for_task("T1") == 2
        assert await repo.count_for_task("T3") == 0

    @pytest.mark.asyncio
    async def test_create(self, origin) -> None:
        row = await CommentRepository(origin).create("T3", "U1", "Verified")

        assert row["task_id"] == "T3"
        assert row["text"] == "Verified"


class TestSqlOriginStore:
    """Test error wrapping."""

    @pytest.mark.asyncio
    async def test_bad_statement_raises_origin_error(self, engine) -> None:
        store = SqlOriginStore(engine)
        with pytest.raises(OriginQueryError):
            await store.query(text("SELECT * FROM missing_table"))
