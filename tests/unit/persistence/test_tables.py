"""Tests for persistence table definitions."""

from taskhub.persistence.tables import (
    COMMENT_COLUMNS,
    TASK_COLUMNS,
    USER_COLUMNS,
    Base,
    CommentTable,
    TaskPriority,
    TaskStatus,
    TaskTable,
    UserTable,
)


class TestTableDefinitions:
    """Test table schema definitions."""

    def test_all_tables_inherit_from_base(self) -> None:
        """All tables inherit from Base."""
        assert issubclass(UserTable, Base)
        assert issubclass(TaskTable, Base)
        assert issubclass(CommentTable, Base)

    def test_table_names(self) -> None:
        """Tables have the expected names."""
        assert UserTable.__tablename__ == "users"
        assert TaskTable.__tablename__ == "tasks"
        assert CommentTable.__tablename__ == "comments"

    def test_relation_columns_are_indexed(self) -> None:
        """Columns the loaders batch on are indexed."""
        tasks = TaskTable.__table__
        comments = CommentTable.__table__
        assert tasks.c.created_by.index
        assert tasks.c.assigned_to.index
        assert comments.c.task_id.index
        assert comments.c.user_id.index

    def test_password_hash_not_projected(self) -> None:
        assert "password_hash" not in {c.key for c in USER_COLUMNS}

    def test_projections_carry_relation_fields(self) -> None:
        assert {"created_by", "assigned_to", "status", "priority"} <= {c.key for c in TASK_COLUMNS}
        assert {"task_id", "user_id"} <= {c.key for c in COMMENT_COLUMNS}


class TestEnums:
    """Test status and priority values."""

    def test_status_values(self) -> None:
        assert [s.value for s in TaskStatus] == ["PENDING", "IN_PROGRESS", "COMPLETED", "CANCELLED"]

    def test_priority_values(self) -> None:
        assert [p.value for p in TaskPriority] == ["LOW", "MEDIUM", "HIGH", "URGENT"]
