"""Origin store access for taskhub.

Provides the SQLAlchemy schema, the async engine and the repositories whose
queries back the cache on a miss.
"""

from taskhub.persistence.db import close_db, create_engine, health_check, init_db
from taskhub.persistence.origin import OriginStore, Row, SqlOriginStore
from taskhub.persistence.repositories import (
    CommentRepository,
    Page,
    TaskFilter,
    TaskRepository,
    UserRepository,
)
from taskhub.persistence.tables import TaskPriority, TaskStatus

__all__ = [
    # Engine
    "create_engine",
    "init_db",
    "close_db",
    "health_check",
    # Origin
    "OriginStore",
    "Row",
    "SqlOriginStore",
    # Repositories
    "UserRepository",
    "TaskRepository",
    "CommentRepository",
    "Page",
    "TaskFilter",
    "TaskStatus",
    "TaskPriority",
]
