"""Write-driven cache invalidation.

After a write commits to the origin store, the write handler describes what
changed as an EntityChange and hands it to the InvalidationEngine. The
engine evaluates a fixed table of InvalidationRules for that entity kind and
deletes the resulting keys and glob patterns.

Rules are data: a namespace, a tuple of key parts where Ref("field") is
substituted with the entity's field values, and the change types they apply
to. When a referenced field changed (a task moving from one assignee to
another), the rule expands for both the old and the new value.

Example:
    engine = InvalidationEngine(cache)
    change = EntityChange.updated(task_id, before=old_row, after=new_row)
    report = await engine.invalidate(EntityKind.TASK, change)
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from taskhub.cache.keys import Namespace, build_key, build_pattern
from taskhub.cache.redis import RedisCache
from taskhub.errors import CacheUnavailableError, InvalidationError
from taskhub.observability.metrics import record_invalidation

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    """Entities whose writes trigger invalidation."""

    USER = "user"
    TASK = "task"
    COMMENT = "comment"


class ChangeType(str, Enum):
    """Kind of write that was committed."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REASSIGN = "reassign"
    STATUS_CHANGE = "status_change"


ALL_CHANGES = frozenset(ChangeType)
UPDATES = frozenset({ChangeType.UPDATE, ChangeType.REASSIGN, ChangeType.STATUS_CHANGE})
MUTATIONS = UPDATES | {ChangeType.DELETE}


@dataclass(frozen=True)
class FieldChange:
    """Old and new value of one field. Unchanged fields have old == new."""

    old: Any = None
    new: Any = None

    @property
    def changed(self) -> bool:
        return self.old != self.new


@dataclass
class EntityChange:
    """What a committed write did to one entity."""

    entity_id: str
    change_type: ChangeType
    fields: dict[str, FieldChange] = field(default_factory=dict)

    @classmethod
    def created(cls, entity_id: Any, row: Mapping[str, Any]) -> EntityChange:
        return cls(
            entity_id=str(entity_id),
            change_type=ChangeType.CREATE,
            fields={name: FieldChange(None, value) for name, value in row.items()},
        )

    @classmethod
    def deleted(cls, entity_id: Any, row: Mapping[str, Any]) -> EntityChange:
        return cls(
            entity_id=str(entity_id),
            change_type=ChangeType.DELETE,
            fields={name: FieldChange(value, None) for name, value in row.items()},
        )

    @classmethod
    def updated(
        cls,
        entity_id: Any,
        before: Mapping[str, Any],
        after: Mapping[str, Any],
        change_type: ChangeType = ChangeType.UPDATE,
    ) -> EntityChange:
        names = list(dict.fromkeys([*before.keys(), *after.keys()]))
        return cls(
            entity_id=str(entity_id),
            change_type=change_type,
            fields={name: FieldChange(before.get(name), after.get(name)) for name in names},
        )

    @property
    def changed_fields(self) -> frozenset[str]:
        return frozenset(name for name, fc in self.fields.items() if fc.changed)

    def values_of(self, name: str) -> list[Any]:
        """Distinct non-null values a field held before or after the write."""
        if name == "id":
            return [self.entity_id]
        fc = self.fields.get(name)
        if fc is None:
            return []
        return [v for v in dict.fromkeys([fc.old, fc.new]) if v is not None and v != ""]


@dataclass(frozen=True)
class Ref:
    """Placeholder for an entity field inside a rule's key parts."""

    name: str


@dataclass(frozen=True)
class InvalidationRule:
    """A key (or pattern) template that goes stale on certain writes.

    Attributes:
        namespace: Key namespace
        parts: Literal parts and Ref placeholders, in key order
        pattern: Append the wildcard and delete by pattern instead of by key
        on: Change types the rule applies to
        when_changed: For updates, apply only if one of these fields changed
            (empty means any update)
    """

    namespace: str
    parts: tuple[str | Ref, ...] = ()
    pattern: bool = False
    on: frozenset[ChangeType] = ALL_CHANGES
    when_changed: frozenset[str] = frozenset()

    @property
    def depends_on(self) -> frozenset[str]:
        refs = {p.name for p in self.parts if isinstance(p, Ref)}
        return frozenset(refs | self.when_changed)

    def applies_to(self, change: EntityChange) -> bool:
        if change.change_type not in self.on:
            return False
        if change.change_type in UPDATES and self.when_changed:
            return bool(self.when_changed & change.changed_fields)
        return True

    def expand(self, change: EntityChange) -> list[str]:
        """Concrete keys or patterns for a change. Empty if a Ref has no value."""
        choices: list[list[Any]] = []
        for part in self.parts:
            if isinstance(part, Ref):
                values = change.values_of(part.name)
                if not values:
                    return []
                choices.append(values)
            else:
                choices.append([part])

        build = build_pattern if self.pattern else build_key
        return [build(self.namespace, *combo) for combo in itertools.product(*choices)]


def family(
    namespace: str,
    *parts: str | Ref,
    on: frozenset[ChangeType] = ALL_CHANGES,
    when_changed: frozenset[str] = frozenset(),
) -> tuple[InvalidationRule, InvalidationRule]:
    """Rules for an exact key plus every key nested under it."""
    return (
        InvalidationRule(namespace, parts, pattern=False, on=on, when_changed=when_changed),
        InvalidationRule(namespace, parts, pattern=True, on=on, when_changed=when_changed),
    )


_ID = Ref("id")
_DELETE = frozenset({ChangeType.DELETE})
_STATS_FIELDS = frozenset({"status", "priority", "assigned_to"})

RULES: dict[EntityKind, tuple[InvalidationRule, ...]] = {
    EntityKind.USER: (
        InvalidationRule(Namespace.USER, (_ID,), on=MUTATIONS),
        InvalidationRule(Namespace.USERS_ALL, pattern=True),
        InvalidationRule(Namespace.SEARCH, ("users",), pattern=True),
        # Deleting a user nulls created_by/assigned_to on its tasks and removes
        # its comments in the database, touching rows the change does not list
        InvalidationRule(Namespace.TASK, pattern=True, on=_DELETE),
        InvalidationRule(Namespace.TASKS, pattern=True, on=_DELETE),
        InvalidationRule(Namespace.COMMENT, pattern=True, on=_DELETE),
        InvalidationRule(Namespace.COMMENTS, pattern=True, on=_DELETE),
        InvalidationRule(Namespace.STATS, ("user", _ID), on=_DELETE),
        InvalidationRule(Namespace.STATS, ("global",), on=_DELETE),
    ),
    EntityKind.TASK: (
        InvalidationRule(Namespace.TASK, (_ID,), on=MUTATIONS),
        InvalidationRule(Namespace.TASKS_ALL, pattern=True),
        *family(Namespace.TASKS_CREATOR, Ref("created_by")),
        *family(Namespace.TASKS_ASSIGNEE, Ref("assigned_to")),
        InvalidationRule(Namespace.TASKS_MY, (Ref("assigned_to"),), pattern=True),
        InvalidationRule(Namespace.TASKS_STATUS, (Ref("status"),), pattern=True),
        InvalidationRule(Namespace.TASKS_PRIORITY, (Ref("priority"),), pattern=True),
        InvalidationRule(
            Namespace.STATS, ("user", Ref("assigned_to")), when_changed=_STATS_FIELDS
        ),
        InvalidationRule(Namespace.STATS, ("global",), when_changed=_STATS_FIELDS),
        # Comments of a deleted task go with it
        *family(Namespace.COMMENTS_TASK, _ID, on=_DELETE),
        InvalidationRule(Namespace.COMMENT, pattern=True, on=_DELETE),
        InvalidationRule(Namespace.COMMENTS_ALL, pattern=True, on=_DELETE),
        InvalidationRule(Namespace.COMMENTS_BYUSER, pattern=True, on=_DELETE),
    ),
    EntityKind.COMMENT: (
        InvalidationRule(Namespace.COMMENT, (_ID,), on=MUTATIONS),
        InvalidationRule(Namespace.COMMENTS_ALL, pattern=True),
        *family(Namespace.COMMENTS_TASK, Ref("task_id")),
        *family(Namespace.COMMENTS_BYUSER, Ref("user_id")),
    ),
}


@dataclass
class InvalidationPlan:
    """Exact keys and glob patterns selected for one change."""

    keys: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)

    @property
    def targets(self) -> list[str]:
        return [*self.keys, *self.patterns]


@dataclass
class InvalidationReport:
    """Outcome of executing an InvalidationPlan."""

    entity: EntityKind
    plan: InvalidationPlan
    deleted: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        if self.failed:
            raise InvalidationError(self.entity.value, self.failed)


class InvalidationEngine:
    """Deletes the cache entries a committed write made stale.

    Deletions are independent: one failing (Redis down, timeout) does not
    stop the others, and nothing is raised to the write path. Failures are
    logged and counted since they leave stale reads until TTL expiry.
    """

    def __init__(
        self,
        cache: RedisCache,
        rules: Mapping[EntityKind, tuple[InvalidationRule, ...]] | None = None,
    ):
        self.cache = cache
        self.rules = rules if rules is not None else RULES

    def plan(self, kind: EntityKind, change: EntityChange) -> InvalidationPlan:
        plan = InvalidationPlan()
        for rule in self.rules.get(kind, ()):
            if not rule.applies_to(change):
                continue
            target = plan.patterns if rule.pattern else plan.keys
            for item in rule.expand(change):
                if item not in target:
                    target.append(item)
        return plan

    async def invalidate(self, kind: EntityKind, change: EntityChange) -> InvalidationReport:
        plan = self.plan(kind, change)
        report = InvalidationReport(entity=kind, plan=plan)

        async def run(target: str, is_pattern: bool) -> int:
            try:
                if is_pattern:
                    return await self.cache.delete_pattern(target, strict=True)
                return await self.cache.delete_keys([target], strict=True)
            except CacheUnavailableError as e:
                report.failed.append(target)
                logger.warning(
                    f"Invalidation of {target} failed after {kind.value} "
                    f"{change.change_type.value} {change.entity_id}; "
                    f"stale reads possible until TTL expiry: {e.cause}"
                )
                return 0

        jobs = [run(key, False) for key in plan.keys]
        jobs += [run(pattern, True) for pattern in plan.patterns]
        counts = await asyncio.gather(*jobs)
        report.deleted = sum(counts)

        record_invalidation(kind.value, report.deleted, len(report.failed))
        logger.debug(
            f"Invalidated {report.deleted} key(s) for {kind.value} "
            f"{change.change_type.value} {change.entity_id}"
        )
        return report
