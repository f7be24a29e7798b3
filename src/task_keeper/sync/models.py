# src/task_keeper/sync/models.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType


class TaskStatus(StrEnum):
    """Completion state as reported by the remote task service."""

    NEEDS_ACTION = "needsAction"
    COMPLETED = "completed"

    @classmethod
    def from_api(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.NEEDS_ACTION
        try:
            return cls(raw)
        except ValueError:
            return cls.NEEDS_ACTION


def parse_ts(raw: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    if not raw:
        return None
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_ts(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class TaskListMeta:
    id: str
    title: str


@dataclass(frozen=True, slots=True)
class TaskRecord:
    id: str
    title: str
    status: TaskStatus
    updated_at: datetime
    list_id: str

    completed_at: datetime | None = None
    due_at: datetime | None = None
    notes: str | None = None
    list_name: str | None = None

    is_archived: bool = False
    is_recurring: bool = False

    def __post_init__(self) -> None:
        completed = self.status == TaskStatus.COMPLETED
        if completed and self.completed_at is None:
            raise ValueError(f"task {self.id!r} is completed but has no completed_at")
        if not completed and self.completed_at is not None:
            raise ValueError(f"task {self.id!r} needs action but has completed_at")

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def sort_key(self) -> datetime:
        return self.completed_at or self.updated_at


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    Point-in-time view of lists and tasks.

    `tasks` is exposed read-only; build a new Snapshot instead of mutating one.
    `pending_archive_ids` names archival records whose compensating write has not
    reached the remote service yet.
    """

    lists: tuple[TaskListMeta, ...] = ()
    tasks: Mapping[str, TaskRecord] = field(default_factory=dict)
    pending_archive_ids: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tasks", MappingProxyType(dict(self.tasks)))

    @classmethod
    def of(
        cls,
        lists: Iterable[TaskListMeta],
        tasks: Iterable[TaskRecord],
        pending_archive_ids: Iterable[str] = (),
    ) -> Snapshot:
        """Build a snapshot from sequences, rejecting duplicate task ids."""
        by_id: dict[str, TaskRecord] = {}
        for t in tasks:
            if t.id in by_id:
                raise ValueError(f"duplicate task id in snapshot: {t.id!r}")
            by_id[t.id] = t

        seen: set[str] = set()
        uniq_lists: list[TaskListMeta] = []
        for lst in lists:
            if lst.id in seen:
                continue
            seen.add(lst.id)
            uniq_lists.append(lst)

        return cls(
            lists=tuple(uniq_lists),
            tasks=by_id,
            pending_archive_ids=frozenset(pending_archive_ids),
        )

    def is_empty(self) -> bool:
        return not self.lists and not self.tasks


@dataclass(frozen=True, slots=True)
class RolloverEvent:
    source_task: TaskRecord  # archival copy of the completion that was reset
    replacement_task: TaskRecord  # live remote copy, now needing action
