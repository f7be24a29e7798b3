# tests/fakes.py

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from task_keeper.core.ports import RemoteSourceError
from task_keeper.sync.models import Snapshot, TaskListMeta, TaskRecord, TaskStatus

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

INBOX = TaskListMeta(id="L1", title="Inbox")


def make_task(
    task_id: str,
    *,
    title: str | None = None,
    completed_at: datetime | None = None,
    updated_at: datetime | None = None,
    notes: str | None = None,
    task_list: TaskListMeta = INBOX,
    is_archived: bool = False,
    is_recurring: bool = False,
) -> TaskRecord:
    """Completed iff completed_at is given."""
    return TaskRecord(
        id=task_id,
        title=title if title is not None else f"Task {task_id}",
        status=TaskStatus.COMPLETED if completed_at else TaskStatus.NEEDS_ACTION,
        completed_at=completed_at,
        updated_at=updated_at or completed_at or T0,
        notes=notes,
        list_id=task_list.id,
        list_name=task_list.title,
        is_archived=is_archived,
        is_recurring=is_recurring,
    )


def snapshot(*tasks: TaskRecord, lists: tuple[TaskListMeta, ...] = (INBOX,)) -> Snapshot:
    return Snapshot.of(lists, tasks)


class FakeTaskSource:
    """
    In-memory RemoteTaskSource used by engine/archive tests.

    - pages list_tasks() by page_size
    - fails inserts whose title is in fail_titles
    - fails every fetch when fail_fetch is set, or list_tasks() once
      fail_after_pages pages have been served
    - records inserted records and the peak number of concurrent inserts
    """

    def __init__(
        self,
        tasks: list[TaskRecord] | None = None,
        *,
        lists: list[TaskListMeta] | None = None,
        page_size: int = 100,
    ) -> None:
        self.lists = list(lists or [INBOX])
        self.tasks: dict[str, TaskRecord] = {t.id: t for t in tasks or []}
        self.page_size = page_size
        self.fail_titles: set[str] = set()
        self.fail_status = 500
        self.fail_fetch = False
        self.fail_after_pages: int | None = None
        self.inserted: list[TaskRecord] = []
        self.pages_served = 0
        self.gate: asyncio.Event | None = None

        self._in_flight = 0
        self.max_in_flight = 0
        self._ids = itertools.count(1)

    def set_tasks(self, *tasks: TaskRecord) -> None:
        # keep previously inserted archive copies, like the real service would
        kept = {t.id: t for t in self.inserted}
        self.tasks = {**kept, **{t.id: t for t in tasks}}

    async def list_task_lists(self) -> list[TaskListMeta]:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_fetch:
            raise RemoteSourceError("service unavailable", status_code=503)
        return list(self.lists)

    async def list_tasks(self, task_list, page_token=None):
        if self.fail_fetch:
            raise RemoteSourceError("service unavailable", status_code=503)
        if self.fail_after_pages is not None and self.pages_served >= self.fail_after_pages:
            raise RemoteSourceError("page request rejected", status_code=500)
        offset = int(page_token or 0)
        in_list = [t for t in self.tasks.values() if t.list_id == task_list.id]
        page = in_list[offset:offset + self.page_size]
        self.pages_served += 1
        nxt = offset + self.page_size
        return page, (str(nxt) if nxt < len(in_list) else None)

    async def insert_task(self, list_id: str, record: TaskRecord) -> TaskRecord:
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            await asyncio.sleep(0.01)
            if record.title in self.fail_titles:
                raise RemoteSourceError(f"insert rejected: {record.title}", status_code=self.fail_status)
            created = replace(record, id=f"remote-{next(self._ids)}", updated_at=T0 + timedelta(days=1))
            self.inserted.append(created)
            self.tasks[created.id] = created
            return created
        finally:
            self._in_flight -= 1


@dataclass(slots=True)
class MemorySnapshotStore:
    """SnapshotStore kept in memory; counts loads/saves for assertions."""

    current: Snapshot = field(default_factory=Snapshot)
    loads: int = 0
    saves: int = 0

    def load(self) -> Snapshot:
        self.loads += 1
        return self.current

    def save(self, snapshot: Snapshot) -> None:
        self.saves += 1
        self.current = snapshot
