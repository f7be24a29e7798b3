# src/task_keeper/sources/mock.py

from __future__ import annotations

import itertools
import logging
import random
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from ..core.ports import RemoteSourceError
from ..sync.models import TaskListMeta, TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

_TITLES = ("Review document", "Email client", "Update styles", "Fix bug")


def generate_mock_data(
    *,
    seed: int = 42,
    count: int = 50,
    now: datetime | None = None,
) -> tuple[list[TaskListMeta], list[TaskRecord]]:
    """Three lists and `count` tasks; every 5th task is a recurring one."""
    rng = random.Random(seed)
    now = now or datetime.now(UTC)

    lists = [
        TaskListMeta(id="1", title="My Tasks"),
        TaskListMeta(id="2", title="Work Projects"),
        TaskListMeta(id="3", title="Groceries"),
    ]

    tasks: list[TaskRecord] = []
    for i in range(count):
        completed = rng.random() > 0.3
        stamp = now - timedelta(days=rng.randint(-30, 29))
        due = now + timedelta(days=rng.random() * 10)
        recurring = i % 5 == 0
        owner = lists[i % len(lists)]

        title = f"Submit Timesheet (Recurring) {i}" if recurring else f"Task {i} - {_TITLES[i % 4]}"
        tasks.append(
            TaskRecord(
                id=f"task-{i}",
                title=title,
                status=TaskStatus.COMPLETED if completed else TaskStatus.NEEDS_ACTION,
                completed_at=stamp if completed else None,
                due_at=due,
                updated_at=stamp,
                list_id=owner.id,
                list_name=owner.title,
                is_recurring=recurring,
            )
        )
    return lists, tasks


class MockTaskSource:
    """
    In-memory RemoteTaskSource for demos and local runs without credentials.

    Pagination uses offsets as page tokens. roll_over_recurring() mimics the real
    service resetting completed recurring tasks at the start of their next cycle.
    """

    def __init__(
        self,
        *,
        seed: int = 42,
        page_size: int = 20,
        lists: list[TaskListMeta] | None = None,
        tasks: list[TaskRecord] | None = None,
    ) -> None:
        if lists is None or tasks is None:
            lists, tasks = generate_mock_data(seed=seed)
        self._lists = list(lists)
        self._tasks: dict[str, TaskRecord] = {t.id: t for t in tasks}
        self._page_size = max(1, int(page_size))
        self._ids = itertools.count(1)

    @property
    def tasks(self) -> dict[str, TaskRecord]:
        return dict(self._tasks)

    async def list_task_lists(self) -> list[TaskListMeta]:
        return list(self._lists)

    async def list_tasks(
        self,
        task_list: TaskListMeta,
        page_token: str | None = None,
    ) -> tuple[list[TaskRecord], str | None]:
        try:
            offset = int(page_token) if page_token else 0
        except ValueError as exc:
            raise RemoteSourceError(f"invalid page token: {page_token!r}") from exc

        in_list = [t for t in self._tasks.values() if t.list_id == task_list.id]
        page = in_list[offset:offset + self._page_size]
        nxt = offset + self._page_size
        return page, (str(nxt) if nxt < len(in_list) else None)

    async def insert_task(self, list_id: str, record: TaskRecord) -> TaskRecord:
        owner = next((lst for lst in self._lists if lst.id == list_id), None)
        if owner is None:
            raise RemoteSourceError(f"unknown task list {list_id}", status_code=404)

        created = replace(
            record,
            id=f"mock-{next(self._ids)}",
            updated_at=datetime.now(UTC),
            list_id=owner.id,
            list_name=owner.title,
            is_archived=False,
            is_recurring=False,
        )
        self._tasks[created.id] = created
        logger.debug("Mock insert id=%s title=%s", created.id, created.title)
        return created

    def roll_over_recurring(self, *, now: datetime | None = None) -> list[str]:
        """Reset completed recurring tasks to needsAction; returns their ids."""
        now = now or datetime.now(UTC)
        rolled: list[str] = []
        for task_id, t in list(self._tasks.items()):
            if t.is_recurring and t.is_completed:
                self._tasks[task_id] = replace(
                    t,
                    status=TaskStatus.NEEDS_ACTION,
                    completed_at=None,
                    updated_at=now,
                    due_at=now + timedelta(days=7),
                )
                rolled.append(task_id)
        logger.info("Mock rollover reset %d recurring task(s)", len(rolled))
        return rolled
