# src/task_keeper/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the sync engine.

The engine depends on Protocols instead of concrete implementations.
This keeps the remote service and the local storage swappable and makes testing easier.
"""

from typing import Protocol

from ..sync.models import Snapshot, TaskListMeta, TaskRecord


class RemoteSourceError(RuntimeError):
    """A request to the remote task service failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteTaskSource(Protocol):
    """
    Remote task service.

    list_tasks must return completed and hidden tasks too; callers drain pages
    until next_page_token is None.
    """

    async def list_task_lists(self) -> list[TaskListMeta]: ...

    async def list_tasks(
            self,
            task_list: TaskListMeta,
            page_token: str | None = None,
    ) -> tuple[list[TaskRecord], str | None]: ...

    async def insert_task(self, list_id: str, record: TaskRecord) -> TaskRecord: ...


class SnapshotStore(Protocol):
    """Whole-snapshot persistence of the last merged state."""

    def load(self) -> Snapshot: ...
    def save(self, snapshot: Snapshot) -> None: ...
