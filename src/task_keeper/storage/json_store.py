# src/task_keeper/storage/json_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from ..sync.models import Snapshot, TaskListMeta, TaskRecord, TaskStatus, parse_ts

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


def _task_to_json(t: TaskRecord) -> dict[str, Any]:
    return {
        "id": t.id,
        "title": t.title,
        "status": t.status.value,
        "completed": t.completed_at.isoformat() if t.completed_at else None,
        "due": t.due_at.isoformat() if t.due_at else None,
        "updated": t.updated_at.isoformat(),
        "notes": t.notes,
        "listId": t.list_id,
        "listName": t.list_name,
        "isArchived": t.is_archived,
        "isRecurring": t.is_recurring,
    }


def _task_from_json(d: dict[str, Any]) -> TaskRecord:
    status = TaskStatus.from_api(d.get("status"))
    updated_at = parse_ts(d.get("updated"))
    if updated_at is None:
        raise ValueError(f"stored task {d.get('id')!r} has no 'updated'")
    return TaskRecord(
        id=str(d["id"]),
        title=str(d.get("title") or ""),
        status=status,
        completed_at=parse_ts(d.get("completed")) if status == TaskStatus.COMPLETED else None,
        due_at=parse_ts(d.get("due")),
        updated_at=updated_at,
        notes=d.get("notes"),
        list_id=str(d.get("listId") or ""),
        list_name=d.get("listName"),
        is_archived=bool(d.get("isArchived", False)),
        is_recurring=bool(d.get("isRecurring", False)),
    )


class JsonSnapshotStore:
    """
    Snapshot kept in a single JSON file.

    Writes go to a temp file first and are moved into place atomically.
    A missing file loads as an empty snapshot; an unreadable one raises ValueError
    (an empty snapshot saved over it would erase the retained history).
    """

    def __init__(self, path: str | Path = "snapshot.json") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Snapshot:
        if not self._path.exists():
            return Snapshot()

        try:
            data = json.loads(self._path.read_text("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value is not an object")
            lists = [
                TaskListMeta(id=str(item["id"]), title=str(item.get("title") or ""))
                for item in data.get("lists") or []
            ]
            tasks = [_task_from_json(item) for item in data.get("tasks") or []]
            pending = [str(i) for i in data.get("pendingArchiveIds") or []]
        except (OSError, KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Corrupt snapshot file {self._path}: {exc}") from exc

        logger.debug("Loaded snapshot from %s: %d task(s)", self._path, len(tasks))
        return Snapshot.of(lists, tasks, pending)

    def save(self, snapshot: Snapshot) -> None:
        payload = {
            "version": _FORMAT_VERSION,
            "lists": [{"id": lst.id, "title": lst.title} for lst in snapshot.lists],
            "tasks": [_task_to_json(t) for t in snapshot.tasks.values()],
            "pendingArchiveIds": sorted(snapshot.pending_archive_ids),
        }

        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            # Best-effort: task titles/notes are personal data, keep the file private.
            os.chmod(self._path, 0o600)
        logger.debug("Saved snapshot to %s: %d task(s)", self._path, len(snapshot.tasks))
