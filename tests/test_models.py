# tests/test_models.py

from __future__ import annotations

import pytest

from task_keeper.sync.models import Snapshot, TaskRecord, TaskStatus

from .fakes import INBOX, T0, make_task


def test_completed_task_requires_completed_at() -> None:
    with pytest.raises(ValueError, match="no completed_at"):
        TaskRecord(id="t1", title="Pay rent", status=TaskStatus.COMPLETED, updated_at=T0, list_id=INBOX.id)


def test_pending_task_rejects_completed_at() -> None:
    with pytest.raises(ValueError, match="needs action"):
        TaskRecord(
            id="t1",
            title="Pay rent",
            status=TaskStatus.NEEDS_ACTION,
            updated_at=T0,
            list_id=INBOX.id,
            completed_at=T0,
        )


def test_snapshot_rejects_duplicate_ids() -> None:
    with pytest.raises(ValueError, match="duplicate task id"):
        Snapshot.of([INBOX], [make_task("t1"), make_task("t1", completed_at=T0)])


def test_snapshot_dedupes_lists_and_exposes_tasks_read_only() -> None:
    snap = Snapshot.of([INBOX, INBOX], [make_task("t1")])

    assert snap.lists == (INBOX,)
    with pytest.raises(TypeError):
        snap.tasks["t2"] = make_task("t2")  # type: ignore[index]


def test_status_from_api() -> None:
    assert TaskStatus.from_api("completed") is TaskStatus.COMPLETED
    assert TaskStatus.from_api("needsAction") is TaskStatus.NEEDS_ACTION
