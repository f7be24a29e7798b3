# tests/test_archive.py

from __future__ import annotations

from datetime import timedelta

import pytest

from task_keeper.sync.archive import archive_rollovers, build_archive_record
from task_keeper.sync.dedupe import DEFAULT_ARCHIVE_MARKER
from task_keeper.sync.models import RolloverEvent, TaskStatus
from task_keeper.sync.reconcile import archival_id

from .fakes import T0, FakeTaskSource, make_task


def _event(task_id: str, title: str, notes: str | None = None) -> RolloverEvent:
    completed = T0 + timedelta(hours=1)
    return RolloverEvent(
        source_task=make_task(
            archival_id(task_id, T0 + timedelta(days=1)),
            title=title,
            completed_at=completed,
            notes=notes,
            is_archived=True,
            is_recurring=True,
        ),
        replacement_task=make_task(task_id, title=title, is_recurring=True),
    )


def test_archive_record_copies_completion_and_marks_notes() -> None:
    ev = _event("t1", "Submit timesheet", notes="weekly")

    rec = build_archive_record(ev)

    assert rec.title == "Submit timesheet"
    assert rec.status == TaskStatus.COMPLETED
    assert rec.completed_at == ev.source_task.completed_at
    assert rec.list_id == ev.source_task.list_id
    assert rec.notes is not None
    assert rec.notes.startswith("weekly\n")
    assert DEFAULT_ARCHIVE_MARKER in rec.notes
    assert not rec.is_archived


@pytest.mark.asyncio
async def test_one_failed_write_does_not_affect_the_others() -> None:
    source = FakeTaskSource()
    source.fail_titles = {"Pay rent"}
    events = [_event("a", "Pay rent"), _event("b", "Water plants")]

    outcomes = await archive_rollovers(source, events)

    assert [o.event for o in outcomes] == events
    assert outcomes[0].success is False
    assert "Pay rent" in (outcomes[0].error or "")
    assert outcomes[1].success is True
    assert outcomes[1].remote_id is not None
    assert [r.title for r in source.inserted] == ["Water plants"]


@pytest.mark.asyncio
async def test_writes_are_dispatched_concurrently() -> None:
    source = FakeTaskSource()
    events = [_event(f"t{i}", f"Chore {i}") for i in range(4)]

    outcomes = await archive_rollovers(source, events)

    assert all(o.success for o in outcomes)
    assert source.max_in_flight == 4


@pytest.mark.asyncio
async def test_empty_batch_issues_no_writes() -> None:
    source = FakeTaskSource()
    assert await archive_rollovers(source, []) == []
    assert source.inserted == []


@pytest.mark.asyncio
async def test_missing_target_is_marked_not_retryable() -> None:
    source = FakeTaskSource()
    source.fail_titles = {"Pay rent"}
    source.fail_status = 404

    (outcome,) = await archive_rollovers(source, [_event("a", "Pay rent")])

    assert outcome.success is False
    assert outcome.retryable is False

    source.fail_status = 500
    (outcome,) = await archive_rollovers(source, [_event("a", "Pay rent")])
    assert outcome.retryable is True
