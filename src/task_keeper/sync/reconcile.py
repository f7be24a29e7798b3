# src/task_keeper/sync/reconcile.py

"""
Reconciliation of the previously stored snapshot with a freshly fetched one.

Rules, per task id known locally:
- present remotely, local completed and remote needs action -> rollover:
  an archival copy of the local completion is kept under a synthesized id,
  the live task is kept with is_recurring forced on;
- present remotely otherwise -> remote copy wins, is_recurring is sticky;
- gone remotely, local completed or already archived -> kept as archived history;
- gone remotely, local pending -> dropped (upstream deletion).

Tasks only known remotely are taken as they are.

This module is pure: no I/O, the detection time is passed in.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime

from .models import RolloverEvent, Snapshot, TaskListMeta, TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

# Remote ids never contain ":", so synthesized ids cannot collide with them.
ARCHIVE_ID_PREFIX = "archive:"


def archival_id(task_id: str, detected_at: datetime) -> str:
    millis = int(detected_at.astimezone(UTC).timestamp() * 1000)
    return f"{ARCHIVE_ID_PREFIX}{task_id}:{millis}"


def origin_id(record_id: str) -> str:
    """Return the remote id an archival id was derived from (identity for other ids)."""
    if not record_id.startswith(ARCHIVE_ID_PREFIX):
        return record_id
    body = record_id[len(ARCHIVE_ID_PREFIX):]
    head, sep, _ = body.rpartition(":")
    return head if sep else body


def is_rollover(local: TaskRecord, remote: TaskRecord) -> bool:
    return local.status == TaskStatus.COMPLETED and remote.status == TaskStatus.NEEDS_ACTION


def reconcile(
    previous: Snapshot,
    fresh: Snapshot,
    *,
    now: datetime | None = None,
) -> tuple[Snapshot, list[RolloverEvent]]:
    """Merge `previous` (history) with `fresh` (live state); see module docstring."""
    detected_at = now or datetime.now(UTC)

    merged: dict[str, TaskRecord] = {}
    rollovers: list[RolloverEvent] = []

    for task_id, local in previous.tasks.items():
        remote = fresh.tasks.get(task_id)

        if remote is not None and is_rollover(local, remote):
            archived = replace(
                local,
                id=archival_id(task_id, detected_at),
                is_archived=True,
                is_recurring=True,
            )
            live = replace(remote, is_recurring=True)
            merged[archived.id] = archived
            merged[task_id] = live
            rollovers.append(RolloverEvent(source_task=archived, replacement_task=live))
            logger.info("Rollover detected for '%s' (id=%s)", local.title, task_id)
            continue

        if remote is not None:
            sticky = local.is_recurring or remote.is_recurring
            merged[task_id] = remote if remote.is_recurring == sticky else replace(remote, is_recurring=sticky)
            continue

        if local.is_completed or local.is_archived:
            merged[task_id] = local if local.is_archived else replace(local, is_archived=True)
            continue

        logger.debug("Dropping pending task removed upstream id=%s", task_id)

    for task_id, remote in fresh.tasks.items():
        if task_id not in merged:
            merged[task_id] = remote

    lists = _merge_lists(previous, fresh, merged)
    pending = {i for i in previous.pending_archive_ids if i in merged}

    return Snapshot(lists=lists, tasks=merged, pending_archive_ids=frozenset(pending)), rollovers


def _merge_lists(
    previous: Snapshot,
    fresh: Snapshot,
    merged: dict[str, TaskRecord],
) -> tuple[TaskListMeta, ...]:
    # Fresh lists first; previous lists survive only while retained history points at them.
    out = list(fresh.lists)
    known = {lst.id for lst in out}
    referenced = {t.list_id for t in merged.values() if t.is_archived}
    for lst in previous.lists:
        if lst.id not in known and lst.id in referenced:
            out.append(lst)
            known.add(lst.id)
    return tuple(out)


def sorted_tasks(snapshot: Snapshot) -> list[TaskRecord]:
    """Tasks newest first by completion time, falling back to last update."""
    return sorted(snapshot.tasks.values(), key=lambda t: t.sort_key, reverse=True)
