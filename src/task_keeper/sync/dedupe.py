# src/task_keeper/sync/dedupe.py

from __future__ import annotations

"""
Duplicate guard for compensating archive writes.

The remote service assigns its own id to every archive copy we insert, so there is
no shared id between a local archival record and its remote counterpart. Two checks
are applied, either one is enough:
- exact: the remote notes carry the archive key derived from (task id, completed_at);
- fuzzy: a completed remote record with the same title, the archive marker in its
  notes, and a completed_at within the tolerance window.

The fuzzy rule can match two genuinely distinct completions of the same title that
happened inside the window. That is accepted.
"""

import hashlib
import logging
import re
from collections.abc import Iterable
from datetime import timedelta

from .models import RolloverEvent, Snapshot, TaskRecord, TaskStatus, format_ts
from .reconcile import origin_id

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_MARKER = "[Archived History of Recurring Task]"
DEFAULT_DUPLICATE_WINDOW = timedelta(seconds=60)

_KEY_RE = re.compile(r"\[archive-key:([0-9a-f]{16})\]")


def archive_key(event: RolloverEvent) -> str:
    src = event.source_task
    raw = f"{origin_id(src.id)}|{format_ts(src.completed_at) or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


def archive_notes(event: RolloverEvent, marker: str = DEFAULT_ARCHIVE_MARKER) -> str:
    """Original notes followed by the marker line and the archive key."""
    tag = f"{marker} [archive-key:{archive_key(event)}]"
    notes = event.source_task.notes
    return f"{notes}\n{tag}" if notes else tag


def extract_archive_key(notes: str | None) -> str | None:
    if not notes:
        return None
    m = _KEY_RE.search(notes)
    return m.group(1) if m else None


def _fuzzy_match(
    candidate: TaskRecord,
    source: TaskRecord,
    *,
    marker: str,
    window: timedelta,
) -> bool:
    if candidate.status != TaskStatus.COMPLETED:
        return False
    if candidate.title != source.title:
        return False
    if not candidate.notes or marker not in candidate.notes:
        return False
    if candidate.completed_at is None or source.completed_at is None:
        return False
    return abs(candidate.completed_at - source.completed_at) < window


def is_duplicate(
    event: RolloverEvent,
    remote: Snapshot,
    *,
    marker: str = DEFAULT_ARCHIVE_MARKER,
    window: timedelta = DEFAULT_DUPLICATE_WINDOW,
) -> bool:
    """True if `remote` already holds an archive copy for this rollover."""
    key = archive_key(event)
    for candidate in remote.tasks.values():
        if extract_archive_key(candidate.notes) == key:
            return True
        if _fuzzy_match(candidate, event.source_task, marker=marker, window=window):
            return True
    return False


def split_duplicates(
    events: Iterable[RolloverEvent],
    remote: Snapshot,
    *,
    marker: str = DEFAULT_ARCHIVE_MARKER,
    window: timedelta = DEFAULT_DUPLICATE_WINDOW,
) -> tuple[list[RolloverEvent], list[RolloverEvent]]:
    """Partition events into (to_archive, already_archived)."""
    todo: list[RolloverEvent] = []
    skipped: list[RolloverEvent] = []
    for ev in events:
        if is_duplicate(ev, remote, marker=marker, window=window):
            logger.info(
                "Skipping archive for '%s' - already exists on server.", ev.source_task.title
            )
            skipped.append(ev)
        else:
            todo.append(ev)
    return todo, skipped
