# src/task_keeper/sync/stats.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .models import Snapshot


@dataclass(frozen=True, slots=True)
class SnapshotStats:
    total: int
    completed_total: int
    completed_week: int
    recurring_count: int
    archived_count: int


def snapshot_stats(snapshot: Snapshot, *, now: datetime | None = None) -> SnapshotStats:
    now = now or datetime.now(UTC)
    week_ago = now - timedelta(days=7)

    tasks = list(snapshot.tasks.values())
    completed = [t for t in tasks if t.is_completed]
    return SnapshotStats(
        total=len(tasks),
        completed_total=len(completed),
        completed_week=sum(1 for t in completed if t.completed_at and t.completed_at > week_ago),
        recurring_count=sum(1 for t in tasks if t.is_recurring),
        archived_count=sum(1 for t in tasks if t.is_archived),
    )
