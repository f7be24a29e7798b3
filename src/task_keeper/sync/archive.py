# src/task_keeper/sync/archive.py

"""
Archive writer.

For each rollover, insert one completed copy of the lost completion into the
remote service so the history survives there too. All writes of a batch are
dispatched together; each outcome is recorded on its own and nothing is retried
here. A failed write is picked up again by the next sync run unless the service
says the target is gone (404/410), which no retry can fix.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from ..core.ports import RemoteTaskSource
from .dedupe import DEFAULT_ARCHIVE_MARKER, archive_notes
from .models import RolloverEvent, TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

# The target list no longer exists upstream.
PERMANENT_FAILURE_STATUSES = frozenset({404, 410})


@dataclass(frozen=True, slots=True)
class ArchiveOutcome:
    event: RolloverEvent
    success: bool
    error: str | None = None
    remote_id: str | None = None
    retryable: bool = True


def build_archive_record(
    event: RolloverEvent,
    *,
    marker: str = DEFAULT_ARCHIVE_MARKER,
    now: datetime | None = None,
) -> TaskRecord:
    """The record sent to the remote service for one rollover."""
    src = event.source_task
    return TaskRecord(
        id="",  # assigned by the remote service
        title=src.title,
        status=TaskStatus.COMPLETED,
        completed_at=src.completed_at,
        updated_at=now or datetime.now(UTC),
        notes=archive_notes(event, marker),
        list_id=src.list_id,
        list_name=src.list_name,
    )


async def _archive_one(
    source: RemoteTaskSource,
    event: RolloverEvent,
    *,
    marker: str,
) -> ArchiveOutcome:
    record = build_archive_record(event, marker=marker)
    try:
        created = await source.insert_task(record.list_id, record)
    except Exception as exc:
        status = getattr(exc, "status_code", None)
        retryable = status not in PERMANENT_FAILURE_STATUSES
        logger.warning(
            "Failed to archive recurring task '%s' (list=%s, status=%s): %s",
            record.title,
            record.list_id,
            status,
            exc,
            exc_info=status is None,
        )
        return ArchiveOutcome(
            event=event,
            success=False,
            error=str(exc) or exc.__class__.__name__,
            retryable=retryable,
        )

    logger.info("Archived recurring task: %s", record.title)
    return ArchiveOutcome(event=event, success=True, remote_id=created.id or None)


async def archive_rollovers(
    source: RemoteTaskSource,
    events: Sequence[RolloverEvent],
    *,
    marker: str = DEFAULT_ARCHIVE_MARKER,
) -> list[ArchiveOutcome]:
    """Write all events concurrently; outcomes come back in input order."""
    if not events:
        return []
    logger.info("Archiving %d recurring task(s) to remote history...", len(events))
    return list(await asyncio.gather(*(_archive_one(source, ev, marker=marker) for ev in events)))
