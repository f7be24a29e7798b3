# src/task_keeper/sync/engine.py

"""
Sync run orchestration.

One run:
1. load the previous snapshot (once),
2. fetch every list and drain every page of tasks,
3. reconcile previous + fresh,
4. drop rollovers the remote side already has an archive copy for,
5. write archive copies concurrently (failures isolated per item),
6. save the merged snapshot (once).

A fetch failure aborts the run before step 3 and leaves the store untouched.
Archive failures never abort; their ids stay in `pending_archive_ids` so the next
run tries again, except when the service reports the target as gone.
Store failures on load or save surface as SnapshotStoreError.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from ..core.ports import RemoteTaskSource, SnapshotStore
from .archive import ArchiveOutcome, archive_rollovers
from .dedupe import DEFAULT_ARCHIVE_MARKER, DEFAULT_DUPLICATE_WINDOW, split_duplicates
from .models import RolloverEvent, Snapshot, TaskRecord
from .reconcile import origin_id, reconcile, sorted_tasks

logger = logging.getLogger(__name__)


class SyncError(RuntimeError):
    pass


class RemoteFetchError(SyncError):
    """Fetching the remote snapshot failed; `previous` is what the user should keep seeing."""

    def __init__(self, message: str, *, previous: Snapshot) -> None:
        super().__init__(message)
        self.previous = previous


class SyncInProgressError(SyncError):
    pass


class SnapshotStoreError(SyncError):
    """The local snapshot could not be read or written."""


@dataclass(slots=True)
class SyncReport:
    merged: Snapshot
    rollovers: list[RolloverEvent] = field(default_factory=list)
    retried: list[RolloverEvent] = field(default_factory=list)
    skipped_duplicates: list[RolloverEvent] = field(default_factory=list)
    outcomes: list[ArchiveOutcome] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def failed(self) -> list[ArchiveOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def abandoned(self) -> list[ArchiveOutcome]:
        return [o for o in self.outcomes if not o.success and not o.retryable]

    @property
    def archived(self) -> list[ArchiveOutcome]:
        return [o for o in self.outcomes if o.success]

    def tasks(self) -> list[TaskRecord]:
        return sorted_tasks(self.merged)


async def fetch_remote_snapshot(source: RemoteTaskSource) -> Snapshot:
    """Drain all lists and all pages; partial results are never returned."""
    lists = await source.list_task_lists()
    tasks: list[TaskRecord] = []

    for task_list in lists:
        logger.debug("Scanning list '%s' (%s)", task_list.title, task_list.id)
        page_token: str | None = None
        pages = 0
        while True:
            items, page_token = await source.list_tasks(task_list, page_token)
            tasks.extend(items)
            pages += 1
            if not page_token:
                break
        logger.debug("List '%s': %d page(s)", task_list.title, pages)

    return Snapshot.of(lists, tasks)


class SyncEngine:
    """
    Runs sync passes against one snapshot store.

    Runs on the same engine never overlap: a second refresh() while one is active
    raises SyncInProgressError instead of waiting.
    """

    def __init__(
        self,
        source: RemoteTaskSource,
        store: SnapshotStore,
        *,
        archive_marker: str = DEFAULT_ARCHIVE_MARKER,
        duplicate_window: timedelta = DEFAULT_DUPLICATE_WINDOW,
    ) -> None:
        self._source = source
        self._store = store
        self._marker = archive_marker
        self._window = duplicate_window
        self._run_lock = threading.Lock()

    @property
    def store(self) -> SnapshotStore:
        return self._store

    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def refresh(self, *, now: datetime | None = None) -> SyncReport:
        if not self._run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync run is already in progress for this store.")
        try:
            return await self._refresh_locked(now=now)
        finally:
            self._run_lock.release()

    async def _refresh_locked(self, *, now: datetime | None) -> SyncReport:
        started_at = now or datetime.now(UTC)
        try:
            previous = self._store.load()
        except Exception as exc:
            logger.exception("Loading the stored snapshot failed.")
            raise SnapshotStoreError(f"Failed to load the stored snapshot: {exc}") from exc

        logger.info(
            "Sync started: %d stored task(s), %d pending archive(s)",
            len(previous.tasks),
            len(previous.pending_archive_ids),
        )

        try:
            fresh = await fetch_remote_snapshot(self._source)
        except Exception as exc:
            logger.exception("Fetching remote tasks failed; keeping the stored snapshot.")
            raise RemoteFetchError(f"Failed to fetch remote tasks: {exc}", previous=previous) from exc

        merged, rollovers = reconcile(previous, fresh, now=started_at)
        retried = self._retry_events(merged, exclude={ev.source_task.id for ev in rollovers})

        todo, skipped = split_duplicates(
            [*rollovers, *retried],
            fresh,
            marker=self._marker,
            window=self._window,
        )
        outcomes = await archive_rollovers(self._source, todo, marker=self._marker)

        pending = set(merged.pending_archive_ids)
        pending.difference_update(ev.source_task.id for ev in skipped)
        for outcome in outcomes:
            archived_id = outcome.event.source_task.id
            if outcome.success:
                pending.discard(archived_id)
            elif outcome.retryable:
                pending.add(archived_id)
            else:
                pending.discard(archived_id)
                logger.warning(
                    "Giving up on archiving '%s' (id=%s): %s",
                    outcome.event.source_task.title,
                    archived_id,
                    outcome.error,
                )

        merged = Snapshot(
            lists=merged.lists,
            tasks=merged.tasks,
            pending_archive_ids=frozenset(pending),
        )
        try:
            self._store.save(merged)
        except Exception as exc:
            logger.exception("Saving the merged snapshot failed.")
            raise SnapshotStoreError(f"Failed to save the merged snapshot: {exc}") from exc

        report = SyncReport(
            merged=merged,
            rollovers=rollovers,
            retried=retried,
            skipped_duplicates=skipped,
            outcomes=outcomes,
            started_at=started_at,
            finished_at=datetime.now(UTC),
        )
        logger.info(
            "Sync finished: %d task(s), %d list(s), %d rollover(s), %d archived, %d failed, %d skipped",
            len(merged.tasks),
            len(merged.lists),
            len(rollovers),
            len(report.archived),
            len(report.failed),
            len(skipped),
        )
        return report

    @staticmethod
    def _retry_events(merged: Snapshot, *, exclude: set[str]) -> list[RolloverEvent]:
        """Rebuild events for archival records whose earlier write failed."""
        events: list[RolloverEvent] = []
        for archived_id in sorted(merged.pending_archive_ids):
            if archived_id in exclude:
                continue
            archived = merged.tasks.get(archived_id)
            if archived is None:
                continue
            # The live task may be gone upstream; the history still has to be written.
            live = merged.tasks.get(origin_id(archived_id), archived)
            events.append(RolloverEvent(source_task=archived, replacement_task=live))
        return events


def friendly_sync_error_message(exc: BaseException) -> str:
    """One-line, user-facing description of a failed run."""
    if isinstance(exc, SyncInProgressError):
        return "A sync is already running; try again when it finishes."
    if isinstance(exc, SnapshotStoreError):
        return f"The local snapshot store failed: {exc.__cause__ or exc}"
    if isinstance(exc, RemoteFetchError):
        cause = exc.__cause__
        status = getattr(cause, "status_code", None)
        if status in (401, 403):
            return f"The task service rejected the credentials (HTTP {status}). Refresh the access token."
        if status == 429:
            return "The task service is rate limiting requests (HTTP 429). Try again later."
        return "Could not fetch tasks from the remote service. Showing the last saved snapshot."
    return f"Sync failed: {exc}"
