# src/task_keeper/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the remote source, the snapshot store and the sync engine into AppState.
"""

from __future__ import annotations

import logging

from ..config import BACKEND_JSON, SOURCE_LIVE, Settings, get_settings
from ..core.ports import RemoteTaskSource, SnapshotStore
from ..core.state import AppState
from ..sources.google_tasks import GoogleTasksSource
from ..sources.mock import MockTaskSource
from ..storage.json_store import JsonSnapshotStore
from ..storage.sqlite_store import SqliteSnapshotStore
from ..sync.engine import SyncEngine

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.snapshot_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.snapshot_json_path.parent.mkdir(parents=True, exist_ok=True)


def build_source(settings: Settings) -> RemoteTaskSource:
    """Live Google Tasks source or the offline mock, per settings.source."""
    if settings.source == SOURCE_LIVE:
        # Raises ValueError when no access token is configured.
        return GoogleTasksSource(settings)
    logger.info("Using mock task source (seed=%s).", settings.mock_seed)
    return MockTaskSource(seed=settings.mock_seed)


def build_store(settings: Settings) -> SnapshotStore:
    if settings.snapshot_backend == BACKEND_JSON:
        return JsonSnapshotStore(settings.snapshot_json_path)
    return SqliteSnapshotStore(settings.snapshot_db_path)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    source = build_source(settings)
    store = build_store(settings)
    engine = SyncEngine(
        source,
        store,
        archive_marker=settings.archive_marker,
        duplicate_window=settings.duplicate_window,
    )
    return AppState(settings=settings, source=source, store=store, engine=engine)
