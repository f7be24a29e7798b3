# src/task_keeper/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..sync.engine import SyncEngine, SyncReport
from ..sync.models import Snapshot
from .ports import RemoteTaskSource, SnapshotStore


@dataclass
class AppState:
    settings: object

    source: RemoteTaskSource
    store: SnapshotStore
    engine: SyncEngine

    last_report: SyncReport | None = None
    last_error: str | None = None

    def current_snapshot(self) -> Snapshot:
        """Merged snapshot of the last successful run, else whatever is stored."""
        if self.last_report is not None:
            return self.last_report.merged
        return self.store.load()
