# tests/conftest.py

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

from task_keeper.cli.bootstrap import create_initial_state
from task_keeper.core.state import AppState
from task_keeper.sync.dedupe import DEFAULT_ARCHIVE_MARKER


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment and any local .env file.
    """
    return SimpleNamespace(
        app_name="task-keeper-test",
        log_level="DEBUG",
        console_enabled=False,
        source="mock",
        mock_seed=7,
        data_dir=tmp_path,
        snapshot_backend="sqlite",
        snapshot_db_path=tmp_path / "snapshot.sqlite3",
        snapshot_json_path=tmp_path / "snapshot.json",
        archive_marker=DEFAULT_ARCHIVE_MARKER,
        duplicate_window=timedelta(seconds=60),
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired by the real composition root, using the mock source.

    NOTE: We keep the real SQLite store here because its correctness is part of
    what we want to test.
    """
    return create_initial_state(settings=settings)
