# src/task_keeper/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object, passed explicitly to the source/store/engine.
- No secrets required at import time (mock mode works out of the box).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TKEEP"

SOURCE_MOCK = "mock"
SOURCE_LIVE = "live"

BACKEND_SQLITE = "sqlite"
BACKEND_JSON = "json"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, choices: set[str], default: str) -> str:
    raw = _env(name, default).strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Credentials:
    client_id: str
    api_key: str
    access_token: str

    def is_complete(self) -> bool:
        return bool(self.access_token)


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Remote source ----
    source: str  # "mock" | "live"
    credentials: Credentials
    api_base_url: str
    page_size: int
    http_timeout_seconds: float
    mock_seed: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    snapshot_backend: str  # "sqlite" | "json"
    snapshot_db_path: Path
    snapshot_json_path: Path

    # ---- Archive / dedupe ----
    archive_marker: str
    duplicate_window_seconds: float

    @property
    def duplicate_window(self) -> timedelta:
        return timedelta(seconds=self.duplicate_window_seconds)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "task-keeper") or "task-keeper"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        source = _env_choice(_k("SOURCE"), {SOURCE_MOCK, SOURCE_LIVE}, SOURCE_MOCK)
        credentials = Credentials(
            client_id=_env(_k("CLIENT_ID")).strip(),
            api_key=_env(_k("API_KEY")).strip(),
            access_token=_env(_k("ACCESS_TOKEN")).strip(),
        )
        api_base_url = _env(_k("API_BASE_URL"), "https://tasks.googleapis.com/tasks/v1").rstrip("/")
        # Google Tasks caps maxResults at 100.
        page_size = max(1, min(100, _env_int(_k("PAGE_SIZE"), 100)))
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 20.0))
        mock_seed = _env_int(_k("MOCK_SEED"), 42)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/task-keeper"))
        snapshot_backend = _env_choice(_k("SNAPSHOT_BACKEND"), {BACKEND_SQLITE, BACKEND_JSON}, BACKEND_SQLITE)
        snapshot_db_path = _env_path(_k("SNAPSHOT_DB_PATH"), data_dir / "snapshot.sqlite3")
        snapshot_json_path = _env_path(_k("SNAPSHOT_JSON_PATH"), data_dir / "snapshot.json")

        archive_marker = _env(_k("ARCHIVE_MARKER"), "[Archived History of Recurring Task]").strip()
        if not archive_marker:
            archive_marker = "[Archived History of Recurring Task]"
        duplicate_window_seconds = max(0.0, _env_float(_k("DUPLICATE_WINDOW_SECONDS"), 60.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            source=source,
            credentials=credentials,
            api_base_url=api_base_url,
            page_size=page_size,
            http_timeout_seconds=http_timeout_seconds,
            mock_seed=mock_seed,
            data_dir=data_dir,
            snapshot_backend=snapshot_backend,
            snapshot_db_path=snapshot_db_path,
            snapshot_json_path=snapshot_json_path,
            archive_marker=archive_marker,
            duplicate_window_seconds=duplicate_window_seconds,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Process default settings, read from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
