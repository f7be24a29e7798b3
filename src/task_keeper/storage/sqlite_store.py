# src/task_keeper/storage/sqlite_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from ..sync.models import Snapshot, TaskListMeta, TaskRecord, TaskStatus, parse_ts

logger = logging.getLogger(__name__)


def _ts_to_db(dt: datetime | None) -> str | None:
    # Full precision, unlike the millisecond wire format.
    return dt.isoformat() if dt is not None else None


class SqliteSnapshotStore:
    """
    SQLite snapshot store.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    save() replaces the whole snapshot in one transaction, so a crash mid-save
    leaves the previous snapshot in place.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "snapshot.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("SqliteSnapshotStore ready db=%s total=%s", self._db_path, total)

    @property
    def path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_lists (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    position INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'needsAction',
                    completed_at TEXT,
                    due_at TEXT,
                    updated_at TEXT NOT NULL,
                    notes TEXT,
                    list_id TEXT NOT NULL,
                    list_name TEXT,
                    is_archived INTEGER NOT NULL DEFAULT 0,
                    is_recurring INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute("CREATE TABLE IF NOT EXISTS pending_archives (task_id TEXT PRIMARY KEY)")

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SqliteSnapshotStore migration: added column %s", name)

            add_col("due_at", "TEXT")
            add_col("notes", "TEXT")
            add_col("list_name", "TEXT")
            add_col("is_archived", "INTEGER NOT NULL DEFAULT 0")
            add_col("is_recurring", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_list ON tasks(list_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> TaskRecord:
        status = TaskStatus.from_api(row["status"])
        completed_at = parse_ts(row["completed_at"]) if status == TaskStatus.COMPLETED else None
        return TaskRecord(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            status=status,
            completed_at=completed_at,
            due_at=parse_ts(row["due_at"]),
            updated_at=parse_ts(row["updated_at"]),
            notes=row["notes"],
            list_id=str(row["list_id"]),
            list_name=row["list_name"],
            is_archived=bool(row["is_archived"]),
            is_recurring=bool(row["is_recurring"]),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def load(self) -> Snapshot:
        conn = self._get_conn()
        try:
            lists = [
                TaskListMeta(id=str(r["id"]), title=str(r["title"] or ""))
                for r in conn.execute("SELECT id, title FROM task_lists ORDER BY position ASC")
            ]
            tasks = [self._row_to_task(r) for r in conn.execute("SELECT * FROM tasks")]
            pending = [str(r["task_id"]) for r in conn.execute("SELECT task_id FROM pending_archives")]
        finally:
            conn.close()

        logger.debug("Loaded snapshot: %d list(s), %d task(s)", len(lists), len(tasks))
        return Snapshot.of(lists, tasks, pending)

    def save(self, snapshot: Snapshot) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.execute("DELETE FROM task_lists")
                conn.execute("DELETE FROM tasks")
                conn.execute("DELETE FROM pending_archives")

                conn.executemany(
                    "INSERT INTO task_lists(id, title, position) VALUES (?, ?, ?)",
                    [(lst.id, lst.title, i) for i, lst in enumerate(snapshot.lists)],
                )
                conn.executemany(
                    """
                    INSERT INTO tasks(
                        id, title, status, completed_at, due_at, updated_at,
                        notes, list_id, list_name, is_archived, is_recurring
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            t.id,
                            t.title,
                            t.status.value,
                            _ts_to_db(t.completed_at),
                            _ts_to_db(t.due_at),
                            _ts_to_db(t.updated_at),
                            t.notes,
                            t.list_id,
                            t.list_name,
                            int(t.is_archived),
                            int(t.is_recurring),
                        )
                        for t in snapshot.tasks.values()
                    ],
                )
                conn.executemany(
                    "INSERT INTO pending_archives(task_id) VALUES (?)",
                    [(i,) for i in sorted(snapshot.pending_archive_ids)],
                )
        finally:
            conn.close()

        logger.debug(
            "Saved snapshot: %d list(s), %d task(s), %d pending archive(s)",
            len(snapshot.lists),
            len(snapshot.tasks),
            len(snapshot.pending_archive_ids),
        )
