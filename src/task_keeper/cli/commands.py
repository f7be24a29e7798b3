# src/task_keeper/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..sources.mock import MockTaskSource
from ..sync.engine import SyncError, SyncReport, friendly_sync_error_message
from ..sync.models import TaskRecord
from ..sync.reconcile import sorted_tasks
from ..sync.stats import snapshot_stats

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /sync, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_task(t: TaskRecord) -> str:
    mark = "x" if t.is_completed else " "
    when = t.sort_key.astimezone().strftime("%Y-%m-%d %H:%M")
    flags = []
    if t.is_archived:
        flags.append("archived")
    if t.is_recurring:
        flags.append("recurring")
    flag_str = f" ({', '.join(flags)})" if flags else ""
    return f"[{mark}] {when}  {t.title}{flag_str}  <{t.list_name or t.list_id}>"


def format_report(report: SyncReport) -> str:
    lines = [
        f"Sync done: {len(report.merged.tasks)} task(s) in {len(report.merged.lists)} list(s).",
        f"  Rollovers detected: {len(report.rollovers)}",
    ]
    for ev in report.rollovers:
        lines.append(f"    - {ev.source_task.title}")
    if report.retried:
        lines.append(f"  Retried pending archives: {len(report.retried)}")
    if report.skipped_duplicates:
        lines.append(f"  Already archived remotely: {len(report.skipped_duplicates)}")
    if report.outcomes:
        lines.append(f"  Archived: {len(report.archived)}, failed: {len(report.failed)}")
    for o in report.failed:
        lines.append(f"    ! {o.event.source_task.title}: {o.error}")
    if len(report.failed) > len(report.abandoned):
        lines.append("  Failed archives will be retried on the next sync.")
    if report.abandoned:
        lines.append(f"  Given up (target gone upstream): {len(report.abandoned)}")
    return "\n".join(lines)


def run_sync(state: AppState) -> str:
    """Run one sync pass; on failure the previous snapshot stays in place."""
    try:
        report = asyncio.run(state.engine.refresh())
    except SyncError as e:
        state.last_error = friendly_sync_error_message(e)
        return state.last_error

    state.last_report = report
    state.last_error = None
    return format_report(report)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    source = str(getattr(settings, "source", "?"))
    backend = str(getattr(settings, "snapshot_backend", "?"))
    store_path = getattr(state.store, "path", "?")
    snap = state.current_snapshot()

    last = "never"
    if state.last_report is not None and state.last_report.finished_at is not None:
        last = state.last_report.finished_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")

    lines = [
        "Status:",
        f"  Source: {source.upper()}",
        f"  Snapshot store: {backend} ({store_path})",
        f"  Stored tasks: {len(snap.tasks)}",
        f"  Pending archives: {len(snap.pending_archive_ids)}",
        f"  Last sync: {last}",
    ]
    if state.last_error:
        lines.append(f"  Last error: {state.last_error}")
    return "\n".join(lines)


def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("[SYNC] Fetching lists and tasks...")
    return run_sync(state)


def cmd_stats(state: AppState, args: list[str]) -> str:
    s = snapshot_stats(state.current_snapshot())
    return (
        "Stats:\n"
        f"  Total stored: {s.total}\n"
        f"  Completed (all time): {s.completed_total}\n"
        f"  Completed (7 days): {s.completed_week}\n"
        f"  Recurring tracked: {s.recurring_count}\n"
        f"  Archived history: {s.archived_count}"
    )


def cmd_recent(state: AppState, args: list[str]) -> str:
    """
    /recent      -> newest 10 tasks
    /recent N    -> newest N tasks
    """
    limit = 10
    if args:
        try:
            limit = max(1, int(args[0]))
        except ValueError:
            return "Usage: /recent [N]"

    tasks = sorted_tasks(state.current_snapshot())[:limit]
    if not tasks:
        return "No tasks stored yet. Use /sync first."
    return "\n".join(_fmt_task(t) for t in tasks)


def cmd_cycle(state: AppState, args: list[str]) -> str:
    if not isinstance(state.source, MockTaskSource):
        return "/cycle is only available with the mock source (TKEEP_SOURCE=mock)."
    rolled = state.source.roll_over_recurring()
    return f"Mock service reset {len(rolled)} completed recurring task(s). Run /sync to archive them."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show source, store and last sync.")
registry.register("sync", cmd_sync, help_text="Fetch, reconcile and archive rollovers.", aliases=["refresh"])
registry.register("stats", cmd_stats, help_text="Show task counters.")
registry.register("recent", cmd_recent, help_text="List newest tasks: /recent [N].")
registry.register("cycle", cmd_cycle, help_text="Mock only: reset completed recurring tasks.")
