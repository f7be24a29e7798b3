# src/task_keeper/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then either:
- runs the console REPL (TKEEP_CONSOLE_ENABLED=true, default), or
- performs a single sync run and exits with a non-zero code on failure.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..cli.commands import run_sync
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (source=%s)...", settings.app_name, settings.source)

    try:
        state = create_initial_state(settings=settings)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        return 2

    if settings.console_enabled:
        run_console_loop(state)
        logger.info("Bye.")
        return 0

    print(run_sync(state))
    return 1 if state.last_error else 0


if __name__ == "__main__":
    sys.exit(main())
