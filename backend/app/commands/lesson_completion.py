#!/usr/bin/env python
# backend/app/commands/lesson_completion.py
"""
Lesson completion management commands for Tutorly.

Usage:
    python -m app.commands.lesson_completion run-once          # Run a single sweep
    python -m app.commands.lesson_completion serve             # Sweep on an interval until stopped
    python -m app.commands.lesson_completion serve --interval 60 --init-db
"""

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.database import init_db
from app.services.lesson_completion_scheduler import LessonCompletionScheduler

logging.basicConfig(
    level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class LessonCompletionCommand:
    """Lesson completion command handler."""

    def __init__(self, scheduler: Optional[LessonCompletionScheduler] = None) -> None:
        self.scheduler = scheduler or LessonCompletionScheduler()

    def run_once(self) -> Dict[str, Any]:
        results = self.scheduler.run_sweep_once()
        if results is None:
            return {"status": "failed"}
        return {"status": "success", "results": dict(results)}

    def serve(self, interval: Optional[float] = None, stop_event: Optional[threading.Event] = None) -> None:
        """Run the scheduler until SIGINT/SIGTERM or ``stop_event`` is set."""
        stop_event = stop_event or threading.Event()

        def _handle_signal(signum: int, _frame: Any) -> None:
            logger.info(f"Received signal {signum}; shutting down")
            stop_event.set()

        previous_handlers = {}
        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGTERM, signal.SIGINT):
                previous_handlers[signum] = signal.signal(signum, _handle_signal)

        self.scheduler.start(interval=interval)
        try:
            stop_event.wait()
        finally:
            self.scheduler.stop(timeout=30)
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Automatic lesson completion")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run-once", help="Run a single completion sweep and exit")

    serve_parser = subparsers.add_parser("serve", help="Run sweeps on a fixed interval")
    serve_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between sweeps (default: LESSON_COMPLETION_INTERVAL_SECONDS)",
    )

    for sub in subparsers.choices.values():
        sub.add_argument("--init-db", action="store_true", help="Create tables before running")

    args = parser.parse_args(argv)

    if args.init_db:
        init_db()

    command = LessonCompletionCommand()
    if args.command == "run-once":
        outcome = command.run_once()
        print(json.dumps(outcome, indent=2, default=str))
        return 0 if outcome["status"] == "success" else 1

    if not settings.lesson_completion_enabled:
        logger.warning("LESSON_COMPLETION_ENABLED is false; not starting scheduler")
        return 0
    command.serve(interval=args.interval)
    return 0


if __name__ == "__main__":
    sys.exit(main())
