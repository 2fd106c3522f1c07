# backend/app/services/lesson_completion_scheduler.py
"""
In-process scheduler for the automatic lesson completion sweep.

Runs ``LessonCompletionService.complete_due_lessons`` on a fixed interval in
a daemon thread. Sweeps never overlap: a tick that arrives while the previous
sweep is still running is skipped. A failed sweep is logged and the next
tick proceeds normally.

Deployments that run Celery beat use ``app.tasks.lesson_tasks`` instead;
this scheduler is for the standalone ``serve`` command and tests.
"""

from datetime import timedelta
import logging
import threading
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import StoreUnavailableException
from ..core.metrics import LESSON_COMPLETION_SWEEPS_TOTAL
from ..core.timezone_utils import Clock, utc_now
from ..database import SessionLocal
from .lesson_completion_service import LessonCompletionService, SweepResults

logger = logging.getLogger(__name__)


class LessonCompletionScheduler:
    """Periodic driver for the completion sweep."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Clock = utc_now,
        interval_seconds: Optional[float] = None,
        grace_minutes: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.interval_seconds = float(
            interval_seconds
            if interval_seconds is not None
            else settings.lesson_completion_interval_seconds
        )
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        grace = grace_minutes if grace_minutes is not None else settings.lesson_completion_grace_minutes
        self.grace_period = timedelta(minutes=grace)

        self._sweep_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval: Optional[float] = None) -> None:
        """
        Start sweeping every ``interval`` seconds. No-op if already running.

        The first sweep runs one interval after start.
        """
        with self._state_lock:
            if self.is_running:
                logger.info("Lesson completion scheduler already running")
                return
            if interval is not None:
                if interval <= 0:
                    raise ValueError("interval must be positive")
                self.interval_seconds = float(interval)

            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="lesson-completion-scheduler",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"Lesson completion scheduler started (interval={self.interval_seconds:.0f}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop and wait for an in-flight sweep to finish."""
        with self._state_lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if stop_event is None or thread is None:
            return
        stop_event.set()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Lesson completion scheduler did not stop within timeout")
        else:
            logger.info("Lesson completion scheduler stopped")

    def run_sweep_once(self) -> Optional[SweepResults]:
        """
        Run one sweep now unless one is already in progress.

        Returns the sweep summary, or None if the sweep was skipped or failed.
        Never raises.
        """
        if not self._sweep_lock.acquire(blocking=False):
            LESSON_COMPLETION_SWEEPS_TOTAL.labels(outcome="skipped_overlap").inc()
            logger.info("Previous lesson completion sweep still running; skipping this tick")
            return None
        try:
            db = self.session_factory()
            try:
                service = LessonCompletionService(db, clock=self.clock, grace_period=self.grace_period)
                return service.complete_due_lessons()
            finally:
                db.close()
        except StoreUnavailableException as exc:
            logger.error(f"Lesson completion sweep aborted: {exc.message}")
            return None
        except Exception as exc:
            logger.error(f"Error in lesson completion sweep: {exc}", exc_info=True)
            return None
        finally:
            self._sweep_lock.release()

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_seconds):
            self.run_sweep_once()
