# backend/app/tasks/lesson_tasks.py
"""
Lesson lifecycle Celery tasks.

``complete_elapsed_lessons`` is the beat-driven form of the automatic
completion sweep. A Redis mutex keeps concurrent workers from sweeping at
the same time; when it is held elsewhere the task returns a skipped result.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, TypeVar, cast

from sqlalchemy.orm import Session

from app.core.exceptions import StoreUnavailableException
from app.core.metrics import LESSON_COMPLETION_SWEEPS_TOTAL
from app.core.sweep_lock import sweep_lock
from app.database import SessionLocal
from app.services.lesson_completion_service import LessonCompletionService
from app.tasks.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)

TaskCallable = TypeVar("TaskCallable", bound=Callable[..., Any])

SWEEP_NAME = "lesson-completion"


def typed_task(*task_args: Any, **task_kwargs: Any) -> Callable[[TaskCallable], TaskCallable]:
    return cast(Callable[[TaskCallable], TaskCallable], celery_app.task(*task_args, **task_kwargs))


@typed_task(
    base=BaseTask,
    name="app.tasks.lesson_tasks.complete_elapsed_lessons",
    bind=True,
    # Missed sweeps are picked up by the next tick
    autoretry_for=(),
    max_retries=0,
)
def complete_elapsed_lessons(self: Any) -> Dict[str, Any]:
    """
    Mark elapsed, undisputed confirmed lessons as completed.

    Returns:
        Sweep summary, or ``{"skipped": True, ...}`` when another worker holds the sweep
    """
    with sweep_lock(SWEEP_NAME) as acquired:
        if not acquired:
            LESSON_COMPLETION_SWEEPS_TOTAL.labels(outcome="skipped_overlap").inc()
            logger.info("Lesson completion sweep already running elsewhere; skipping")
            return {"skipped": True, "reason": "sweep_in_progress"}

        db: Session = SessionLocal()
        try:
            service = LessonCompletionService(db)
            results = service.complete_due_lessons()
        except StoreUnavailableException as exc:
            logger.error(f"Lesson completion sweep aborted: {exc.message}")
            return {"skipped": False, "aborted": True, "error": exc.message}
        finally:
            db.close()

    logger.info(
        f"Lesson completion task finished: {results['completed']} completed "
        f"out of {results['candidates']} candidates"
    )
    return dict(results)
