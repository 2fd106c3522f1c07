# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for Tutorly.

The automatic lesson completion sweep runs on a fixed interval taken from
``LESSON_COMPLETION_INTERVAL_SECONDS``. Each run expires after one interval,
so a backlog of missed ticks never piles up into back-to-back sweeps.
"""

from datetime import timedelta
import logging
from typing import Any, Dict

from app.core.config import settings

logger = logging.getLogger(__name__)


def _lesson_completion_entry() -> Dict[str, Any]:
    interval = settings.lesson_completion_interval_seconds
    return {
        "task": "app.tasks.lesson_tasks.complete_elapsed_lessons",
        "schedule": timedelta(seconds=interval),
        "options": {
            "queue": "bookings",
            "expires": interval,
            "priority": 6,
        },
    }


def get_beat_schedule(environment: str = "development") -> Dict[str, Dict[str, Any]]:
    """
    Build the beat schedule for the given environment.

    Returns an empty schedule when automatic completion is disabled.
    """
    schedule: Dict[str, Dict[str, Any]] = {}
    if settings.lesson_completion_enabled:
        schedule["complete-elapsed-lessons"] = _lesson_completion_entry()
    else:
        logger.info("Automatic lesson completion disabled; not scheduling sweep")
    logger.info(f"Loaded {len(schedule)} beat entries for environment={environment}")
    return schedule
