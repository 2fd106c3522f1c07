# backend/app/tasks/__init__.py
"""
Celery tasks package for Tutorly.

This package contains the periodic booking lifecycle tasks, most notably
the automatic lesson completion sweep.
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.lesson_tasks import complete_elapsed_lessons

__all__ = [
    "celery_app",
    "BaseTask",
    "complete_elapsed_lessons",
]

# This allows running celery with: celery -A app.tasks worker
