"""
Tests for lesson lifecycle Celery tasks.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from app.core.exceptions import StoreUnavailableException
from app.tasks.beat_schedule import get_beat_schedule
from app.tasks.lesson_tasks import complete_elapsed_lessons


@contextmanager
def _lock(acquired):
    yield acquired


class TestCompleteElapsedLessons:
    """Test suite for the beat-driven completion sweep."""

    @patch("app.tasks.lesson_tasks.sweep_lock", return_value=_lock(True))
    @patch("app.tasks.lesson_tasks.LessonCompletionService")
    @patch("app.tasks.lesson_tasks.SessionLocal")
    def test_runs_sweep_and_closes_session(self, mock_session_local, mock_service_cls, _mock_lock):
        mock_db = MagicMock()
        mock_session_local.return_value = mock_db
        mock_service_cls.return_value.complete_due_lessons.return_value = {
            "candidates": 2,
            "completed": 2,
            "skipped": 0,
            "failed": 0,
            "notifications_failed": 0,
            "completed_ids": ["a", "b"],
            "processed_at": "2026-10-19T12:00:00+00:00",
            "aborted": False,
        }

        result = complete_elapsed_lessons()

        assert result["completed"] == 2
        mock_service_cls.assert_called_once_with(mock_db)
        mock_db.close.assert_called_once()

    @patch("app.tasks.lesson_tasks.sweep_lock", return_value=_lock(False))
    @patch("app.tasks.lesson_tasks.LessonCompletionService")
    @patch("app.tasks.lesson_tasks.SessionLocal")
    def test_skips_when_another_worker_holds_the_lock(
        self, mock_session_local, mock_service_cls, _mock_lock
    ):
        result = complete_elapsed_lessons()

        assert result == {"skipped": True, "reason": "sweep_in_progress"}
        mock_session_local.assert_not_called()
        mock_service_cls.assert_not_called()

    @patch("app.tasks.lesson_tasks.sweep_lock", return_value=_lock(True))
    @patch("app.tasks.lesson_tasks.LessonCompletionService")
    @patch("app.tasks.lesson_tasks.SessionLocal")
    def test_store_unavailable_is_reported_not_raised(
        self, mock_session_local, mock_service_cls, _mock_lock
    ):
        mock_db = MagicMock()
        mock_session_local.return_value = mock_db
        mock_service_cls.return_value.complete_due_lessons.side_effect = StoreUnavailableException(
            "database down"
        )

        result = complete_elapsed_lessons()

        assert result["aborted"] is True
        assert result["error"] == "database down"
        mock_db.close.assert_called_once()


class TestBeatSchedule:
    def test_schedules_completion_sweep(self):
        schedule = get_beat_schedule("production")

        entry = schedule["complete-elapsed-lessons"]
        assert entry["task"] == "app.tasks.lesson_tasks.complete_elapsed_lessons"
        assert entry["schedule"].total_seconds() == 300
        assert entry["options"]["expires"] == 300

    def test_disabled_schedule_is_empty(self):
        with patch("app.tasks.beat_schedule.settings") as mock_settings:
            mock_settings.lesson_completion_enabled = False

            assert get_beat_schedule() == {}


class TestCeleryApp:
    def test_registers_only_the_completion_task(self):
        from app.tasks.celery_app import celery_app

        registered = {name for name in celery_app.tasks if not name.startswith("celery.")}

        assert registered == {"app.tasks.lesson_tasks.complete_elapsed_lessons"}

    def test_routes_lesson_tasks_to_bookings_queue(self):
        from app.tasks.celery_app import celery_app

        assert celery_app.conf.task_routes["app.tasks.lesson_tasks.*"] == {"queue": "bookings"}
