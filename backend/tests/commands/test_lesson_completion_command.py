import threading
from unittest.mock import MagicMock, patch

from app.commands import lesson_completion
from app.commands.lesson_completion import LessonCompletionCommand


class TestLessonCompletionCommand:
    def test_run_once_success(self):
        scheduler = MagicMock()
        scheduler.run_sweep_once.return_value = {"completed": 1}

        outcome = LessonCompletionCommand(scheduler=scheduler).run_once()

        assert outcome == {"status": "success", "results": {"completed": 1}}

    def test_run_once_failure(self):
        scheduler = MagicMock()
        scheduler.run_sweep_once.return_value = None

        assert LessonCompletionCommand(scheduler=scheduler).run_once() == {"status": "failed"}

    def test_serve_stops_scheduler_on_event(self):
        scheduler = MagicMock()
        stop_event = threading.Event()
        stop_event.set()

        LessonCompletionCommand(scheduler=scheduler).serve(interval=30, stop_event=stop_event)

        scheduler.start.assert_called_once_with(interval=30)
        scheduler.stop.assert_called_once()

    def test_main_run_once_exit_code(self, capsys):
        with patch.object(lesson_completion, "LessonCompletionCommand") as mock_command:
            mock_command.return_value.run_once.return_value = {"status": "failed"}

            assert lesson_completion.main(["run-once"]) == 1

        assert '"failed"' in capsys.readouterr().out

    def test_main_init_db(self):
        with patch.object(lesson_completion, "init_db") as mock_init_db, patch.object(
            lesson_completion, "LessonCompletionCommand"
        ) as mock_command:
            mock_command.return_value.run_once.return_value = {"status": "success", "results": {}}

            assert lesson_completion.main(["run-once", "--init-db"]) == 0

        mock_init_db.assert_called_once()
