from __future__ import annotations

from unittest.mock import patch

from bulk_import.models.run_state import ProgressEvent, RunStage
from bulk_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    def test_no_bar_before_executing(self):
        with patch('bulk_import.services.progress.is_tty_enabled', return_value=True), \
             patch('bulk_import.services.progress.tqdm') as mock_tqdm:
            tracker = ProgressTracker()
            tracker(ProgressEvent(RunStage.DECODING, 0.0, "decoding"))
            tracker(ProgressEvent(RunStage.VALIDATING, 10.0, "3 rows decoded"))
            mock_tqdm.assert_not_called()
            assert tracker.last_event.stage is RunStage.VALIDATING

    def test_batches_drive_the_bar(self):
        with patch('bulk_import.services.progress.is_tty_enabled', return_value=True), \
             patch('bulk_import.services.progress.tqdm') as mock_tqdm:
            with ProgressTracker(description="employees") as tracker:
                tracker(ProgressEvent(RunStage.EXECUTING, 50.0, "2 rows to write"))
                tracker(ProgressEvent(RunStage.EXECUTING, 75.0, "insert batch 1/2", 1, 2))
                tracker(ProgressEvent(RunStage.EXECUTING, 100.0, "update batch 2/2", 2, 2))
                tracker.set_postfix(failed=0)

            mock_tqdm.assert_called_once_with(
                total=2,
                desc="employees",
                unit="batch",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
            bar = mock_tqdm.return_value
            assert [c.args for c in bar.update.call_args_list] == [(1,), (1,)]
            bar.set_postfix.assert_called_once_with(failed=0)
            bar.close.assert_called_once()
            assert tracker.pbar is None

    def test_disabled_without_tty(self):
        with patch('bulk_import.services.progress.is_tty_enabled', return_value=False), \
             patch('bulk_import.services.progress.tqdm') as mock_tqdm:
            tracker = ProgressTracker()
            tracker(ProgressEvent(RunStage.EXECUTING, 75.0, "insert batch 1/2", 1, 2))
            tracker.set_postfix(failed=1)
            tracker.close()
            mock_tqdm.assert_not_called()
            assert tracker.enabled is False
            assert tracker.batches_done == 1
