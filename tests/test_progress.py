"""Tests for the progress tracker factory."""

from pvs_restore.utils.progress import ProgressTracker, SimpleProgressTracker, create_progress_tracker


def test_disabled_tracker_counts_silently(capsys):
    tracker = create_progress_tracker(total_steps=10, enabled=False)

    with tracker:
        tracker.update_step('Create Snapshot')
        tracker.advance()

    assert isinstance(tracker, SimpleProgressTracker)
    assert tracker.current_step == 1
    assert capsys.readouterr().out == ''


def test_non_terminal_output_gets_simple_tracker():
    # pytest captures stdout, so it is not a tty here
    assert isinstance(create_progress_tracker(total_steps=10), SimpleProgressTracker)


def test_progress_tracker_lifecycle():
    tracker = ProgressTracker(total_steps=2, desc='Restore test')

    tracker.start()
    tracker.update_step('Authenticate')
    tracker.advance()
    tracker.finish()

    assert tracker.current_step == 1
    assert tracker.current_step_name == 'Authenticate'
    assert tracker.bar is None
    assert tracker.elapsed >= 0
