"""
PowerVS Restore - Progress Tracking

Stage-level progress bar for interactive runs. Log lines are written
through the bar so they do not break it.
"""

import sys
import time

from tqdm import tqdm


class ProgressTracker:
    """
    Track progress of the run's stages with a tqdm bar.

    Example:
        tracker = ProgressTracker(total_steps=10, desc="Restore clone-202601011030")
        tracker.start()

        tracker.update_step("Create Snapshot")
        # ... do work ...
        tracker.advance()

        tracker.finish()
    """

    def __init__(self, total_steps: int, desc: str = "Restore"):
        """
        Initialize progress tracker.

        Args:
            total_steps: Total number of stages
            desc: Description of the run
        """
        self.total_steps = total_steps
        self.current_step = 0
        self.desc = desc
        self.current_step_name = ""
        self.start_time = None
        self.bar = None

    def start(self):
        """Start the progress tracker."""
        self.start_time = time.time()
        self.current_step = 0
        self.bar = tqdm(
            total=self.total_steps,
            desc=self.desc,
            bar_format='{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}]',
            ncols=80,
            file=sys.stdout
        )

    def update_step(self, step_name: str):
        """
        Update the current step name.

        Args:
            step_name: Name of the current stage
        """
        self.current_step_name = step_name
        if self.bar:
            self.bar.set_description(f"{self.desc} - {step_name}")

    def advance(self, steps: int = 1):
        """Advance the progress by one or more stages."""
        self.current_step += steps
        if self.bar:
            self.bar.update(steps)

    def finish(self):
        """Finish the progress tracker."""
        if self.bar:
            self.bar.close()
            self.bar = None

    @property
    def elapsed(self) -> float:
        """Seconds since start()."""
        return time.time() - self.start_time if self.start_time else 0.0

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.finish()
        return False


class SimpleProgressTracker:
    """
    Progress tracker without any output.

    Used with --no-progress, in non-interactive runs, and in tests.
    """

    def __init__(self, total_steps: int = 0, desc: str = "Restore"):
        self.total_steps = total_steps
        self.current_step = 0
        self.desc = desc

    def start(self):
        """Start tracking (no-op)."""
        pass

    def update_step(self, step_name: str):
        """Update step (no-op)."""
        pass

    def advance(self, steps: int = 1):
        """Count the step, show nothing."""
        self.current_step += steps

    def finish(self):
        """Finish tracking (no-op)."""
        pass

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.finish()
        return False


def create_progress_tracker(total_steps: int, desc: str = "Restore", enabled: bool = True):
    """
    Factory function to create the appropriate progress tracker.

    The bar is only shown when enabled and stdout is a terminal.

    Returns:
        ProgressTracker or SimpleProgressTracker instance
    """
    if not enabled or not sys.stdout.isatty():
        return SimpleProgressTracker(total_steps, desc)
    return ProgressTracker(total_steps, desc)
