"""Utils package."""

from pvs_restore.utils.logger import setup_logging, get_logger
from pvs_restore.utils.progress import ProgressTracker, SimpleProgressTracker, create_progress_tracker
from pvs_restore.utils.retry import retry_submission

__all__ = [
    'setup_logging',
    'get_logger',
    'ProgressTracker',
    'SimpleProgressTracker',
    'create_progress_tracker',
    'retry_submission',
]
