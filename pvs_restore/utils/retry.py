"""
PowerVS Restore - Submission Retry

Bounded retry for a single mutating API submission. Retries are local to
one request; they never wrap a stage's polling loop.
"""

import time

from pvs_restore.core.exceptions import APIError, SubmissionError


def retry_submission(submit, operation_name: str, attempts: int = 3, delay: int = 5,
                     sleep=time.sleep, logger=None):
    """
    Call ``submit`` until it returns, retrying transient API errors.

    Args:
        submit: Zero-argument callable issuing the request
        operation_name: Name used in log lines and the error
        attempts: Maximum number of submissions
        delay: Seconds between submissions
        sleep: Sleep function (replaceable in tests)
        logger: Optional logger

    Returns:
        Whatever ``submit`` returns

    Raises:
        SubmissionError: If a non-transient error occurs or attempts run out
    """
    last_error = None

    for attempt in range(1, attempts + 1):
        if logger:
            logger.info(f"  Attempt {attempt}/{attempts}...")
        try:
            return submit()
        except APIError as e:
            if not e.transient:
                raise SubmissionError(operation_name, str(e), attempt)
            last_error = e
            if logger:
                logger.warning(f"  {operation_name} attempt {attempt} failed: {e}")
            if attempt < attempts:
                sleep(delay)

    raise SubmissionError(operation_name, str(last_error), attempts)
