"""
PowerVS Restore - Poller

Generic "wait until a terminal status or a bound" primitive used by every
stage that depends on an asynchronous backend operation.

Polling uses a fixed interval (no backoff). Outcomes:
- success predicate holds: return the status
- failure predicate holds: raise TerminalFailure (never retried)
- bound reached: raise TimeoutExceeded
A status call that itself fails (APIError) counts as "unknown this round":
it uses up one check and one interval, nothing more.
"""

import time

from pvs_restore.core.exceptions import APIError, TerminalFailure, TimeoutExceeded
from pvs_restore.utils.logger import log_state_change


def attempts_for(interval: int, max_attempts: int = None, max_elapsed: int = None) -> int:
    """
    Number of status checks allowed by an attempt and/or elapsed bound.

    An elapsed bound of 420s at a 30s interval allows 14 checks.
    """
    if max_attempts is None and max_elapsed is None:
        raise ValueError("poll_until needs max_attempts or max_elapsed")

    bounds = []
    if max_attempts is not None:
        bounds.append(max_attempts)
    if max_elapsed is not None:
        bounds.append(max_elapsed // interval)
    return max(1, min(bounds))


def poll_until(fetch_status, is_success, is_failure, interval: int,
               max_attempts: int = None, max_elapsed: int = None,
               description: str = 'resource', initial_delay: int = 0,
               sleep=time.sleep, logger=None, show_status: bool = True):
    """
    Poll ``fetch_status`` until a terminal status or the bound.

    Args:
        fetch_status: Callable returning the current status
        is_success: Predicate on a status; True ends the poll successfully
        is_failure: Predicate on a status; True raises TerminalFailure
        interval: Seconds to sleep between checks
        max_attempts: Maximum number of checks
        max_elapsed: Maximum seconds of waiting (converted to checks)
        description: Resource name used in log lines and errors
        initial_delay: Seconds to sleep before the first check
        sleep: Sleep function (replaceable in tests)
        logger: Optional logger
        show_status: Log each status; off for whole-resource reads

    Returns:
        The status that satisfied ``is_success``

    Raises:
        TerminalFailure: If ``is_failure`` holds for a status
        TimeoutExceeded: If the bound is reached first
    """
    total = attempts_for(interval, max_attempts, max_elapsed)

    if initial_delay:
        if logger:
            logger.info(f"  Waiting {initial_delay}s before checking {description}...")
        sleep(initial_delay)

    last_status = None

    for attempt in range(1, total + 1):
        try:
            status = fetch_status()
        except APIError as e:
            if logger:
                logger.warning(f"  Status check {attempt}/{total} for {description} failed: {e}")
        else:
            if logger and show_status:
                logger.info(f"  Status check ({attempt}/{total}) {description}: {status}")
                log_state_change(logger, description, last_status, status)
            last_status = status

            if is_success(status):
                return status
            if is_failure(status):
                raise TerminalFailure(description, str(status))

        if attempt < total:
            sleep(interval)

    raise TimeoutExceeded(description, total, last_status)
