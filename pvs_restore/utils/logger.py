"""
PowerVS Restore - Logging Setup

This module sets up logging for the restore job.

Logging Strategy:
- INFO (default): Stage progress for operators
- DEBUG (--verbosity=debug): API calls and responses
- WARNING: Recoverable issues (rollback steps that could not complete)
- ERROR: Problems that stop the job
- CRITICAL: Resources that need manual review

Every console line carries a timestamp so the output doubles as an audit trail.
"""

import logging
import sys
from pathlib import Path
from typing import Any

LOGGER_NAME = 'pvs_restore'


class CleanFormatter(logging.Formatter):
    """
    Custom formatter for operator-facing logs.

    - INFO: Timestamp and message
    - WARNING/ERROR/CRITICAL: Timestamp, level tag and message
    """

    LEVEL_TAGS = {
        logging.WARNING: '[!] WARNING: ',
        logging.ERROR: '[X] ERROR: ',
        logging.CRITICAL: '[!!] CRITICAL: ',
        logging.DEBUG: '[DEBUG] ',
    }

    def format(self, record):
        """Format log record based on level."""
        stamp = self.formatTime(record, self.datefmt)
        tag = self.LEVEL_TAGS.get(record.levelno, '')
        return f"[{stamp}] {tag}{record.getMessage()}"


def setup_logging(level='INFO', log_file=None, debug=False):
    """
    Setup logging for the restore job.

    Configures logging to:
    1. Output to console (stdout)
    2. Optionally write to a log file
    3. Use a detailed format in debug mode

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file. If None, only logs to console.
        debug: If True, use DEBUG level and detailed format

    Returns:
        logging.Logger: Configured logger instance

    Example:
        logger = setup_logging('INFO')
        logger.info("Creating snapshot...")
    """

    if debug:
        level = 'DEBUG'

    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    # Remove existing handlers (in case setup_logging called multiple times)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)

    if debug:
        # [2026-01-01 10:30:45] DEBUG [_request:88]: API call: GET ...
        console_format = logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(funcName)s:%(lineno)d]: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        console_format = CleanFormatter('%(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

        logger.debug(f"Logging to file: {log_file}")

    return logger


def get_logger():
    """
    Get the restore job logger instance.

    Returns:
        logging.Logger: Logger instance
    """
    return logging.getLogger(LOGGER_NAME)


# Debug logging helpers

def log_api_call(logger, method: str, url: str, body: Any = None):
    """
    Log an API call (DEBUG level).

    Example:
        log_api_call(logger, 'GET', 'https://.../pvm-instances/i-1')
        # Output: API call: GET https://.../pvm-instances/i-1
    """
    if not logger:
        return
    if body is None:
        logger.debug(f"API call: {method} {url}")
    else:
        logger.debug(f"API call: {method} {url} body={body}")


def log_api_response(logger, response: Any, truncate: int = 300):
    """
    Log an API response (DEBUG level), truncated to keep lines readable.
    """
    if not logger:
        return
    response_str = str(response)
    if len(response_str) > truncate:
        response_str = response_str[:truncate] + '...'
    logger.debug(f"API response: {response_str}")


def log_state_change(logger, resource: str, old_state: str, new_state: str):
    """
    Log a state change (DEBUG level).

    Example:
        log_state_change(logger, 'Instance i-1', 'BUILD', 'SHUTOFF')
        # Output: State change: Instance i-1: BUILD -> SHUTOFF
    """
    if logger and old_state != new_state:
        logger.debug(f"State change: {resource}: {old_state} -> {new_state}")


def print_separator(logger, char='-', length=72):
    """Print a separator line (INFO level)."""
    logger.info(char * length)


def print_header(logger, title: str, char='=', length=72):
    """
    Print a formatted header (INFO level).

    Example:
        print_header(logger, 'STAGE 5/10: CREATE SNAPSHOT')
        # Output:
        # ========================================================================
        #  STAGE 5/10: CREATE SNAPSHOT
        # ========================================================================
    """
    logger.info(char * length)
    logger.info(f" {title}")
    logger.info(char * length)
