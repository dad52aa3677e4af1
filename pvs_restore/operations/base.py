"""
PowerVS Restore - Base Stage

This module provides the base class for all stages.
Each stage does ONE thing, records the identifiers it learns into the
run state, and raises a typed error (see core.exceptions) on failure.

Stages do not undo themselves: compensation for the whole run is done by
the rollback coordinator from the run state.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pvs_restore.core.config import JobConfig
from pvs_restore.operations.poller import poll_until
from pvs_restore.orchestration.state import RunState, Stage


@dataclass
class StageResult:
    """
    Result from a completed stage.

    Attributes:
        stage_name: Name of the stage (for display)
        message: Human-readable message about the result
        details: Identifiers or values worth showing in the summary
    """
    stage_name: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self):
        """String representation."""
        return f"[OK] {self.stage_name}: {self.message}"


class BaseStage(ABC):
    """
    Base class for all stages.

    Every stage must:
    1. Inherit from this class
    2. Set the ``stage`` class attribute
    3. Implement the name property
    4. Implement execute(state), raising a PVSRestoreError on failure

    Example usage:
        stage = CreateSnapshotStage(client, config, logger)
        result = stage.execute(state)
        print(result)
        print(state.snapshot_id)
    """

    stage: Stage = None

    def __init__(self, client, config: JobConfig, logger=None, sleep=time.sleep):
        """
        Initialize stage.

        Args:
            client: PowerVS control-plane client
            config: Job configuration
            logger: Optional logger for output
            sleep: Sleep function used while waiting (replaceable in tests)
        """
        self.client = client
        self.config = config
        self.logger = logger
        self.sleep = sleep

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Human-readable name of this stage.

        Used for display and logging.
        """
        pass

    @abstractmethod
    def execute(self, state: RunState) -> StageResult:
        """
        Run the stage.

        This method must:
        1. Perform the stage's calls
        2. Record new identifiers into ``state``
        3. Return a StageResult, or raise on failure

        Args:
            state: The run state (written by this stage)

        Returns:
            StageResult describing what was done
        """
        pass

    def _log_debug(self, message: str):
        """Log debug message if logger available."""
        if self.logger:
            self.logger.debug(message)

    def _log_info(self, message: str):
        """Log info message if logger available."""
        if self.logger:
            self.logger.info(message)

    def _log_warning(self, message: str):
        """Log warning message if logger available."""
        if self.logger:
            self.logger.warning(message)

    def _log_error(self, message: str):
        """Log error message if logger available."""
        if self.logger:
            self.logger.error(message)

    def _poll(self, fetch_status, is_success, is_failure, description: str,
              interval: int = None, max_attempts: int = None, max_elapsed: int = None,
              initial_delay: int = 0):
        """
        Wait for an asynchronous backend operation (see operations.poller).

        Uses the configured poll interval unless one is given.
        """
        return poll_until(
            fetch_status,
            is_success,
            is_failure,
            interval=interval or self.config.poll_interval,
            max_attempts=max_attempts,
            max_elapsed=max_elapsed,
            description=description,
            initial_delay=initial_delay,
            sleep=self.sleep,
            logger=self.logger,
        )

    def _read(self, fetch, description: str, attempts: int = 3):
        """
        One read-only call, treated like a status check: an API error costs
        one attempt, and running out of attempts is a TimeoutExceeded.
        """
        return poll_until(
            fetch,
            is_success=lambda reply: True,
            is_failure=lambda reply: False,
            interval=self.config.poll_interval,
            max_attempts=attempts,
            description=description,
            sleep=self.sleep,
            logger=self.logger,
            show_status=False,
        )

    def _result(self, message: str, **details) -> StageResult:
        """Build this stage's result."""
        return StageResult(stage_name=self.name, message=message, details=details or None)
