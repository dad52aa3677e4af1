"""
PowerVS Restore - Stage Sequencer

Coordinates one restore run:
1. Validates (credentials, primary instance, secondary name)
2. Executes the stages in order, one at a time
3. Tracks what each stage created in the run state
4. Rolls back exactly once if the run did not reach ACTIVE
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pvs_restore.core.config import JobConfig
from pvs_restore.core.exceptions import PVSRestoreError
from pvs_restore.operations import STAGE_CLASSES, BaseStage, StageResult
from pvs_restore.orchestration.rollback import CleanupReport, CompensationScope, RollbackCoordinator
from pvs_restore.orchestration.state import RunState
from pvs_restore.utils.logger import print_header
from pvs_restore.utils.progress import create_progress_tracker
from pvs_restore.validators import ValidationRunner, default_validators


@dataclass
class JobOutcome:
    """
    Result of a whole run.

    On success the state carries every created and attached id; on failure
    failed_stage, error_kind and cleanup say where it stopped and what
    rollback did.
    """
    success: bool
    run_name: str
    state: Dict[str, Any]
    results: List[StageResult] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    cleanup: Optional[CleanupReport] = None
    duration_seconds: float = 0.0
    cleanup_job_run: Optional[str] = None

    def to_summary(self) -> Dict[str, Any]:
        """Flat summary for the CLI output formats."""
        summary = {
            'runName': self.run_name,
            'success': self.success,
            'durationSeconds': round(self.duration_seconds, 1),
        }
        if self.success:
            for key in ('secondaryInstanceId', 'snapshotId', 'cloneBootVolume', 'cloneDataVolumes'):
                summary[key] = self.state.get(key)
            if self.cleanup_job_run:
                summary['cleanupJobRun'] = self.cleanup_job_run
        else:
            summary['failedStage'] = self.failed_stage
            summary['errorKind'] = self.error_kind
            summary['errorMessage'] = self.error_message
            summary['snapshotId'] = self.state.get('snapshotId')
            if self.cleanup:
                summary['preserved'] = self.cleanup.preserved
                summary['detached'] = self.cleanup.detached
                summary['deleted'] = self.cleanup.deleted
                summary['manualReview'] = self.cleanup.manual_review
                summary['cleanupWarnings'] = len(self.cleanup.warnings)
        return summary


class StageSequencer:
    """
    Orchestrates the restore workflow.

    This coordinates all the steps:
    1. Pre-flight validation
    2. Authenticate
    3. Create the secondary instance
    4. Wait for it to settle (SHUTOFF)
    5. Snapshot the primary instance
    6. Wait for the snapshot
    7. Extract boot/data volumes
    8. Clone the volumes
    9. Verify the clones are available
    10. Attach the clones
    11. Boot the secondary instance

    If anything fails, the rollback coordinator cleans up what this run
    created. The snapshot is always kept.

    Example:
        sequencer = StageSequencer(client, config, logger)

        if not sequencer.validate():
            return 1

        outcome = sequencer.execute()
        return 0 if outcome.success else 1
    """

    def __init__(self, client, config: JobConfig, logger=None, sleep=time.sleep,
                 stages: List[BaseStage] = None, validators=None):
        """
        Initialize stage sequencer.

        Args:
            client: PowerVS control-plane client
            config: Job configuration
            logger: Optional logger
            sleep: Sleep function used by every wait (replaceable in tests)
            stages: Stage instances to run (defaults to the full sequence)
            validators: Pre-flight validators (defaults to default_validators)
        """
        self.client = client
        self.config = config
        self.logger = logger
        self.sleep = sleep
        self.stages = stages if stages is not None else [
            stage_class(client, config, logger, sleep) for stage_class in STAGE_CLASSES
        ]
        self.validators = validators if validators is not None else default_validators(client, config)
        self.coordinator = RollbackCoordinator(client, config, logger, sleep)
        self.state: Optional[RunState] = None
        self.scope: Optional[CompensationScope] = None

    def _log_info(self, message: str):
        """Log info message."""
        if self.logger:
            self.logger.info(message)

    def _log_debug(self, message: str):
        """Log debug message."""
        if self.logger:
            self.logger.debug(message)

    def _log_error(self, message: str):
        """Log error message."""
        if self.logger:
            self.logger.error(message)

    def validate(self) -> bool:
        """
        Run pre-flight validation.

        Returns:
            True if all validations passed
        """
        self._log_info("Pre-flight Validation:")

        results = ValidationRunner(self.validators).run_all(self.logger)

        if not results.all_passed():
            if self.logger:
                self._log_error("")
                results.log_failures(self.logger)
            return False

        self._log_debug("All validations passed")
        return True

    def execute(self) -> JobOutcome:
        """
        Execute the stage sequence.

        Stage failures (PVSRestoreError) are returned as a failed outcome
        after rollback. Anything else, including KeyboardInterrupt,
        propagates once rollback has run.

        Returns:
            JobOutcome for the run
        """
        state = RunState.new(self.config.name_prefix)
        self.state = state
        started = time.time()
        results: List[StageResult] = []
        failure: Optional[PVSRestoreError] = None

        self._log_info("")
        self._log_info(f"Executing Restore: {state.run_name}")
        self._log_debug(f"Config: {self.config.redacted()}")

        progress = create_progress_tracker(
            total_steps=len(self.stages),
            desc=f"Restore {state.run_name}",
            enabled=self.config.show_progress
        )

        scope = CompensationScope(state, self.coordinator)
        self.scope = scope
        try:
            with scope:
                progress.start()
                try:
                    for result in self._run_stages(state, progress):
                        results.append(result)
                finally:
                    progress.finish()
                if state.success:
                    scope.cancel()
        except PVSRestoreError as e:
            failure = e

        outcome = JobOutcome(
            success=state.success,
            run_name=state.run_name,
            state=state.to_dict(),
            results=results,
            cleanup=scope.report,
            duration_seconds=time.time() - started,
        )

        record = state.failed_record()
        if record:
            outcome.failed_stage = record.stage.value
            outcome.error_kind = record.error_kind
            outcome.error_message = record.message
        elif not state.success:
            outcome.failed_stage = state.current_stage.value
            outcome.error_kind = failure.kind if failure else 'incomplete'
            outcome.error_message = str(failure) if failure else "Run ended before the instance became ACTIVE"

        return outcome

    def _run_stages(self, state: RunState, progress):
        total = len(self.stages)

        for index, stage in enumerate(self.stages, 1):
            state.advance(stage.stage)
            progress.update_step(stage.name)

            if self.logger:
                self._log_info("")
                print_header(self.logger, f"STAGE {index}/{total}: {stage.name.upper()}")

            try:
                result = stage.execute(state)
            except PVSRestoreError as e:
                state.record(stage.stage, False, str(e), e.kind)
                self._log_error(f"Stage {stage.name} failed ({e.kind}): {e}")
                raise
            except Exception as e:
                state.record(stage.stage, False, str(e), 'unexpected')
                self._log_error(f"Unexpected error in stage {stage.name}: {e}")
                raise

            state.record(stage.stage, True, result.message)
            self._log_info(f"  {result}")
            progress.advance()
            yield result
