"""
PowerVS Restore - Rollback Coordinator

Compensates a failed run. Works only from the run state, so it only
touches what this run may have created:

1. Report (never delete) the snapshot
2. Resolve the secondary instance by name if its id was never recorded
3. Bulk-detach everything attached to the secondary instance, wait for it
4. Bulk-delete the cloned volumes
5. Re-query each deleted volume; survivors go to manual review
6. Optionally delete the secondary instance

Every step is best effort: a failing step is logged as a warning and the
next step still runs. The coordinator never raises.
"""

import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from pvs_restore.core.config import JobConfig
from pvs_restore.core.exceptions import ResourceNotFoundError, TimeoutExceeded
from pvs_restore.operations.poller import poll_until
from pvs_restore.orchestration.state import RunState
from pvs_restore.utils.logger import print_header


@dataclass
class CleanupReport:
    """
    What rollback did, for the failure summary.

    Attributes:
        preserved: Ids deliberately kept (the snapshot)
        instance_id: Secondary instance id used for detach, if any
        detached: Volume ids that were attached when rollback started
        deleted: Volume ids confirmed gone
        manual_review: Ids that may still exist and need a human
        warnings: One line per step that did not complete
        instance_deleted: True if the secondary instance was deleted
    """
    preserved: List[str] = field(default_factory=list)
    instance_id: Optional[str] = None
    detached: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    manual_review: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    instance_deleted: bool = False

    @property
    def clean(self) -> bool:
        """True if nothing needs manual review."""
        return not self.manual_review and not self.warnings

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['clean'] = self.clean
        return data


class RollbackCoordinator:
    """
    Issues compensating detach/delete calls for a failed run.

    Example:
        coordinator = RollbackCoordinator(client, config, logger)
        report = coordinator.rollback(state)
        for volume_id in report.manual_review:
            print(f"Check volume {volume_id}")
    """

    def __init__(self, client, config: JobConfig, logger=None, sleep=time.sleep):
        """
        Initialize rollback coordinator.

        Args:
            client: PowerVS control-plane client
            config: Job configuration
            logger: Optional logger for output
            sleep: Sleep function (replaceable in tests)
        """
        self.client = client
        self.config = config
        self.logger = logger
        self.sleep = sleep

    def _log_info(self, message: str):
        """Log info message."""
        if self.logger:
            self.logger.info(message)

    def _log_warning(self, message: str):
        """Log warning message."""
        if self.logger:
            self.logger.warning(message)

    def _log_debug(self, message: str):
        """Log debug message."""
        if self.logger:
            self.logger.debug(message)

    def _warn(self, report: CleanupReport, message: str):
        report.warnings.append(message)
        self._log_warning(f"  {message}")

    def rollback(self, state: RunState) -> CleanupReport:
        """
        Compensate everything the run may have created.

        Args:
            state: Run state at the time of failure (read only)

        Returns:
            CleanupReport describing what was done
        """
        report = CleanupReport()

        if self.logger:
            self._log_info("")
            print_header(self.logger, "FAILURE DETECTED - INITIATING CLEANUP")
        self._log_debug(f"Rolling back from stage {state.current_stage.value}")

        self._preserve_snapshot(state, report)

        instance_id = self._resolve_instance(state, report)
        if instance_id:
            self._detach_all(instance_id, report)

        deleted = self._delete_clones(state, report)
        if deleted:
            self._verify_deleted(deleted, report)

        if instance_id and self.config.delete_instance_on_rollback:
            self._delete_instance(instance_id, report)

        if report.clean:
            self._log_info("[OK] Cleanup complete")
        else:
            self._log_warning("Cleanup completed with warnings - manual review may be required")
        return report

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _preserve_snapshot(self, state: RunState, report: CleanupReport):
        for protected in sorted(state.protected_ids):
            report.preserved.append(protected)
            self._log_info(f"  Snapshot preserved: {protected}")
            self._log_info("    (Snapshots are retained for recovery purposes)")

    def _resolve_instance(self, state: RunState, report: CleanupReport) -> Optional[str]:
        if state.secondary_instance_id:
            report.instance_id = state.secondary_instance_id
            return state.secondary_instance_id

        if not state.may_exist('instance'):
            self._log_debug("Instance creation never started - nothing to resolve")
            return None

        self._log_info(f"  Resolving secondary instance '{self.config.secondary_name}' by name...")
        try:
            instance_id = self.client.find_instance_by_name(self.config.secondary_name)
        except Exception as e:
            self._warn(report, f"Could not look up instance '{self.config.secondary_name}': {e}")
            return None

        if not instance_id:
            self._log_info(f"  No instance found named '{self.config.secondary_name}'")
            self._log_info("  Skipping volume detach - proceeding to cloned volume deletion")
            return None

        self._log_info(f"  [OK] Found instance: {instance_id}")
        report.instance_id = instance_id
        return instance_id

    def _detach_all(self, instance_id: str, report: CleanupReport):
        self._log_info("  Checking for attached volumes...")
        try:
            attached = self.client.list_instance_volumes(instance_id)
        except Exception as e:
            self._warn(report, f"Could not list volumes of {instance_id}: {e}")
            return

        if not attached:
            self._log_info("  No volumes attached - skipping detach")
            return

        self._log_info(f"  {len(attached)} volume(s) attached - requesting bulk detach...")
        try:
            self.client.bulk_detach(instance_id)
        except Exception as e:
            self._warn(report, f"Bulk detach of {instance_id} failed: {e}")
            return
        report.detached.extend(attached)

        try:
            poll_until(
                lambda: self.client.list_instance_volumes(instance_id),
                is_success=lambda volumes: not volumes,
                is_failure=lambda volumes: False,
                interval=self.config.poll_interval,
                max_elapsed=self.config.max_detach_wait,
                description=f"Detach from {instance_id}",
                initial_delay=self.config.poll_interval,
                sleep=self.sleep,
                logger=self.logger,
            )
            self._log_info("  [OK] All volumes detached")
        except TimeoutExceeded:
            self._warn(report, f"Volumes still attached after {self.config.max_detach_wait}s, "
                               "proceeding with deletion anyway")
        except Exception as e:
            self._warn(report, f"Waiting for detach failed: {e}")

    def _delete_clones(self, state: RunState, report: CleanupReport) -> List[str]:
        if not state.may_exist('clones'):
            return []

        targets = [i for i in state.created_clone_ids if i not in state.protected_ids]
        if not targets:
            self._log_info("  No cloned volumes recorded - skipping deletion")
            return []

        self._log_info(f"  Deleting cloned volumes: {', '.join(targets)}")
        try:
            self.client.bulk_delete(targets)
        except Exception as e:
            self._warn(report, f"Bulk delete failed: {e}")
        return targets

    def _verify_deleted(self, volume_ids: List[str], report: CleanupReport):
        self._log_info("  Verifying volume deletion...")
        self.sleep(self.config.deletion_verify_delay)

        for volume_id in volume_ids:
            try:
                self.client.get_volume(volume_id)
            except ResourceNotFoundError:
                report.deleted.append(volume_id)
                self._log_info(f"  [OK] Volume deleted: {volume_id}")
                continue
            except Exception as e:
                report.manual_review.append(volume_id)
                self._warn(report, f"Could not confirm deletion of {volume_id}: {e}")
                continue

            report.manual_review.append(volume_id)
            self._warn(report, f"Volume still exists - manual review required: {volume_id}")

    def _delete_instance(self, instance_id: str, report: CleanupReport):
        self._log_info(f"  Deleting secondary instance {instance_id}...")
        try:
            self.client.delete_instance(instance_id)
        except Exception as e:
            report.manual_review.append(instance_id)
            self._warn(report, f"Could not delete instance {instance_id}: {e}")
            return
        report.instance_deleted = True
        self._log_info(f"  [OK] Instance delete requested: {instance_id}")


class CompensationScope:
    """
    Scoped compensation for one run.

    Entering registers the rollback; leaving the block runs it exactly once
    unless the run succeeded or the scope was cancelled. This covers stage
    failures, unexpected exceptions and KeyboardInterrupt alike. The scope
    never suppresses the exception that ended the block.

    Example:
        with CompensationScope(state, coordinator) as scope:
            run_all_stages(state)
            scope.cancel()
        print(scope.report)
    """

    def __init__(self, state: RunState, coordinator: RollbackCoordinator):
        self.state = state
        self.coordinator = coordinator
        self.cancelled = False
        self.report: Optional[CleanupReport] = None

    def cancel(self):
        """Completed normally; do not compensate."""
        self.cancelled = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.report is None and not self.cancelled and not self.state.success:
            self.report = self.coordinator.rollback(self.state)
        return False
