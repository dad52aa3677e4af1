"""
PowerVS Restore - Snapshot Stages

Snapshots the primary (source) instance and waits for the snapshot to
become available. The snapshot is never deleted by rollback.
"""

from pvs_restore.core.client import first_present
from pvs_restore.core.exceptions import APIError, DataShapeError, SubmissionError
from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage


class CreateSnapshotStage(BaseStage):
    """
    Creates a snapshot of the primary instance, named after the run.
    """

    stage = Stage.CREATE_SNAPSHOT

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Create Snapshot"

    def execute(self, state: RunState) -> StageResult:
        primary = self.config.primary_instance
        self._log_info(f"  Creating snapshot of primary instance: {primary}")
        self._log_info(f"    Snapshot name: {state.run_name}")

        try:
            reply = self.client.create_snapshot(primary, state.run_name)
        except APIError as e:
            raise SubmissionError(self.name, str(e))

        snapshot_id = first_present(reply, 'snapshotID', 'snapshotId')
        if not snapshot_id:
            raise DataShapeError("Snapshot creation reply has no snapshotID", payload=reply)

        state.set_snapshot_id(snapshot_id)
        self._log_info(f"  [OK] Snapshot created: {snapshot_id}")

        return self._result(f"Snapshot {snapshot_id} requested", snapshotId=snapshot_id)


class WaitSnapshotAvailableStage(BaseStage):
    """
    Waits for the snapshot to become available ('error' is terminal).
    """

    stage = Stage.WAIT_SNAPSHOT_AVAILABLE

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Wait Snapshot Available"

    def execute(self, state: RunState) -> StageResult:
        snapshot_id = state.snapshot_id

        self._poll(
            lambda: str(self.client.get_snapshot(snapshot_id).get('status') or '').lower(),
            is_success=lambda s: s == 'available',
            is_failure=lambda s: s == 'error',
            description=f"Snapshot {snapshot_id}",
            interval=self.config.snapshot_poll_interval,
            max_elapsed=self.config.max_snapshot_wait,
        )

        return self._result(f"Snapshot {snapshot_id} is available")
