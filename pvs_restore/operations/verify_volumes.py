"""
PowerVS Restore - Verify Volumes Stage

Waits for every cloned volume (boot first, then each data volume) to
become available before anything is attached.
"""

from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage


def volume_state(detail) -> str:
    """Lower-cased volume state ('state', or 'status' on older replies)."""
    return str(detail.get('state') or detail.get('status') or '').lower()


class VerifyVolumesAvailableStage(BaseStage):
    """
    Confirms the cloned volumes are available, one at a time.
    """

    stage = Stage.VERIFY_VOLUMES_AVAILABLE

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Verify Volumes Available"

    def execute(self, state: RunState) -> StageResult:
        for volume_id in state.clone_volume_ids:
            role = 'Boot' if volume_id == state.clone_boot_id else 'Data'
            self._poll(
                lambda: volume_state(self.client.get_volume(volume_id)),
                is_success=lambda s: s == 'available',
                is_failure=lambda s: s == 'error',
                description=f"{role} volume {volume_id}",
                max_elapsed=self.config.max_volume_wait,
            )
            self._log_info(f"  [OK] {role} volume available: {volume_id}")

        return self._result(f"{len(state.clone_volume_ids)} volume(s) available")
