"""
PowerVS Restore - Attach Volumes Stage

Attaches the cloned boot and data volumes in one request, then waits
until every one of them shows up in the instance's volume list.
"""

from pvs_restore.core.exceptions import APIError, SubmissionError
from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage


class AttachVolumesStage(BaseStage):
    """
    Attaches the cloned volumes to the secondary instance.
    """

    stage = Stage.ATTACH_VOLUMES

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Attach Volumes"

    def execute(self, state: RunState) -> StageResult:
        instance_id = state.secondary_instance_id
        boot_id = state.clone_boot_id
        data_ids = state.clone_data_ids
        wanted = set(state.clone_volume_ids)

        self._log_info(f"  Attaching volumes to {self.config.secondary_name} ({instance_id})...")
        if data_ids:
            self._log_info("  Attaching boot + data volumes...")
        else:
            self._log_info("  Attaching boot volume only...")

        try:
            self.client.attach_volumes(instance_id, boot_id, data_ids)
        except APIError as e:
            raise SubmissionError(self.name, str(e))
        self._log_info("  [OK] Attachment request accepted")

        def missing_volumes():
            attached = set(self.client.list_instance_volumes(instance_id))
            return sorted(wanted - attached)

        self._poll(
            missing_volumes,
            is_success=lambda missing: not missing,
            is_failure=lambda missing: False,
            description=f"Volume attachment on {instance_id}",
            max_elapsed=self.config.max_attach_wait,
            initial_delay=self.config.snapshot_poll_interval,
        )

        self._log_info("  [OK] All volumes confirmed attached")
        return self._result(f"{len(wanted)} volume(s) attached", attached=sorted(wanted))
