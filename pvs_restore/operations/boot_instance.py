"""
PowerVS Restore - Boot Instance Stage

Starts the secondary instance from its cloned boot volume and waits for
ACTIVE. Reaching ACTIVE is what makes a run successful.
"""

from pvs_restore.core.exceptions import APIError, SubmissionError
from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.operations.wait_instance import instance_status
from pvs_restore.orchestration.state import RunState, Stage


class BootInstanceStage(BaseStage):
    """
    Boots the secondary instance (boot mode A, normal operating mode).
    """

    stage = Stage.BOOT_INSTANCE

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Boot Instance"

    def execute(self, state: RunState) -> StageResult:
        instance_id = state.secondary_instance_id

        current = instance_status(
            self._read(lambda: self.client.get_instance(instance_id), f"Instance {instance_id}")
        )
        self._log_info(f"  Current status: {current}")

        if current != 'ACTIVE':
            self._log_info("  Configuring boot mode (NORMAL)...")
            try:
                self.client.configure_boot_mode(instance_id, 'a', 'normal')
                self._log_info("  [OK] Boot mode configured")
                self._log_info("  Starting instance...")
                self.client.start_instance(instance_id)
            except APIError as e:
                raise SubmissionError(self.name, str(e))
            self._log_info("  [OK] Start command accepted")
        else:
            self._log_info("  Instance already ACTIVE - skipping boot sequence")

        self._log_info(f"  Waiting for ACTIVE (max wait: {self.config.max_boot_wait // 60} minutes)")
        self._poll(
            lambda: instance_status(self.client.get_instance(instance_id)),
            is_success=lambda s: s == 'ACTIVE',
            is_failure=lambda s: s == 'ERROR',
            description=f"Instance {instance_id}",
            max_elapsed=self.config.max_boot_wait,
        )

        state.mark_success()
        return self._result(f"{self.config.secondary_name} is ACTIVE", instanceId=instance_id)
