"""
PowerVS Restore - Wait Instance Stopped Stage

An instance created without storage settles in SHUTOFF/STOPPED; wait for
that after an initial grace delay.
"""

from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage

STOPPED_STATES = ('SHUTOFF', 'STOPPED')
ERROR_STATES = ('ERROR',)


def instance_status(instance) -> str:
    """Upper-cased status of an instance reply ('' if absent)."""
    return str(instance.get('status') or '').upper()


class WaitInstanceStoppedStage(BaseStage):
    """
    Waits for the new instance to finish provisioning.
    """

    stage = Stage.WAIT_INSTANCE_STOPPED

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Wait Instance Stopped"

    def execute(self, state: RunState) -> StageResult:
        instance_id = state.secondary_instance_id

        status = self._poll(
            lambda: instance_status(self.client.get_instance(instance_id)),
            is_success=lambda s: s in STOPPED_STATES,
            is_failure=lambda s: s in ERROR_STATES,
            description=f"Instance {instance_id}",
            max_attempts=self.config.status_poll_limit,
            initial_delay=self.config.initial_wait,
        )

        return self._result(f"Instance reached final state: {status}", status=status)
