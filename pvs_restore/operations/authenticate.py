"""
PowerVS Restore - Authenticate Stage

Exchanges the API key for a bearer token and confirms the workspace is
reachable. Records nothing in the run state.
"""

from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage


class AuthenticateStage(BaseStage):
    """
    Authenticates and targets the PowerVS workspace.
    """

    stage = Stage.AUTHENTICATE

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Authenticate"

    def execute(self, state: RunState) -> StageResult:
        self._log_info(f"  Authenticating to IBM Cloud (region: {self.config.region})...")
        self.client.authenticator.get_token()
        self._log_info("  [OK] IAM token retrieved")

        self._log_info("  Targeting PowerVS workspace...")
        workspace = self._read(self.client.get_workspace, f"Workspace {self.config.cloud_instance_id}")
        workspace_name = workspace.get('name') or self.config.cloud_instance_id
        self._log_info(f"  [OK] Workspace targeted: {workspace_name}")

        return self._result(f"Workspace {workspace_name} ready", workspace=workspace_name)
