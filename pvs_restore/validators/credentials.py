"""
PowerVS Restore - Credentials Validator

Validates that the API key can be exchanged for a token and that the
configured workspace answers with it.
"""

from pvs_restore.core.exceptions import APIError, AuthenticationError, DataShapeError
from pvs_restore.validators.base import BaseValidator, ValidationResult


class CredentialsValidator(BaseValidator):
    """
    Validates credentials and workspace access.

    This checks:
    1. The API key yields an IAM token
    2. The workspace (CRN / cloud instance id) is reachable with it

    Common failure reasons:
    - IBMCLOUD_API_KEY missing, revoked or for another account
    - PVS_CRN points at a workspace in another region
    """

    @property
    def name(self) -> str:
        """Display name for this validator."""
        return "Credentials & Workspace"

    def validate(self) -> ValidationResult:
        """
        Check if the credentials work against the workspace.

        Returns:
            ValidationResult with pass/fail
        """
        try:
            self.client.authenticator.get_token()
        except AuthenticationError as e:
            return self._failed(
                "Cannot obtain an IAM token",
                error=str(e),
                fix="Check IBMCLOUD_API_KEY (ibmcloud iam api-key-create)"
            )

        try:
            workspace = self.client.get_workspace()
        except (APIError, DataShapeError) as e:
            return self._failed(
                f"Workspace {self.config.cloud_instance_id} is not reachable",
                error=str(e),
                fix=f"Check PVS_CRN and PVS_REGION (currently {self.config.region})"
            )

        workspace_name = workspace.get('name') or self.config.cloud_instance_id
        return self._passed(f"Authenticated to workspace: {workspace_name}",
                            workspace=workspace_name)
