"""
PowerVS Restore - Instance State Validators

Validates the source instance and the name chosen for the new one.
"""

from pvs_restore.core.exceptions import APIError, ResourceNotFoundError
from pvs_restore.validators.base import BaseValidator, ValidationResult


class PrimaryInstanceValidator(BaseValidator):
    """
    Validates that the primary (snapshot source) instance exists and is
    not in ERROR.

    Example:
        result = PrimaryInstanceValidator(client, config).validate()
        if not result.passed:
            print(result.details['fix'])
    """

    INVALID_STATES = ['ERROR']

    @property
    def name(self) -> str:
        """Display name for this validator."""
        return "Primary Instance"

    def validate(self) -> ValidationResult:
        primary = self.config.primary_instance

        try:
            instance = self.client.get_instance(primary)
        except ResourceNotFoundError:
            return self._failed(
                f"Primary instance not found: {primary}",
                fix="Check PVS_PRIMARY_INSTANCE (name or id in this workspace)"
            )
        except APIError as e:
            return self._failed(f"Cannot read primary instance {primary}", error=str(e))

        current_state = str(instance.get('status') or '').upper()
        if current_state in self.INVALID_STATES:
            return self._failed(
                f"Primary instance is in invalid state: {current_state}",
                current_state=current_state,
                fix="Repair the primary instance before snapshotting it"
            )

        return self._passed(f"{primary} is {current_state}", current_state=current_state)


class SecondaryNameValidator(BaseValidator):
    """
    Validates that no instance already carries the secondary name.

    Running anyway would leave two instances with the same name, and a
    rollback that resolves the instance by name could pick the wrong one.
    """

    @property
    def name(self) -> str:
        """Display name for this validator."""
        return "Secondary Instance Name"

    def validate(self) -> ValidationResult:
        secondary = self.config.secondary_name

        try:
            existing = self.client.find_instance_by_name(secondary)
        except APIError as e:
            return self._failed("Cannot list instances in the workspace", error=str(e))

        if existing:
            return self._failed(
                f"An instance named {secondary} already exists ({existing})",
                existing_id=existing,
                fix="Delete the old secondary instance or choose another PVS_SECONDARY_NAME"
            )

        return self._passed(f"Name {secondary} is free")
