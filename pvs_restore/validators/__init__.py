"""
PowerVS Restore - Validators Module

Pre-flight checks run before any resource is created.

Usage:
    from pvs_restore.validators import ValidationRunner, default_validators

    runner = ValidationRunner(default_validators(client, config))
    results = runner.run_all(logger)
    if not results.all_passed():
        results.log_failures(logger)
"""

from pvs_restore.validators.base import (
    BaseValidator,
    ValidationResult,
    ValidationResults,
    ValidationRunner
)
from pvs_restore.validators.credentials import CredentialsValidator
from pvs_restore.validators.instance_state import PrimaryInstanceValidator, SecondaryNameValidator


def default_validators(client, config):
    """Validators run before every job, in order."""
    return [
        CredentialsValidator(client, config),
        PrimaryInstanceValidator(client, config),
        SecondaryNameValidator(client, config),
    ]


__all__ = [
    # Base classes
    'BaseValidator',
    'ValidationResult',
    'ValidationResults',
    'ValidationRunner',

    # Validators
    'CredentialsValidator',
    'PrimaryInstanceValidator',
    'SecondaryNameValidator',
    'default_validators',
]
