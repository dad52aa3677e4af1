"""
PowerVS Restore - Pre-flight Checks

Validators run before the first resource is created. A validator only
reads from the control plane and reports; it never raises for an
expected failure.

New checks subclass BaseValidator and are listed in default_validators().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from pvs_restore.core.config import JobConfig


@dataclass
class ValidationResult:
    """Outcome of one check. ``details`` may carry a 'fix' hint."""
    validator_name: str
    passed: bool
    message: str
    details: Optional[dict] = None

    @property
    def fix(self) -> Optional[str]:
        return (self.details or {}).get('fix')

    def __str__(self):
        mark = "[OK]" if self.passed else "[X]"
        return f"{mark} {self.validator_name}: {self.message}"


@dataclass
class ValidationResults:
    results: List[ValidationResult] = field(default_factory=list)

    @property
    def failures(self) -> List[ValidationResult]:
        return [r for r in self.results if not r.passed]

    def all_passed(self) -> bool:
        return not self.failures

    def log_failures(self, logger):
        """Report every failed check, with its fix hint, at ERROR level."""
        if not self.failures:
            return
        logger.error(f"Pre-flight validation failed ({len(self.failures)} of {len(self.results)} checks):")
        for result in self.failures:
            logger.error(f"  [X] {result.validator_name}: {result.message}")
            if result.fix:
                logger.error(f"      Fix: {result.fix}")


class BaseValidator(ABC):
    """
    One read-only pre-flight check against the workspace.

    Example:
        class WorkspaceValidator(BaseValidator):
            @property
            def name(self):
                return "Workspace"

            def validate(self):
                self.client.get_workspace()
                return self._passed("Workspace reachable")
    """

    def __init__(self, client, config: JobConfig):
        self.client = client
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """Label shown in the pre-flight output."""

    @abstractmethod
    def validate(self) -> ValidationResult:
        """Run the check and return its result."""

    def _passed(self, message: str, **details) -> ValidationResult:
        return ValidationResult(self.name, True, message, details or None)

    def _failed(self, message: str, **details) -> ValidationResult:
        return ValidationResult(self.name, False, message, details or None)


class ValidationRunner:
    """
    Runs every registered check, in order, without stopping at the first
    failure so the operator sees all problems at once.

    Example:
        runner = ValidationRunner(default_validators(client, config))
        results = runner.run_all(logger)
        if not results.all_passed():
            results.log_failures(logger)
    """

    def __init__(self, validators: List[BaseValidator] = None):
        self.validators: List[BaseValidator] = list(validators or [])

    def add(self, validator: BaseValidator):
        self.validators.append(validator)

    def run_all(self, logger=None) -> ValidationResults:
        results = ValidationResults()
        for validator in self.validators:
            result = validator.validate()
            results.results.append(result)
            if logger:
                logger.debug(f"{validator.name}: {result.message}")
                logger.info(f"  {'[OK]' if result.passed else '[FAIL]'} {result.validator_name}")
        return results
