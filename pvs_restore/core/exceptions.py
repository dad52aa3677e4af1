"""
PowerVS Restore - Custom Exception Classes

This module defines all custom exceptions used by the restore job.
Each exception carries a short ``kind`` used in the failure report, and
where possible a troubleshooting hint.

Stage failures fall into four kinds:
- SubmissionError: a mutating request could not be submitted (transient, retried a bounded number of times)
- TerminalFailure: the backend reported an explicit error/failed state
- TimeoutExceeded: a poll bound was exhausted
- DataShapeError: a response was missing the fields we depend on
"""


class PVSRestoreError(Exception):
    """
    Base exception for all restore job errors.

    Catching this catches every failure a stage can signal.
    """

    kind = "error"


class ConfigurationError(PVSRestoreError):
    """
    Raised when the job configuration is missing or invalid.
    """

    kind = "configuration"

    def __init__(self, message: str, setting: str = None):
        """
        Args:
            message: Error description
            setting: Environment/config name that is wrong (e.g. 'PVS_CRN')
        """
        self.setting = setting
        full_message = message
        if setting:
            full_message += f"\n\nCheck setting: {setting}"
        super().__init__(full_message)


class AuthenticationError(PVSRestoreError):
    """
    Raised when the API key cannot be exchanged for a bearer token.

    Common causes:
    - API key missing or revoked
    - IAM endpoint unreachable
    """

    kind = "authentication"

    def __init__(self, message: str, fix: str = None):
        """
        Args:
            message: Error description
            fix: Suggested fix
        """
        self.fix = fix
        full_message = f"{message}"
        if fix:
            full_message += f"\n\nFix: {fix}"
        super().__init__(full_message)


class APIError(PVSRestoreError):
    """
    Raised when a control-plane call returns a non-success reply.
    """

    kind = "api"

    def __init__(self, method: str, url: str, status: int = None, body: str = None):
        """
        Args:
            method: HTTP method of the failed call
            url: Request URL
            status: HTTP status code (None for transport faults)
            body: Response body, if any
        """
        self.method = method
        self.url = url
        self.status = status
        self.body = body

        message = f"{method} {url} failed"
        if status is not None:
            message += f" with HTTP {status}"
        if body:
            message += f": {body[:300]}"
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """True when repeating the same call may succeed."""
        return self.status is None or self.status == 429 or self.status >= 500


class TransportError(APIError):
    """
    Raised when the request never produced an HTTP reply (DNS, TLS, socket).
    """

    kind = "transport"

    def __init__(self, method: str, url: str, reason: str):
        self.reason = reason
        super().__init__(method, url, status=None, body=reason)


class ResourceNotFoundError(APIError):
    """
    Raised when the control plane answers 404 for a resource.
    """

    kind = "not_found"


class SubmissionError(PVSRestoreError):
    """
    Raised when a mutating request could not be submitted.

    Transient causes are retried by the caller a bounded number of times;
    this is raised once the bound is spent or the cause is not transient.
    """

    kind = "submission"

    def __init__(self, operation_name: str, reason: str, attempts: int = 1):
        """
        Args:
            operation_name: Name of the request (e.g. 'Create Instance')
            reason: Why it failed
            attempts: How many submissions were made
        """
        self.operation_name = operation_name
        self.reason = reason
        self.attempts = attempts

        message = f"Submission '{operation_name}' failed after {attempts} attempt(s): {reason}"
        super().__init__(message)


class TerminalFailure(PVSRestoreError):
    """
    Raised when the backend reports an explicit error state.

    Not retryable: the resource is in a state it will not leave on its own.
    """

    kind = "terminal_failure"

    def __init__(self, resource: str, status: str, reason: str = None):
        """
        Args:
            resource: What was being watched (e.g. 'Snapshot s-1')
            status: Status reported by the backend
            reason: Optional extra detail
        """
        self.resource = resource
        self.status = status

        message = f"{resource} entered terminal state: {status}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class TimeoutExceeded(PVSRestoreError):
    """
    Raised when a poll bound is exhausted without reaching a terminal state.
    """

    kind = "timeout"

    def __init__(self, resource: str, attempts: int, last_status: str = None):
        """
        Args:
            resource: What was being watched
            attempts: Number of status checks made
            last_status: Last status observed, if any
        """
        self.resource = resource
        self.attempts = attempts
        self.last_status = last_status

        message = f"Timed out waiting for {resource} after {attempts} check(s)"
        if last_status is not None:
            message += f" (last status: {last_status})"
        super().__init__(message)


class DataShapeError(PVSRestoreError):
    """
    Raised when a response lacks the fields the job depends on.

    This indicates a contract break with the control plane and is fatal.
    """

    kind = "data_shape"

    def __init__(self, message: str, payload=None):
        """
        Args:
            message: What was expected and not found
            payload: The offending response (kept for debugging)
        """
        self.payload = payload
        super().__init__(message)


class ValidationError(PVSRestoreError):
    """
    Raised when pre-flight validation fails.
    """

    kind = "validation"

    def __init__(self, validator_name: str, message: str, fix: str = None):
        """
        Args:
            validator_name: Name of the validator that failed
            message: What failed
            fix: Suggested fix
        """
        self.validator_name = validator_name
        self.fix = fix

        full_message = f"Validation failed: {validator_name}\n{message}"
        if fix:
            full_message += f"\n\nFix: {fix}"

        super().__init__(full_message)
