"""Shared error types for the provisioner.

Every error carries the stage it was raised in (filled in by the lifecycle
controller) and, once the cleanup guard has run, whether the partially
built sandbox was destroyed.
"""

from __future__ import annotations


class ProvisionerError(Exception):
    """Base error for all provisioning failures."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.stage: str | None = None
        self.cleanup_succeeded: bool | None = None


class ValidationError(ProvisionerError):
    """The provisioning request is malformed. Nothing was touched."""


class ConfigError(ProvisionerError):
    """Settings could not be read, parsed, or validated."""


class AllocationError(ProvisionerError):
    """The sandbox could not be allocated on the host. Nothing to clean up."""


class StageError(ProvisionerError):
    """A stage after allocation failed."""

    def __init__(self, detail: str = "", *, stage: str | None = None) -> None:
        self.detail = detail
        super().__init__(detail)
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"Stage {self.stage} failed: {self.detail}"
        return self.detail


class ReadinessTimeoutError(StageError):
    """A readiness condition never held within its polling bounds."""

    def __init__(self, target: str, attempts: int, elapsed: float, *, last_status: str | None = None) -> None:
        self.target = target
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_status = last_status
        detail = f"{target} not ready after {attempts} attempts ({elapsed:.1f}s)"
        if last_status:
            detail = f"{detail}, last poll: {last_status}"
        super().__init__(detail)


class RegistrationError(ProvisionerError):
    """Base error for the registration token exchange."""


class AuthError(RegistrationError):
    """The control plane refused the credential or returned no token."""

    def __init__(self, detail: str, response_body: str = "") -> None:
        self.detail = detail
        self.response_body = response_body
        super().__init__(detail)


class NotFoundError(RegistrationError):
    """The repository or organization does not exist or is not visible."""


class TransportError(RegistrationError):
    """The control plane could not be reached or answered with an unexpected status."""


class TokenExpiredError(RegistrationError):
    """A registration token was used more than once."""


class HostError(Exception):
    """A host resource API call failed."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Host error" + (f": {detail}" if detail else ""))


class CommandError(HostError):
    """A command executed inside the sandbox exited non-zero."""

    def __init__(self, command: list[str], exit_code: int, stderr: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        msg = f"{' '.join(command)} exited with {exit_code}"
        if stderr:
            msg += f": {stderr}"
        super().__init__(msg)
