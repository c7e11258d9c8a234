"""
Error taxonomy for binary discovery and resolution.

Enumerator and per-candidate failures are absorbed during discovery;
manual path and persistence failures are propagated to the caller.
"""

from __future__ import annotations


class ResolverError(Exception):
    """
    Base exception for resolution errors.

    Attributes:
        message: Human-readable error message
        remediation: Suggested fix for the error
    """
    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


class SourceUnavailable(ResolverError):
    """An enumerator's source is not present on this machine. Not a failure."""


class NotExecutable(ResolverError):
    """Path does not exist or is not a runnable regular file."""

    def __init__(self, path: str, reason: str = "not an executable file"):
        self.path = path
        self.reason = reason
        super().__init__(
            f"{path}: {reason}",
            remediation="Check the path and make sure the file has execute permission",
        )


class InvocationFailed(ResolverError):
    """
    Binary exists but misbehaved when queried for its version.

    Attributes:
        path: Binary that was invoked
        exit_code: Process exit code (None for spawn errors and timeouts)
        stderr: Captured standard error
        cause: Underlying exception, if any
    """
    def __init__(
        self,
        path: str,
        reason: str,
        exit_code: int | None = None,
        stderr: str = "",
        cause: BaseException | None = None,
    ):
        self.path = path
        self.reason = reason
        self.exit_code = exit_code
        self.stderr = stderr
        self.cause = cause
        detail = f"{path} ran but behaved unexpectedly: {reason}"
        if stderr.strip():
            detail += f" ({stderr.strip().splitlines()[-1]})"
        super().__init__(detail, remediation="Run the binary by hand to see what it reports")


class NoInstallationsFound(ResolverError):
    """Discovery produced no candidates. Reported as a notice, manual entry still works."""

    def __init__(self, binary_name: str):
        self.binary_name = binary_name
        super().__init__(
            f"No installations of '{binary_name}' found",
            remediation="Install it or enter the path to the binary manually",
        )


class PersistenceFailed(ResolverError):
    """The selection could not be written to durable configuration."""

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        self.cause = cause
        super().__init__(
            f"Failed to save selection to {path}: {cause}",
            remediation="The selection stays active for this session only",
        )


class DiscoveryCancelled(ResolverError):
    """A discovery pass was abandoned by its caller."""

    def __init__(self, message: str = "Discovery cancelled"):
        super().__init__(message)
