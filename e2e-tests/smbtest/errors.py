"""Error taxonomy for scenario runs.

Setup and timeout errors abort the current scenario. Verification errors
are recorded per check and never stop sibling checks. Teardown errors are
always reported, even when the scenario already failed.
"""

from enum import Enum


class HarnessError(Exception):
    """Base class for all harness errors."""


class SetupError(HarnessError):
    """A fixture could not be applied.

    created lists the objects of the file that were created before the
    failure and still need removing.
    """

    def __init__(self, source: str, reason: str, created: list | None = None):
        self.source = source
        self.reason = reason
        self.created = created or []
        super().__init__(f"failed to apply fixture {source}: {reason}")


class PollTimeoutError(HarnessError, TimeoutError):
    """A poll deadline elapsed before the condition held.

    Attributes:
        description: What was being waited for
        timeout: How long we waited, in seconds
        last_state: Last observed state reported by the condition (if any)
        last_error: Last exception raised by the condition (if any)
    """

    def __init__(
        self,
        description: str,
        timeout: float,
        last_state: str | None = None,
        last_error: Exception | None = None,
    ):
        self.description = description
        self.timeout = timeout
        self.last_state = last_state
        self.last_error = last_error
        message = f"timed out waiting for {description} after {timeout:.1f}s"
        if last_state:
            message += f" (last state: {last_state})"
        if last_error:
            message += f" (last error: {last_error})"
        super().__init__(message)


class VerificationError(HarnessError):
    """A single verification check failed."""

    def __init__(self, check: str, message: str):
        self.check = check
        self.message = message
        super().__init__(f"{check}: {message}")


class AccessFailureKind(str, Enum):
    """Why a share access attempt failed."""

    CONNECTION = "connection"
    AUTH = "auth"
    OPERATION = "operation"


class ShareAccessError(VerificationError):
    """The share could not be reached or used with a credential."""

    def __init__(self, check: str, kind: AccessFailureKind, message: str):
        self.kind = kind
        super().__init__(check, f"[{kind.value}] {message}")


class TeardownError(HarnessError):
    """One or more fixtures could not be removed."""

    def __init__(self, failures: list[str]):
        self.failures = failures
        super().__init__("teardown failed: " + "; ".join(failures))
