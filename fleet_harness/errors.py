"""
Error taxonomy for the fleet harness.

- ConfigError: fatal, raised before any remote action
- ExecError: one remote call failed; callers downgrade it to a counted failure
- VerificationFailure: a verification pass did not retrieve every address
- RolloutTimeout: a rollout did not saturate the fleet before its deadline
- ReleaseLookupError: the latest published version could not be determined
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fleet_harness.domain.rollout import RolloutStatus
    from fleet_harness.domain.verification import VerificationSample


class HarnessError(Exception):
    """Base class for harness errors."""

    pass


class ConfigError(HarnessError):
    """Raised for invalid topology, missing corpus or invalid run parameters."""

    pass


class ExecError(HarnessError):
    """Raised when a single remote command fails (connect, timeout, non-zero exit)."""

    def __init__(
        self,
        message: str,
        address: str | None = None,
        command: str | None = None,
        exit_status: int | None = None,
        output: str = "",
    ):
        super().__init__(message)
        self.address = address
        self.command = command
        self.exit_status = exit_status
        self.output = output


class VerificationFailure(HarnessError):
    """Raised to describe a verification pass that missed at least one address."""

    def __init__(self, sample: "VerificationSample"):
        super().__init__(
            f"{sample.total_count - sample.verified_count} of {sample.total_count} "
            "addresses unretrievable"
        )
        self.sample = sample


class RolloutTimeout(HarnessError):
    """Raised when a rollout did not complete within the allowed wait."""

    def __init__(self, status: "RolloutStatus"):
        super().__init__(
            f"Timeout waiting for {status.target_version}: "
            f"{status.total_upgraded} / {status.total_running} upgraded"
        )
        self.status = status


class ReleaseLookupError(HarnessError):
    """Raised when the latest release cannot be fetched."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
