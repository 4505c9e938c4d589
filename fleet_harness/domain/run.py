"""
Run-level domain models: cycle results, restore results and the final summary.
"""

from pydantic import BaseModel, ConfigDict, Field

from fleet_harness.domain.churn import ChurnCycleResult
from fleet_harness.domain.fleet import FleetHealth
from fleet_harness.domain.verification import VerificationSample


class TestCycleResult(BaseModel):
    """Outcome of one churn -> settle -> verify cycle."""

    __test__ = False  # not a pytest test class

    model_config = ConfigDict(frozen=True)

    cycle: int = Field(..., ge=1)
    churn: ChurnCycleResult
    health: FleetHealth
    verification: VerificationSample | None = None

    @property
    def passed(self) -> bool | None:
        """Verification verdict; None in health-only mode."""
        if self.verification is None:
            return None
        return self.verification.passed


class RestoreResult(BaseModel):
    """Outcome of restoring every node on one worker."""

    model_config = ConfigDict(frozen=True)

    worker_id: str
    succeeded: bool
    duration_s: float = 0.0
    error: str | None = None


class RunSummary(BaseModel):
    """Aggregate result of a churn run."""

    model_config = ConfigDict(frozen=True)

    total_cycles: int = 0
    pass_count: int = 0
    fail_count: int = 0
    baseline_verification: VerificationSample | None = None
    final_verification: VerificationSample | None = None
    restore_results: tuple[RestoreResult, ...] = ()
    cancelled: bool = False

    @property
    def restore_failures(self) -> list[str]:
        return [r.worker_id for r in self.restore_results if not r.succeeded]

    @property
    def succeeded(self) -> bool:
        """No verification cycle failed during the run."""
        return self.fail_count == 0
