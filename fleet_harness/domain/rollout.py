"""
Rollout domain models.

State machine: IN_PROGRESS -> COMPLETE | TIMED_OUT.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fleet_harness.errors import RolloutTimeout


class RolloutOutcome(str, Enum):
    """Rollout monitoring state."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    TIMED_OUT = "TIMED_OUT"


class WorkerRolloutStatus(BaseModel):
    """Per-worker rollout observation."""

    model_config = ConfigDict(frozen=True)

    worker_id: str
    reachable: bool = True
    running: int = Field(default=0, ge=0)
    upgraded: int = Field(default=0, ge=0)
    unknown_version: int = Field(
        default=0,
        ge=0,
        description="Running nodes whose version query failed",
    )
    versions: tuple[str, ...] = Field(
        default=(),
        description="Distinct versions reported by running nodes",
    )


class RolloutStatus(BaseModel):
    """Fleet-wide rollout observation at one poll."""

    model_config = ConfigDict(frozen=True)

    target_version: str
    workers: tuple[WorkerRolloutStatus, ...] = ()
    elapsed_s: float = 0.0
    polls: int = 0
    outcome: RolloutOutcome = RolloutOutcome.IN_PROGRESS

    @property
    def total_running(self) -> int:
        return sum(w.running for w in self.workers)

    @property
    def total_upgraded(self) -> int:
        return sum(w.upgraded for w in self.workers)

    @property
    def percent(self) -> int:
        """Upgraded share of running nodes; 0 when nothing is running."""
        if self.total_running == 0:
            return 0
        return min(100, self.total_upgraded * 100 // self.total_running)

    @property
    def saturated(self) -> bool:
        """Every running node reports the target version."""
        return self.total_running > 0 and self.total_upgraded == self.total_running

    def with_outcome(self, outcome: RolloutOutcome) -> "RolloutStatus":
        return self.model_copy(update={"outcome": outcome})

    def raise_for_outcome(self) -> None:
        """Raise RolloutTimeout if the rollout timed out."""
        if self.outcome == RolloutOutcome.TIMED_OUT:
            raise RolloutTimeout(self)
