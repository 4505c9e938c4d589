"""
Churn domain models.

ChurnEvent records are immutable and appended to the run ledger.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fleet_harness.domain.fleet import NodeHandle


class ChurnAction(str, Enum):
    """Lifecycle action applied to a node."""

    STOP = "STOP"
    START = "START"


class ChurnOutcome(str, Enum):
    """Outcome of a lifecycle action."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class ChurnEvent(BaseModel):
    """One stop/start action and its outcome."""

    model_config = ConfigDict(frozen=True)

    handle: NodeHandle
    action: ChurnAction
    outcome: ChurnOutcome
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == ChurnOutcome.SUCCEEDED


class ChurnCycleResult(BaseModel):
    """Counts and events of one churn cycle."""

    model_config = ConfigDict(frozen=True)

    requested: int = Field(..., ge=1, description="Nodes to churn per phase")
    events: tuple[ChurnEvent, ...] = ()

    def _count(self, action: ChurnAction, succeeded_only: bool) -> int:
        return sum(
            1
            for e in self.events
            if e.action == action and (e.succeeded or not succeeded_only)
        )

    @property
    def victims_attempted(self) -> int:
        return self._count(ChurnAction.STOP, succeeded_only=False)

    @property
    def victims_succeeded(self) -> int:
        return self._count(ChurnAction.STOP, succeeded_only=True)

    @property
    def recoveries_attempted(self) -> int:
        return self._count(ChurnAction.START, succeeded_only=False)

    @property
    def recoveries_succeeded(self) -> int:
        return self._count(ChurnAction.START, succeeded_only=True)

    @property
    def attempted(self) -> int:
        return len(self.events)

    @property
    def succeeded(self) -> int:
        return sum(1 for e in self.events if e.succeeded)
