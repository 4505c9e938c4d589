"""
Domain models for the fleet harness.

These models represent the core concepts used throughout the system:
- Worker / NodeHandle: fleet layout and observed node state
- ChurnEvent: one stop/start action and its outcome
- VerificationSample: one data availability pass
- RolloutStatus: fleet-wide version observation
- TestCycleResult / RunSummary: results of a churn run
"""

from fleet_harness.domain.churn import (
    ChurnAction,
    ChurnCycleResult,
    ChurnEvent,
    ChurnOutcome,
)
from fleet_harness.domain.fleet import (
    FleetHealth,
    NodeHandle,
    NodeState,
    Worker,
    WorkerNodeQuery,
)
from fleet_harness.domain.rollout import (
    RolloutOutcome,
    RolloutStatus,
    WorkerRolloutStatus,
)
from fleet_harness.domain.run import RestoreResult, RunSummary, TestCycleResult
from fleet_harness.domain.verification import VerificationSample

__all__ = [
    "ChurnAction",
    "ChurnCycleResult",
    "ChurnEvent",
    "ChurnOutcome",
    "FleetHealth",
    "NodeHandle",
    "NodeState",
    "RestoreResult",
    "RolloutOutcome",
    "RolloutStatus",
    "RunSummary",
    "TestCycleResult",
    "VerificationSample",
    "Worker",
    "WorkerNodeQuery",
    "WorkerRolloutStatus",
]
