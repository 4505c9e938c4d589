"""
Rollout monitor.

Polls the fleet until every running node reports the target version or
the wait budget is exhausted.

State machine: IN_PROGRESS -> COMPLETE | TIMED_OUT
"""

import math

from pydantic import BaseModel, ConfigDict, Field

from fleet_harness.domain import (
    RolloutOutcome,
    RolloutStatus,
    Worker,
    WorkerRolloutStatus,
)
from fleet_harness.errors import ConfigError, ExecError
from fleet_harness.interfaces import NodeProbe
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.logging import get_logger
from fleet_harness.runtime.run_log import RunLedger
from fleet_harness.runtime.ticker import Ticker

logger = get_logger(__name__)


class RolloutPlan(BaseModel):
    """Wait budget for a rollout."""

    model_config = ConfigDict(frozen=True)

    max_wait_s: float = Field(default=3600.0, gt=0, description="Give up after this long")
    poll_interval_s: float = Field(default=60.0, gt=0, description="Time between polls")

    @property
    def max_polls(self) -> int:
        return math.ceil(self.max_wait_s / self.poll_interval_s)


class RolloutMonitor:
    """Observes version saturation across the fleet."""

    def __init__(
        self,
        lifecycle: NodeLifecycleController,
        probe: NodeProbe,
        ticker: Ticker,
        ledger: RunLedger | None = None,
    ):
        self._lifecycle = lifecycle
        self._probe = probe
        self._ticker = ticker
        self._ledger = ledger

    async def _worker_status(self, worker: Worker, target_version: str) -> WorkerRolloutStatus:
        query = await self._lifecycle.running_nodes(worker)
        if not query.reachable:
            return WorkerRolloutStatus(worker_id=worker.id, reachable=False)

        local_indices = sorted(g - worker.start for g in query.running)
        if not local_indices:
            return WorkerRolloutStatus(worker_id=worker.id)

        try:
            versions = await self._probe.versions(worker, local_indices)
        except ExecError as e:
            logger.warning("Version query on %s failed: %s", worker, e)
            versions = {}

        reported = [versions.get(i) for i in local_indices]
        return WorkerRolloutStatus(
            worker_id=worker.id,
            running=len(local_indices),
            upgraded=sum(1 for v in reported if v == target_version),
            unknown_version=sum(1 for v in reported if v is None),
            versions=tuple(sorted({v for v in reported if v is not None})),
        )

    async def _poll(self, target_version: str, elapsed_s: float, polls: int) -> RolloutStatus:
        workers = []
        for worker in self._lifecycle.topology.workers:
            workers.append(await self._worker_status(worker, target_version))
        return RolloutStatus(
            target_version=target_version,
            workers=tuple(workers),
            elapsed_s=elapsed_s,
            polls=polls,
        )

    async def snapshot(self, target_version: str) -> RolloutStatus:
        """Single poll, outside any monitoring loop."""
        status = await self._poll(target_version, 0.0, 1)
        if status.saturated:
            status = status.with_outcome(RolloutOutcome.COMPLETE)
        return status

    async def monitor(
        self,
        target_version: str,
        max_wait_s: float,
        poll_interval_s: float,
    ) -> RolloutStatus:
        """
        Poll until the target version saturates the fleet.

        Returns a COMPLETE status on saturation, otherwise TIMED_OUT with the
        last observation (also when the ticker is cancelled). Never raises for
        unreachable workers.

        Raises:
            ConfigError: if max_wait_s or poll_interval_s is not positive
        """
        if max_wait_s <= 0 or poll_interval_s <= 0:
            raise ConfigError(
                f"max_wait_s and poll_interval_s must be positive, "
                f"got {max_wait_s} and {poll_interval_s}"
            )

        logger.info("--- Monitoring Upgrade to %s ---", target_version)
        logger.info(
            "Checking every %gs (max wait: %gs)",
            poll_interval_s,
            max_wait_s,
        )

        status = RolloutStatus(target_version=target_version)
        polls = 0
        elapsed = 0.0

        while elapsed < max_wait_s and not self._ticker.cancelled:
            polls += 1
            status = await self._poll(target_version, elapsed, polls)
            logger.info(
                "[%gs] %d / %d nodes on %s (%d%%)",
                elapsed,
                status.total_upgraded,
                status.total_running,
                target_version,
                status.percent,
            )

            if status.saturated:
                status = status.with_outcome(RolloutOutcome.COMPLETE)
                self._record(status)
                logger.info(
                    "SUCCESS: All %d nodes upgraded to %s",
                    status.total_running,
                    target_version,
                )
                return status

            self._record(status)
            if not await self._ticker.sleep(poll_interval_s):
                break
            elapsed = polls * poll_interval_s

        status = status.with_outcome(RolloutOutcome.TIMED_OUT)
        self._record(status)
        logger.warning(
            "WARNING: Timeout waiting for upgrade. %d / %d upgraded.",
            status.total_upgraded,
            status.total_running,
        )
        return status

    def _record(self, status: RolloutStatus) -> None:
        if self._ledger is not None:
            self._ledger.record_rollout_status(status)
