"""
Upgrade test: watch the fleet's auto-upgrade pick up the latest release.

Phases:
1. Pre-upgrade status (installed version and running count per worker)
   and the auto-upgrade configuration check
2. Compare the fleet's current version with the latest release
3. Monitor the rollout (skipped when the fleet is already current)
4. Final status
"""

from pydantic import BaseModel, ConfigDict

from fleet_harness.domain import RolloutOutcome, RolloutStatus
from fleet_harness.errors import ExecError, ReleaseLookupError
from fleet_harness.fleet import FleetTopology
from fleet_harness.interfaces import NodeProbe, ReleaseSource
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.logging import get_logger
from fleet_harness.rollout.monitor import RolloutMonitor, RolloutPlan

logger = get_logger(__name__)


class UpgradeReport(BaseModel):
    """Outcome of an upgrade test."""

    model_config = ConfigDict(frozen=True)

    current_version: str | None = None
    target_version: str | None = None
    already_current: bool = False
    status: RolloutStatus

    @property
    def succeeded(self) -> bool:
        return self.status.outcome == RolloutOutcome.COMPLETE


class UpgradeTest:
    """Drives the four upgrade test phases."""

    def __init__(
        self,
        topology: FleetTopology,
        lifecycle: NodeLifecycleController,
        probe: NodeProbe,
        monitor: RolloutMonitor,
        plan: RolloutPlan,
        release_source: ReleaseSource | None = None,
        target_version: str | None = None,
    ):
        if release_source is None and target_version is None:
            raise ValueError("Either release_source or target_version is required")
        self._topology = topology
        self._lifecycle = lifecycle
        self._probe = probe
        self._monitor = monitor
        self._plan = plan
        self._release_source = release_source
        self._target_version = target_version

    async def report_versions(self) -> dict[str, str | None]:
        """Log installed version and running count per worker."""
        logger.info("--- Current Versions ---")
        installed: dict[str, str | None] = {}
        for n, worker in enumerate(self._topology.workers, start=1):
            try:
                version = await self._probe.binary_version(worker)
            except ExecError as e:
                logger.warning("Version query on %s failed: %s", worker, e)
                version = None
            try:
                running: int | str = await self._probe.running_count(worker)
            except ExecError as e:
                logger.warning("Process count on %s failed: %s", worker, e)
                running = "?"
            installed[worker.id] = version
            logger.info(
                "Worker %d (%s): %s - %s nodes running",
                n,
                worker.address,
                version or "unknown",
                running,
            )
        return installed

    async def check_upgrade_config(self) -> dict[str, int | None]:
        """Log how many node services have auto-upgrade enabled per worker."""
        logger.info("--- Checking Upgrade Configuration ---")
        counts: dict[str, int | None] = {}
        for n, worker in enumerate(self._topology.workers, start=1):
            count = await self._lifecycle.auto_upgrade_services(worker)
            counts[worker.id] = count
            if count is None:
                logger.warning("Worker %d (%s): unknown", n, worker.address)
            elif count > 0:
                logger.info(
                    "Worker %d (%s): Auto-upgrade enabled (%d services)",
                    n,
                    worker.address,
                    count,
                )
            else:
                logger.warning("Worker %d (%s): Auto-upgrade NOT enabled", n, worker.address)
        return counts

    async def resolve_target(self) -> str | None:
        """Explicit target version, else the latest release; None if unknown."""
        if self._target_version is not None:
            return self._target_version
        if self._release_source is None:
            return None
        try:
            latest = await self._release_source.latest_version()
        except ReleaseLookupError as e:
            logger.error("Latest release unknown: %s", e)
            return None
        logger.info("Latest release: %s", latest)
        return latest

    async def run(self) -> UpgradeReport:
        logger.info("=== Phase 1: Pre-Upgrade Status ===")
        installed = await self.report_versions()
        await self.check_upgrade_config()

        logger.info("=== Phase 2: Check for Pending Upgrade ===")
        # Fleet version is the first reachable worker's installed version
        current = next((v for v in installed.values() if v is not None), None)
        target = await self.resolve_target()
        logger.info("Current version: %s", current or "unknown")
        logger.info("Target version: %s", target or "unknown")

        if target is None:
            status = RolloutStatus(
                target_version="unknown",
                outcome=RolloutOutcome.TIMED_OUT,
            )
            logger.error("Cannot determine the version to wait for; nothing monitored")
            report = UpgradeReport(current_version=current, status=status)
        elif current == target:
            logger.info("Nodes are already on latest version. No upgrade to test.")
            logger.info(
                "To test an upgrade, publish a new release tag and re-run this test"
            )
            status = await self._monitor.snapshot(target)
            report = UpgradeReport(
                current_version=current,
                target_version=target,
                already_current=True,
                status=status.with_outcome(RolloutOutcome.COMPLETE),
            )
        else:
            logger.info("=== Phase 3: Monitor Upgrade Progress ===")
            status = await self._monitor.monitor(
                target,
                max_wait_s=self._plan.max_wait_s,
                poll_interval_s=self._plan.poll_interval_s,
            )
            report = UpgradeReport(
                current_version=current,
                target_version=target,
                status=status,
            )

        logger.info("=== Phase 4: Final Status ===")
        await self.report_versions()
        logger.info("=== Upgrade Test Complete ===")
        return report
