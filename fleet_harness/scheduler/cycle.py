"""
Cycle scheduler: churn -> settle -> health -> verify, repeated until the
run duration is used up, then a fleet-wide restore and final checks.

The restore always runs, including when the loop never started or the
run was cancelled.
"""

import asyncio

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleet_harness.churn import ChurnController
from fleet_harness.domain import (
    FleetHealth,
    RestoreResult,
    RunSummary,
    TestCycleResult,
    VerificationSample,
)
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.logging import get_logger
from fleet_harness.runtime.run_log import RunLedger
from fleet_harness.runtime.ticker import Ticker
from fleet_harness.verification import AddressCorpus, VerificationRunner

logger = get_logger(__name__)


class ChurnPlan(BaseModel):
    """Timing and intensity of a churn run."""

    model_config = ConfigDict(frozen=True)

    duration_s: float = Field(default=1800.0, ge=0, description="Wall-clock run length")
    churn_rate: float = Field(default=10.0, description="Percent of the fleet churned per cycle")
    settle_interval_s: float = Field(
        default=30.0,
        ge=0,
        description="Wait after churn before health and verification checks",
    )
    cycle_interval_s: float = Field(
        default=60.0,
        ge=0,
        description="Target length of one cycle",
    )
    sample_size: int | None = Field(
        default=None,
        ge=1,
        description="Addresses verified per pass (whole corpus when unset)",
    )
    restore_settle_s: float = Field(
        default=10.0,
        ge=0,
        description="Wait after the restore before the post-recovery checks",
    )

    @field_validator("churn_rate")
    @classmethod
    def validate_churn_rate(cls, v: float) -> float:
        if not 0 < v <= 100:
            raise ValueError(f"churn_rate must be in (0, 100], got {v}")
        return v


class CycleScheduler:
    """Runs a churn test, optionally verifying data availability each cycle."""

    def __init__(
        self,
        lifecycle: NodeLifecycleController,
        churn: ChurnController,
        ticker: Ticker,
        verifier: VerificationRunner | None = None,
        ledger: RunLedger | None = None,
        min_healthy_percent: float = 50.0,
    ):
        self._lifecycle = lifecycle
        self._churn = churn
        self._ticker = ticker
        self._verifier = verifier
        self._ledger = ledger
        self._min_healthy_percent = min_healthy_percent

    async def report_health(self, phase: str) -> FleetHealth:
        """Log running counts for the fleet and each worker."""
        health = await self._lifecycle.count_running()
        logger.info(
            "Node health: %d / %d running (%d%%)",
            health.total_running,
            health.expected_total,
            health.percent,
        )
        for n, worker in enumerate(self._lifecycle.topology.workers, start=1):
            count = health.per_worker.get(worker.id)
            logger.info(
                "  Worker %d (%s): %s nodes",
                n,
                worker.address,
                "unreachable" if count is None else count,
            )
        if health.percent < self._min_healthy_percent:
            logger.warning(
                "Only %d%% of nodes running (below %g%%); results may be unreliable",
                health.percent,
                self._min_healthy_percent,
            )
        if self._ledger is not None:
            self._ledger.record_health(health, phase)
        return health

    async def _verify(
        self,
        corpus: AddressCorpus | None,
        sample_size: int | None,
        phase: str,
    ) -> VerificationSample | None:
        if corpus is None or self._verifier is None:
            return None
        logger.info("--- Verifying Data Availability ---")
        sample = await self._verifier.verify(corpus, sample_size)
        if self._ledger is not None:
            self._ledger.record_verification(sample, phase)
        return sample

    async def restore_all(self) -> list[RestoreResult]:
        """Restart every node on every worker concurrently; waits for all workers."""
        logger.info("--- Restoring All Nodes ---")
        workers = self._lifecycle.topology.workers
        results = await asyncio.gather(*(self._lifecycle.restore_worker(w) for w in workers))
        for result in results:
            if self._ledger is not None:
                self._ledger.record_restore(result)
        failed = [r.worker_id for r in results if not r.succeeded]
        if failed:
            logger.error("Restore failed on %d worker(s): %s", len(failed), ", ".join(failed))
        return list(results)

    async def run(self, plan: ChurnPlan, corpus: AddressCorpus | None = None) -> RunSummary:
        """
        Run the churn test.

        Args:
            plan: Run timing and churn intensity
            corpus: Addresses to verify; None runs a health-only test

        Returns:
            RunSummary; succeeded iff no verification cycle failed
        """
        logger.info("Duration: %g minutes", plan.duration_s / 60)
        logger.info(
            "Churn rate: %g%% (%d nodes per cycle)",
            plan.churn_rate,
            self._churn.churn_count(plan.churn_rate),
        )
        logger.info("Churn interval: %g seconds", plan.cycle_interval_s)
        if corpus is not None:
            logger.info("Chunks to verify: %d", len(corpus))

        logger.info("--- Initial Status ---")
        await self.report_health("baseline")
        baseline = await self._verify(corpus, plan.sample_size, "baseline")

        end_time = self._ticker.now() + plan.duration_s
        cycles = 0
        pass_count = 0
        fail_count = 0

        logger.info("--- Starting Churn Test ---")
        while self._ticker.now() < end_time and not self._ticker.cancelled:
            cycle = cycles + 1
            logger.info("=== Cycle %d ===", cycle)

            churn = await self._churn.churn_cycle(plan.churn_rate)

            logger.info("Waiting %g seconds for network to stabilize...", plan.settle_interval_s)
            if not await self._ticker.sleep(plan.settle_interval_s):
                logger.warning("Cycle %d interrupted before verification", cycle)
                break

            health = await self.report_health(f"cycle-{cycle}")
            verification = await self._verify(corpus, plan.sample_size, f"cycle-{cycle}")
            if verification is not None and verification.interrupted:
                logger.warning("Cycle %d interrupted during verification", cycle)
                break

            result = TestCycleResult(
                cycle=cycle,
                churn=churn,
                health=health,
                verification=verification,
            )
            cycles = cycle
            if result.passed is True:
                pass_count += 1
            elif result.passed is False:
                fail_count += 1
            if self._ledger is not None:
                self._ledger.record_cycle(result)

            remaining = end_time - self._ticker.now()
            logger.info("Time remaining: %d minutes", max(0, int(remaining // 60)))

            if remaining > 0:
                await self._ticker.sleep(max(0.0, plan.cycle_interval_s - plan.settle_interval_s))

        cancelled = self._ticker.cancelled
        if cancelled:
            logger.warning("Run cancelled (%s); restoring fleet", self._ticker.cancel_reason)

        logger.info("=== Final Status ===")
        await self.report_health("final")

        restore_results = await self.restore_all()

        await self._ticker.sleep(plan.restore_settle_s)
        logger.info("--- Post-Recovery Status ---")
        await self.report_health("post-recovery")
        final = await self._verify(corpus, plan.sample_size, "post-recovery")

        summary = RunSummary(
            total_cycles=cycles,
            pass_count=pass_count,
            fail_count=fail_count,
            baseline_verification=baseline,
            final_verification=final,
            restore_results=tuple(restore_results),
            cancelled=cancelled,
        )
        self._log_summary(summary, verifying=corpus is not None)
        if self._ledger is not None:
            self._ledger.record_summary(summary)
        return summary

    def _log_summary(self, summary: RunSummary, verifying: bool) -> None:
        logger.info("=== Test Summary ===")
        logger.info("Total cycles: %d", summary.total_cycles)
        if verifying:
            logger.info("Verification passes: %d", summary.pass_count)
            logger.info("Verification failures: %d", summary.fail_count)
        if summary.restore_failures:
            logger.warning("Restore failures: %s", ", ".join(summary.restore_failures))

        if not verifying:
            logger.info("RESULT: SUCCESS - churn test complete (health only)")
        elif summary.succeeded:
            logger.info("RESULT: SUCCESS - 100% data availability maintained during churn")
        else:
            logger.error("RESULT: FAILURE - Data was unavailable during some verification cycles")
