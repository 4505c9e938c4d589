"""
Churn controller.

One churn cycle stops k uniformly chosen running nodes, waits for the
settle delay, then starts k uniformly chosen stopped nodes. Selection is
fleet-wide: every eligible node has the same chance regardless of which
worker hosts it. Nodes on unreachable workers (UNKNOWN) are never chosen.
"""

import math
import random

from fleet_harness.domain import (
    ChurnAction,
    ChurnCycleResult,
    ChurnEvent,
    NodeHandle,
    NodeState,
)
from fleet_harness.errors import ConfigError
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.logging import get_logger
from fleet_harness.runtime.run_log import RunLedger
from fleet_harness.runtime.ticker import Ticker

logger = get_logger(__name__)


def validate_churn_rate(rate_percent: float) -> None:
    """
    Raises:
        ConfigError: unless 0 < rate_percent <= 100
    """
    if not 0 < rate_percent <= 100:
        raise ConfigError(f"Churn rate must be in (0, 100], got {rate_percent}")


def compute_churn_count(total_nodes: int, rate_percent: float) -> int:
    """
    Nodes to stop (and later start) per cycle.

    count = max(1, round_half_up(total_nodes * rate_percent / 100))
    """
    validate_churn_rate(rate_percent)
    exact = total_nodes * rate_percent / 100
    return max(1, math.floor(exact + 0.5))


class ChurnController:
    """Runs churn cycles against the fleet."""

    def __init__(
        self,
        lifecycle: NodeLifecycleController,
        ticker: Ticker,
        rng: random.Random | None = None,
        settle_s: float = 5.0,
        ledger: RunLedger | None = None,
    ):
        """
        Args:
            lifecycle: Controller used to query, stop and start nodes
            ticker: Clock for the settle delay
            rng: Random source (seed it for reproducible runs)
            settle_s: Delay between the stop and start phases
            ledger: Optional run ledger receiving every churn event
        """
        self._lifecycle = lifecycle
        self._ticker = ticker
        self._rng = rng or random.Random()
        self._settle_s = settle_s
        self._ledger = ledger

    def churn_count(self, rate_percent: float) -> int:
        return compute_churn_count(self._lifecycle.topology.total_nodes(), rate_percent)

    def _select(self, handles: list[NodeHandle], state: NodeState, k: int) -> list[NodeHandle]:
        eligible = sorted(
            (h for h in handles if h.state == state),
            key=lambda h: h.global_index,
        )
        return self._rng.sample(eligible, min(k, len(eligible)))

    def _record(self, event: ChurnEvent) -> None:
        if self._ledger is not None:
            self._ledger.record_churn_event(event)

    async def _apply(
        self,
        handles: list[NodeHandle],
        action: ChurnAction,
        events: list[ChurnEvent],
    ) -> None:
        for handle in handles:
            # Leftover stopped nodes are brought back by the end-of-run restore
            if self._ticker.cancelled:
                logger.warning(
                    "Churn interrupted; %d %s actions skipped",
                    len(handles) - len(events),
                    action.value,
                )
                return
            if action == ChurnAction.STOP:
                event = await self._lifecycle.stop(handle)
            else:
                event = await self._lifecycle.start(handle)
            events.append(event)
            self._record(event)

    async def churn_cycle(self, rate_percent: float) -> ChurnCycleResult:
        """
        Stop then restart `count` nodes.

        Continues past individual failures; does not wait for the network
        to converge after restarts. Stops issuing actions once the ticker
        is cancelled.
        """
        k = self.churn_count(rate_percent)

        handles = await self._lifecycle.fleet_handles()
        victims = self._select(handles, NodeState.RUNNING, k)
        logger.info("Killing %d random nodes...", len(victims))
        if len(victims) < k:
            logger.warning("Only %d running nodes eligible (wanted %d)", len(victims), k)

        stops: list[ChurnEvent] = []
        await self._apply(victims, ChurnAction.STOP, stops)

        starts: list[ChurnEvent] = []
        if await self._ticker.sleep(self._settle_s):
            handles = await self._lifecycle.fleet_handles()
            recoveries = self._select(handles, NodeState.STOPPED, k)
            logger.info("Restarting %d random nodes...", len(recoveries))
            if len(recoveries) < k:
                logger.warning(
                    "Only %d stopped nodes eligible (wanted %d)", len(recoveries), k
                )
            await self._apply(recoveries, ChurnAction.START, starts)

        result = ChurnCycleResult(requested=k, events=tuple(stops + starts))
        logger.info(
            "Churn: %d/%d stopped, %d/%d restarted",
            result.victims_succeeded,
            result.victims_attempted,
            result.recoveries_succeeded,
            result.recoveries_attempted,
        )
        return result
