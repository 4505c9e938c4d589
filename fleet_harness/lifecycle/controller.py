"""
Node lifecycle controller.

Queries node state on workers and starts/stops individual nodes. Remote
failures are converted into explicit results (unreachable queries, FAILED
churn events, failed restores); nothing here raises for a remote error.
"""

import time

from fleet_harness.domain import (
    ChurnAction,
    ChurnEvent,
    ChurnOutcome,
    FleetHealth,
    NodeHandle,
    NodeState,
    RestoreResult,
    Worker,
    WorkerNodeQuery,
)
from fleet_harness.errors import ExecError
from fleet_harness.fleet import FleetTopology
from fleet_harness.interfaces import RemoteExecutor
from fleet_harness.logging import get_logger
from fleet_harness.remote.commands import CommandSet, parse_count, parse_indices

logger = get_logger(__name__)


class NodeLifecycleController:
    """
    Start/stop/query nodes across the fleet.

    Every call issues fresh remote queries; no node state is cached.
    """

    def __init__(
        self,
        topology: FleetTopology,
        executor: RemoteExecutor,
        commands: CommandSet,
        command_timeout: float | None = None,
        restore_timeout: float = 300.0,
    ):
        self._topology = topology
        self._executor = executor
        self._commands = commands
        self._command_timeout = command_timeout
        self._restore_timeout = restore_timeout

    @property
    def topology(self) -> FleetTopology:
        return self._topology

    async def running_nodes(self, worker: Worker) -> WorkerNodeQuery:
        """
        Ask a worker which of its nodes are active.

        Returns a query with reachable=False (and no running nodes) when the
        worker cannot be queried.
        """
        try:
            result = await self._executor.execute(
                worker.address,
                self._commands.list_running(worker),
                self._command_timeout,
            )
        except ExecError as e:
            logger.warning("Worker %s unreachable: %s", worker, e)
            return WorkerNodeQuery(worker_id=worker.id, reachable=False, error=str(e))

        return WorkerNodeQuery(
            worker_id=worker.id,
            running=parse_indices(result.output, worker),
        )

    async def node_handles(self, worker: Worker) -> list[NodeHandle]:
        """Handles for every node of a worker; UNKNOWN when the worker is unreachable."""
        query = await self.running_nodes(worker)
        if not query.reachable:
            return self._topology.handles_for(worker, NodeState.UNKNOWN)
        return [
            h.model_copy(
                update={
                    "state": NodeState.RUNNING
                    if h.global_index in query.running
                    else NodeState.STOPPED
                }
            )
            for h in self._topology.handles_for(worker)
        ]

    async def fleet_handles(self) -> list[NodeHandle]:
        """Handles for the whole fleet, queried worker by worker."""
        handles: list[NodeHandle] = []
        for worker in self._topology.workers:
            handles.extend(await self.node_handles(worker))
        return handles

    async def _lifecycle(self, handle: NodeHandle, action: ChurnAction) -> ChurnEvent:
        worker = self._topology.worker(handle.worker_id)
        command = (
            self._commands.stop(handle.global_index)
            if action == ChurnAction.STOP
            else self._commands.start(handle.global_index)
        )
        try:
            await self._executor.execute(worker.address, command, self._command_timeout)
        except ExecError as e:
            logger.warning(
                "  %s of node %d on %s failed: %s",
                action.value,
                handle.global_index,
                worker.address,
                e,
            )
            return ChurnEvent(
                handle=handle,
                action=action,
                outcome=ChurnOutcome.FAILED,
                error=str(e),
            )

        verb = "Stopped" if action == ChurnAction.STOP else "Started"
        logger.info("  %s node %d on %s", verb, handle.global_index, worker.address)
        return ChurnEvent(handle=handle, action=action, outcome=ChurnOutcome.SUCCEEDED)

    async def stop(self, handle: NodeHandle) -> ChurnEvent:
        """Stop one node (stopping a stopped node succeeds)."""
        return await self._lifecycle(handle, ChurnAction.STOP)

    async def start(self, handle: NodeHandle) -> ChurnEvent:
        """Start one node (starting a running node succeeds)."""
        return await self._lifecycle(handle, ChurnAction.START)

    async def count_running(self) -> FleetHealth:
        """Best-effort running-node count; unreachable workers are reported as None."""
        per_worker: dict[str, int | None] = {}
        for worker in self._topology.workers:
            query = await self.running_nodes(worker)
            per_worker[worker.id] = query.running_count
        return FleetHealth(
            expected_total=self._topology.total_nodes(),
            per_worker=per_worker,
        )

    async def restore_worker(self, worker: Worker) -> RestoreResult:
        """Start every node of a worker's range. Never raises for remote failure."""
        started = time.monotonic()
        logger.info("Restarting all nodes on %s...", worker)
        try:
            await self._executor.execute(
                worker.address,
                self._commands.restore(worker),
                self._restore_timeout,
            )
        except ExecError as e:
            duration = time.monotonic() - started
            logger.error("Restore of %s failed after %.1fs: %s", worker, duration, e)
            return RestoreResult(
                worker_id=worker.id,
                succeeded=False,
                duration_s=duration,
                error=str(e),
            )
        except Exception as e:
            duration = time.monotonic() - started
            logger.exception("Restore of %s raised unexpectedly", worker)
            return RestoreResult(
                worker_id=worker.id,
                succeeded=False,
                duration_s=duration,
                error=f"{type(e).__name__}: {e}",
            )

        duration = time.monotonic() - started
        logger.info("Restored %s in %.1fs", worker, duration)
        return RestoreResult(worker_id=worker.id, succeeded=True, duration_s=duration)

    async def auto_upgrade_services(self, worker: Worker) -> int | None:
        """Number of node services with auto-upgrade enabled; None if unknown."""
        try:
            result = await self._executor.execute(
                worker.address,
                self._commands.auto_upgrade_count(),
                self._command_timeout,
            )
            return parse_count(result.output)
        except (ExecError, ValueError) as e:
            logger.warning("Auto-upgrade check on %s failed: %s", worker, e)
            return None
