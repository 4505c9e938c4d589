"""
Tests for NodeLifecycleController against the fake fleet.
"""

from unittest.mock import AsyncMock

import pytest

from fleet_harness.domain import ChurnAction, ChurnOutcome, NodeState
from fleet_harness.fleet import FleetTopology
from fleet_harness.interfaces import RemoteExecutor
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.remote import CommandSet
from tests.fixtures.fake_fleet import FakeFleet


class TestQueries:
    """Tests for running-node queries."""

    @pytest.mark.asyncio
    async def test_running_nodes(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.stop_nodes([0, 1, 60])
        worker = topology.worker("worker-1")

        query = await lifecycle.running_nodes(worker)

        assert query.reachable
        assert query.running_count == 48
        assert 0 not in query.running
        assert 2 in query.running

    @pytest.mark.asyncio
    async def test_unreachable_worker_is_not_zero_running(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        """A failed query is distinguishable from an idle worker."""
        fleet.unreachable.add("worker-2")
        fleet.stop_nodes(range(0, 50))

        down = await lifecycle.running_nodes(topology.worker("worker-2"))
        idle = await lifecycle.running_nodes(topology.worker("worker-1"))

        assert down.reachable is False
        assert down.running_count is None
        assert down.error
        assert idle.reachable is True
        assert idle.running_count == 0

    @pytest.mark.asyncio
    async def test_node_handles_states(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.stop_nodes([3])

        handles = await lifecycle.node_handles(topology.worker("worker-1"))

        assert len(handles) == 50
        assert handles[3].state == NodeState.STOPPED
        assert handles[4].state == NodeState.RUNNING

    @pytest.mark.asyncio
    async def test_node_handles_unknown_when_unreachable(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.unreachable.add("worker-3")

        handles = await lifecycle.node_handles(topology.worker("worker-3"))

        assert {h.state for h in handles} == {NodeState.UNKNOWN}
        assert [h.global_index for h in handles] == list(range(100, 150))

    @pytest.mark.asyncio
    async def test_fleet_handles_cover_fleet(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet
    ) -> None:
        handles = await lifecycle.fleet_handles()

        assert [h.global_index for h in handles] == list(range(200))

    @pytest.mark.asyncio
    async def test_count_running_reports_unreachable(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet
    ) -> None:
        fleet.unreachable.add("worker-4")
        fleet.stop_nodes([0, 1])

        health = await lifecycle.count_running()

        assert health.expected_total == 200
        assert health.total_running == 148
        assert health.per_worker["worker-1"] == 48
        assert health.per_worker["worker-4"] is None
        assert health.unreachable == ["worker-4"]
        assert health.percent == 74


class TestStopStart:
    """Tests for lifecycle actions."""

    @pytest.mark.asyncio
    async def test_stop_and_start(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        handle = topology.handle(75, NodeState.RUNNING)

        stopped = await lifecycle.stop(handle)
        assert stopped.outcome == ChurnOutcome.SUCCEEDED
        assert stopped.action == ChurnAction.STOP
        assert 75 not in fleet.running
        assert fleet.calls[-1] == ("10.0.0.12", "systemctl stop peer-node-75")

        started = await lifecycle.start(handle)
        assert started.succeeded
        assert 75 in fleet.running

    @pytest.mark.asyncio
    async def test_idempotent(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        """Starting a running node and stopping a stopped node both succeed."""
        handle = topology.handle(10)

        assert (await lifecycle.start(handle)).succeeded
        assert (await lifecycle.stop(handle)).succeeded
        assert (await lifecycle.stop(handle)).succeeded
        assert 10 not in fleet.running

    @pytest.mark.asyncio
    async def test_failure_becomes_failed_event(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.failing_stops.add(5)

        event = await lifecycle.stop(topology.handle(5))

        assert event.outcome == ChurnOutcome.FAILED
        assert "exit 1" in event.error
        assert 5 in fleet.running

    @pytest.mark.asyncio
    async def test_no_inline_retry(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.unreachable.add("worker-1")

        await lifecycle.start(topology.handle(5))

        assert len(fleet.calls) == 1


class TestRestoreAndConfig:
    """Tests for restore and auto-upgrade checks."""

    @pytest.mark.asyncio
    async def test_restore_worker_starts_range(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.stop_nodes(range(50, 70))

        result = await lifecycle.restore_worker(topology.worker("worker-2"))

        assert result.succeeded
        assert result.worker_id == "worker-2"
        assert set(range(50, 100)) <= fleet.running
        assert ("10.0.0.12", "/usr/local/bin/start-nodes.sh 50") in fleet.calls

    @pytest.mark.asyncio
    async def test_restore_failure_does_not_raise(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.failing_restores.add("worker-1")

        result = await lifecycle.restore_worker(topology.worker("worker-1"))

        assert result.succeeded is False
        assert result.error

    @pytest.mark.asyncio
    async def test_unexpected_restore_error_becomes_failed_result(
        self, topology: FleetTopology, commands: CommandSet
    ) -> None:
        executor = AsyncMock(spec=RemoteExecutor)
        executor.execute.side_effect = RuntimeError("restore script exploded")
        lifecycle = NodeLifecycleController(topology, executor, commands)

        result = await lifecycle.restore_worker(topology.worker("worker-3"))

        assert result.succeeded is False
        assert result.worker_id == "worker-3"
        assert result.error == "RuntimeError: restore script exploded"

    @pytest.mark.asyncio
    async def test_auto_upgrade_services(
        self, lifecycle: NodeLifecycleController, fleet: FakeFleet, topology: FleetTopology
    ) -> None:
        fleet.auto_upgrade["worker-2"] = 0
        fleet.unreachable.add("worker-3")

        assert await lifecycle.auto_upgrade_services(topology.worker("worker-1")) == 50
        assert await lifecycle.auto_upgrade_services(topology.worker("worker-2")) == 0
        assert await lifecycle.auto_upgrade_services(topology.worker("worker-3")) is None
