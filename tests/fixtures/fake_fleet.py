"""
In-memory fleet for tests.

FakeFleet is a RemoteExecutor that answers the exact command strings
produced by CommandSet, so lifecycle, churn, rollout and scheduler code
run unmodified against it. FakeTicker advances virtual time instead of
sleeping.
"""

import asyncio
import re
from collections.abc import Callable, Iterable

from fleet_harness.domain import Worker
from fleet_harness.errors import ExecError
from fleet_harness.fleet import FleetTopology, uniform_topology
from fleet_harness.interfaces import ExecResult, RemoteExecutor, VerificationProbe
from fleet_harness.remote import CommandSet
from fleet_harness.runtime import Ticker

NODE_VERSIONS_PATTERN = re.compile(r"^for i in ([\d ]+); do pid=")


def make_topology(workers: int = 4, nodes_per_worker: int = 50) -> FleetTopology:
    """Uniform topology with workers at 10.0.0.11, 10.0.0.12, ..."""
    addresses = [f"10.0.0.{11 + i}" for i in range(workers)]
    return uniform_topology(addresses, nodes_per_worker)


class FakeTicker(Ticker):
    """Ticker on virtual time; sleep() advances the clock without waiting."""

    def __init__(self, start: float = 0.0):
        super().__init__()
        self.time = start
        self.sleeps: list[float] = []
        self.on_sleep: list[Callable[[float], None]] = []

    def now(self) -> float:
        return self.time

    async def sleep(self, seconds: float) -> bool:
        if self.cancelled:
            return False
        if seconds <= 0:
            return True
        self.sleeps.append(seconds)
        self.time += seconds
        for hook in list(self.on_sleep):
            hook(self.time)
        await asyncio.sleep(0)
        return not self.cancelled


class FakeFleet(RemoteExecutor):
    """
    Simulated workers running systemd node units.

    State:
        running: global indices of active nodes
        installed: binary version installed per worker id
        process_versions: version each running node was started with
        unreachable: worker ids whose every command fails with exit 255
    """

    def __init__(
        self,
        topology: FleetTopology,
        commands: CommandSet,
        version: str = "0.4.0",
        all_running: bool = True,
    ):
        self.topology = topology
        self.commands = commands
        self.running: set[int] = set(range(topology.total_nodes())) if all_running else set()
        self.installed: dict[str, str] = {w.id: version for w in topology.workers}
        self.process_versions: dict[int, str] = {
            g: version for g in range(topology.total_nodes())
        }
        self.auto_upgrade: dict[str, int] = {w.id: w.count for w in topology.workers}

        self.unreachable: set[str] = set()
        self.failing_stops: set[int] = set()
        self.failing_starts: set[int] = set()
        self.failing_restores: set[str] = set()
        self.failing_version_queries: set[str] = set()

        self.calls: list[tuple[str, str]] = []
        self.restore_delay_s = 0.0
        self.restores_in_flight = 0
        self.max_restores_in_flight = 0

        self._by_address: dict[str, Worker] = {w.address: w for w in topology.workers}
        self._table: dict[str, tuple] = {}
        for worker in topology.workers:
            self._table[commands.list_running(worker)] = ("list",)
            self._table[commands.restore(worker)] = ("restore",)
            for g in worker.global_indices:
                self._table[commands.stop(g)] = ("stop", g)
                self._table[commands.start(g)] = ("start", g)
        self._table[commands.running_count()] = ("count",)
        self._table[commands.binary_version()] = ("binary",)
        self._table[commands.auto_upgrade_count()] = ("auto_upgrade",)

    # -- inspection helpers ------------------------------------------------

    def worker_for(self, global_index: int) -> Worker:
        return self.topology.resolve(global_index)[0]

    def running_on(self, worker: Worker) -> list[int]:
        return sorted(g for g in self.running if worker.contains(g))

    def calls_matching(self, prefix: str) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[1].startswith(prefix)]

    def stop_calls(self) -> list[int]:
        return [int(c[1].rsplit("-", 1)[1]) for c in self.calls_matching("systemctl stop")]

    def start_calls(self) -> list[int]:
        return [int(c[1].rsplit("-", 1)[1]) for c in self.calls_matching("systemctl start")]

    # -- state changes used by scenarios -----------------------------------

    def stop_nodes(self, indices: Iterable[int]) -> None:
        self.running.difference_update(indices)

    def install(self, version: str, worker_ids: Iterable[str] | None = None) -> None:
        """Replace the binary on workers (running processes keep their version)."""
        for worker_id in worker_ids or self.installed:
            self.installed[worker_id] = version

    def restart_nodes(self, indices: Iterable[int]) -> None:
        """Restart nodes so they pick up the installed binary."""
        for g in indices:
            self.running.add(g)
            self.process_versions[g] = self.installed[self.worker_for(g).id]

    # -- RemoteExecutor ----------------------------------------------------

    async def execute(
        self,
        address: str,
        command: str,
        timeout: float | None = None,
    ) -> ExecResult:
        self.calls.append((address, command))
        worker = self._by_address.get(address)
        if worker is None:
            raise ExecError(f"Unknown host {address}", address=address, command=command)
        if worker.id in self.unreachable:
            raise ExecError(
                "Connection failed (exit 255): Connection timed out",
                address=address,
                command=command,
                exit_status=255,
            )

        match = NODE_VERSIONS_PATTERN.match(command)
        if match:
            if worker.id in self.failing_version_queries:
                raise ExecError("Command failed (exit 1)", address=address, command=command)
            return ExecResult(output=self._node_versions(worker, match.group(1)))

        action = self._table.get(command)
        if action is None:
            raise ExecError(
                f"Unexpected command: {command}",
                address=address,
                command=command,
                exit_status=127,
            )
        return await self._dispatch(worker, address, command, action)

    def _fail(self, address: str, command: str) -> ExecError:
        return ExecError(
            "Command failed (exit 1)",
            address=address,
            command=command,
            exit_status=1,
        )

    async def _dispatch(
        self,
        worker: Worker,
        address: str,
        command: str,
        action: tuple,
    ) -> ExecResult:
        kind = action[0]
        if kind == "list":
            return ExecResult(output="".join(f"{g}\n" for g in self.running_on(worker)))
        if kind == "count":
            return ExecResult(output=f"{len(self.running_on(worker))}\n")
        if kind == "binary":
            return ExecResult(output=f"peer-node {self.installed[worker.id]}\n")
        if kind == "auto_upgrade":
            return ExecResult(output=f"{self.auto_upgrade[worker.id]}\n")
        if kind == "stop":
            g = action[1]
            if g in self.failing_stops:
                raise self._fail(address, command)
            self.running.discard(g)
            return ExecResult()
        if kind == "start":
            g = action[1]
            if g in self.failing_starts:
                raise self._fail(address, command)
            if g not in self.running:
                self.restart_nodes([g])
            return ExecResult()
        if kind == "restore":
            self.restores_in_flight += 1
            self.max_restores_in_flight = max(
                self.max_restores_in_flight, self.restores_in_flight
            )
            try:
                await asyncio.sleep(self.restore_delay_s)
            finally:
                self.restores_in_flight -= 1
            if worker.id in self.failing_restores:
                raise self._fail(address, command)
            self.restart_nodes(g for g in worker.global_indices if g not in self.running)
            return ExecResult()
        raise AssertionError(f"unhandled action {kind}")

    def _node_versions(self, worker: Worker, indices: str) -> str:
        lines = []
        for token in indices.split():
            g = int(token)
            if g in self.running:
                lines.append(f"{g} peer-node {self.process_versions[g]}")
            else:
                lines.append(f"{g}")
        return "\n".join(lines) + "\n"


class FakeVerificationProbe(VerificationProbe):
    """Retrieves addresses from an in-memory store."""

    def __init__(self, available: Iterable[str] = (), raising: Iterable[str] = ()):
        self.available = set(available)
        self.raising = set(raising)
        self.requests: list[str] = []
        self.closed = False

    async def retrieve(self, address: str) -> bool:
        self.requests.append(address)
        if address in self.raising:
            raise RuntimeError(f"client crashed on {address}")
        return address in self.available

    async def close(self) -> None:
        self.closed = True
