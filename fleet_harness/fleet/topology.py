"""
Fleet topology.

Static mapping of workers to contiguous node-index ranges. Pure data and
validation; immutable after construction and free of I/O (apart from the
loader helper, which only reads the topology file).
"""

import json
from collections.abc import Iterable, Sequence
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from fleet_harness.domain import NodeHandle, NodeState, Worker
from fleet_harness.errors import ConfigError


class TopologyFile(BaseModel):
    """On-disk topology document."""

    workers: list[Worker] = Field(..., min_length=1)
    total_nodes: int | None = Field(default=None, gt=0)


class FleetTopology:
    """
    Workers and the global node indices they own.

    Ranges must be disjoint and together cover [0, total_nodes).
    """

    def __init__(self, workers: Iterable[Worker], total_nodes: int | None = None) -> None:
        """
        Build and validate a topology.

        Args:
            workers: Workers with their index ranges (any order)
            total_nodes: Declared fleet size; defaults to the end of the last range

        Raises:
            ConfigError: on empty, duplicate, overlapping or gapped ranges
        """
        ordered = sorted(workers, key=lambda w: w.start)
        if not ordered:
            raise ConfigError("Topology has no workers")

        seen_ids: set[str] = set()
        for worker in ordered:
            if worker.id in seen_ids:
                raise ConfigError(f"Duplicate worker id: {worker.id}")
            seen_ids.add(worker.id)

        expected_start = 0
        for worker in ordered:
            if worker.start < expected_start:
                raise ConfigError(
                    f"Worker {worker.id} range [{worker.start}, {worker.end}) "
                    f"overlaps nodes below {expected_start}"
                )
            if worker.start > expected_start:
                raise ConfigError(
                    f"Gap in topology: nodes [{expected_start}, {worker.start}) "
                    "are not assigned to any worker"
                )
            expected_start = worker.end

        covered = expected_start
        if total_nodes is None:
            total_nodes = covered
        if total_nodes <= 0:
            raise ConfigError(f"total_nodes must be positive, got {total_nodes}")
        if covered < total_nodes:
            raise ConfigError(
                f"Gap in topology: nodes [{covered}, {total_nodes}) are not assigned to any worker"
            )
        if covered > total_nodes:
            raise ConfigError(
                f"Worker ranges cover {covered} nodes but total_nodes is {total_nodes}"
            )

        self._workers: tuple[Worker, ...] = tuple(ordered)
        self._by_id: dict[str, Worker] = {w.id: w for w in ordered}
        self._total_nodes = total_nodes

    @property
    def workers(self) -> Sequence[Worker]:
        """Workers ordered by range start."""
        return self._workers

    def total_nodes(self) -> int:
        """Number of nodes in the fleet."""
        return self._total_nodes

    def worker(self, worker_id: str) -> Worker:
        """Get a worker by id."""
        try:
            return self._by_id[worker_id]
        except KeyError:
            raise ConfigError(f"Unknown worker: {worker_id}") from None

    def resolve(self, global_index: int) -> tuple[Worker, int]:
        """
        Map a global node index to its worker and local index.

        Raises:
            ConfigError: if the index is outside the fleet
        """
        if not 0 <= global_index < self._total_nodes:
            raise ConfigError(
                f"Node index {global_index} outside fleet [0, {self._total_nodes})"
            )
        # Few workers; a linear scan is fine
        for worker in self._workers:
            if worker.contains(global_index):
                return worker, global_index - worker.start
        raise ConfigError(f"Node index {global_index} not assigned")  # pragma: no cover

    def handle(
        self,
        global_index: int,
        state: NodeState = NodeState.UNKNOWN,
    ) -> NodeHandle:
        """Build a handle for a global index."""
        worker, local_index = self.resolve(global_index)
        return NodeHandle(
            global_index=global_index,
            worker_id=worker.id,
            local_index=local_index,
            state=state,
        )

    def handles_for(
        self,
        worker: Worker,
        state: NodeState = NodeState.UNKNOWN,
    ) -> list[NodeHandle]:
        """Handles for every node of a worker, all in the given state."""
        return [
            NodeHandle(
                global_index=g,
                worker_id=worker.id,
                local_index=g - worker.start,
                state=state,
            )
            for g in worker.global_indices
        ]

    def __len__(self) -> int:
        return len(self._workers)

    def __repr__(self) -> str:
        return f"FleetTopology(workers={len(self._workers)}, total_nodes={self._total_nodes})"


def uniform_topology(
    addresses: Sequence[str],
    nodes_per_worker: int,
) -> FleetTopology:
    """
    Build a topology with equally sized workers named worker-1..N.

    Args:
        addresses: Worker host addresses, in range order
        nodes_per_worker: Nodes on every worker
    """
    workers = [
        Worker(
            id=f"worker-{i + 1}",
            address=address,
            start=i * nodes_per_worker,
            count=nodes_per_worker,
        )
        for i, address in enumerate(addresses)
    ]
    return FleetTopology(workers)


def load_topology(path: Path) -> FleetTopology:
    """
    Load a topology JSON file.

    Format:
        {"workers": [{"id": "w1", "address": "10.0.0.1", "start": 0, "count": 50}, ...],
         "total_nodes": 200}

    Raises:
        ConfigError: if the file is missing, not JSON, or invalid
    """
    if not path.is_file():
        raise ConfigError(f"Topology file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Topology file {path} is not valid JSON: {e}") from e

    try:
        document = TopologyFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid topology file {path}: {e}") from e

    return FleetTopology(document.workers, total_nodes=document.total_nodes)
