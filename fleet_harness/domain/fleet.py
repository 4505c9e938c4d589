"""
Fleet domain models.

A fleet is a set of workers (hosts); each worker runs a contiguous range
of node processes identified by a global index.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NodeState(str, Enum):
    """
    Observed state of a node.

    UNKNOWN means the last query against the node's worker failed. It is
    never treated as STOPPED when selecting nodes to start.
    """

    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    UNKNOWN = "UNKNOWN"


class Worker(BaseModel):
    """A worker host responsible for nodes [start, start + count)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Worker identifier")
    address: str = Field(..., min_length=1, description="Host address used for remote execution")
    start: int = Field(..., ge=0, description="First global node index on this worker")
    count: int = Field(..., gt=0, description="Number of nodes on this worker")

    @property
    def end(self) -> int:
        """Exclusive upper bound of the worker's global index range."""
        return self.start + self.count

    @property
    def global_indices(self) -> range:
        """Global indices of the nodes on this worker."""
        return range(self.start, self.end)

    def contains(self, global_index: int) -> bool:
        """Check if a global index belongs to this worker."""
        return self.start <= global_index < self.end

    def __str__(self) -> str:
        return f"{self.id} ({self.address})"


class NodeHandle(BaseModel):
    """
    A node as observed at one point in time.

    Handles are recomputed on every query; there is no persisted registry.
    """

    model_config = ConfigDict(frozen=True)

    global_index: int = Field(..., ge=0)
    worker_id: str
    local_index: int = Field(..., ge=0)
    state: NodeState = NodeState.UNKNOWN

    def __str__(self) -> str:
        return f"node {self.global_index} on {self.worker_id}"


class WorkerNodeQuery(BaseModel):
    """
    Result of asking a worker which of its nodes are running.

    `reachable=False` means the query itself failed; `running` is then empty
    and must not be read as "zero nodes running".
    """

    model_config = ConfigDict(frozen=True)

    worker_id: str
    running: frozenset[int] = Field(
        default_factory=frozenset,
        description="Global indices of active nodes",
    )
    reachable: bool = True
    error: str | None = None

    @property
    def running_count(self) -> int | None:
        """Running count, or None when the worker could not be queried."""
        if not self.reachable:
            return None
        return len(self.running)


class FleetHealth(BaseModel):
    """Best-effort aggregate of running nodes across the fleet."""

    model_config = ConfigDict(frozen=True)

    expected_total: int
    per_worker: dict[str, int | None] = Field(
        default_factory=dict,
        description="Running count per worker; None when the query failed",
    )

    @property
    def total_running(self) -> int:
        """Sum of running nodes, counting failed queries as 0."""
        return sum(c for c in self.per_worker.values() if c is not None)

    @property
    def unreachable(self) -> list[str]:
        """Workers whose query failed."""
        return [w for w, c in self.per_worker.items() if c is None]

    @property
    def percent(self) -> int:
        """Running share of the expected fleet size (integer percent)."""
        if self.expected_total <= 0:
            return 0
        return min(100, self.total_running * 100 // self.expected_total)
