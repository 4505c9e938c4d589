"""
NodeProbe interface.

Reads process-level facts about the nodes on a worker: how many are
running and which version each one reports.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from fleet_harness.domain import Worker
from fleet_harness.errors import ExecError


class NodeProbe(ABC):
    """Abstract base class for node process inspection."""

    @abstractmethod
    async def running_count(self, worker: Worker) -> int:
        """
        Count node processes running on a worker.

        Raises:
            ExecError: if the worker cannot be queried.
        """
        pass

    @abstractmethod
    async def version(self, worker: Worker, local_index: int) -> str | None:
        """
        Get the version reported by one node.

        Args:
            worker: Worker hosting the node
            local_index: Index of the node within the worker's range

        Returns:
            Version string, or None if the node did not report one.
        """
        pass

    @abstractmethod
    async def binary_version(self, worker: Worker) -> str | None:
        """
        Get the version of the node binary installed on a worker.

        This is what a node would run after its next restart.

        Raises:
            ExecError: if the worker cannot be queried.
        """
        pass

    async def versions(
        self,
        worker: Worker,
        local_indices: Iterable[int],
    ) -> dict[int, str | None]:
        """
        Get versions for several nodes of one worker.

        Default implementation queries nodes one at a time; implementations
        may batch. A failed query for one node maps it to None.
        """
        result: dict[int, str | None] = {}
        for local_index in local_indices:
            try:
                result[local_index] = await self.version(worker, local_index)
            except ExecError:
                result[local_index] = None
        return result
