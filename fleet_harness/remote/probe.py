"""
SSH-backed NodeProbe.
"""

from collections.abc import Iterable

from fleet_harness.domain import Worker
from fleet_harness.errors import ExecError
from fleet_harness.interfaces import NodeProbe, RemoteExecutor
from fleet_harness.remote.commands import (
    CommandSet,
    parse_count,
    parse_node_versions,
    parse_version,
)


class SSHNodeProbe(NodeProbe):
    """Reads node process counts and versions through a RemoteExecutor."""

    def __init__(
        self,
        executor: RemoteExecutor,
        commands: CommandSet,
        timeout: float | None = None,
    ):
        self._executor = executor
        self._commands = commands
        self._timeout = timeout

    async def running_count(self, worker: Worker) -> int:
        result = await self._executor.execute(
            worker.address, self._commands.running_count(), self._timeout
        )
        try:
            return parse_count(result.output)
        except ValueError as e:
            raise ExecError(
                str(e),
                address=worker.address,
                command=self._commands.running_count(),
                output=result.output,
            ) from e

    async def version(self, worker: Worker, local_index: int) -> str | None:
        versions = await self.versions(worker, [local_index])
        return versions.get(local_index)

    async def versions(
        self,
        worker: Worker,
        local_indices: Iterable[int],
    ) -> dict[int, str | None]:
        """
        One remote call per worker.

        Raises:
            ExecError: if the worker cannot be queried; callers treat every
                listed node as running-but-unknown.
        """
        locals_ = list(local_indices)
        if not locals_:
            return {}
        command = self._commands.node_versions(worker.start + i for i in locals_)
        result = await self._executor.execute(worker.address, command, self._timeout)
        parsed = parse_node_versions(result.output, worker)
        return {i: parsed.get(i) for i in locals_}

    async def binary_version(self, worker: Worker) -> str | None:
        """Version of the binary installed on the worker."""
        result = await self._executor.execute(
            worker.address, self._commands.binary_version(), self._timeout
        )
        return parse_version(result.output)
