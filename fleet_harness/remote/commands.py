"""
Shell commands run on worker hosts, and parsers for their output.

Nodes run as systemd units named from a template (e.g. peer-node-{index}),
where the index is the node's global index. Every command is a plain
shell line handed to the RemoteExecutor.
"""

import re
import shlex
from collections.abc import Iterable
from pathlib import PurePosixPath

from fleet_harness.domain import Worker

# Matches the first dotted version number, e.g. "peer-node 0.4.12" -> "0.4.12"
VERSION_PATTERN = re.compile(r"(\d+(?:\.\d+)+(?:-[0-9A-Za-z.]+)?)")

SYSTEMD_UNIT_DIR = "/etc/systemd/system"
AUTO_UPGRADE_FLAG = "auto-upgrade"


def parse_version(text: str) -> str | None:
    """Extract a version number from `--version` output."""
    match = VERSION_PATTERN.search(text)
    return match.group(1) if match else None


def check_restore_command(template: str) -> None:
    """
    Reject a restore template that cannot be filled in.

    Raises:
        ValueError: on an unknown placeholder or malformed braces
    """
    try:
        template.format(start=0, count=1, end=1)
    except (AttributeError, KeyError, IndexError, ValueError) as e:
        raise ValueError(
            f"restore_command {template!r} is invalid ({e!r}); "
            "only {start}, {count} and {end} are substituted"
        ) from e


class CommandSet:
    """
    Builds the remote commands for one node layout.

    Args:
        service_template: systemd unit name with an {index} placeholder
        node_binary: Absolute path of the node binary on workers
        restore_command: Command starting every node of a worker;
            {start}, {count} and {end} are substituted
    """

    def __init__(
        self,
        service_template: str = "peer-node-{index}",
        node_binary: str = "/usr/local/bin/peer-node",
        restore_command: str = "/usr/local/bin/start-nodes.sh {start}",
    ):
        if "{index}" not in service_template:
            raise ValueError("service_template must contain '{index}'")
        check_restore_command(restore_command)
        self.service_template = service_template
        self.node_binary = node_binary
        self.restore_command = restore_command

    @property
    def process_name(self) -> str:
        """Executable name used to count node processes."""
        return PurePosixPath(self.node_binary).name

    def service_name(self, global_index: int) -> str:
        return self.service_template.replace("{index}", str(global_index))

    def _service_expr(self, shell_var: str) -> str:
        return self.service_template.replace("{index}", f"${shell_var}")

    def list_running(self, worker: Worker) -> str:
        """Print the global index of every active node unit in the worker's range."""
        svc = self._service_expr("i")
        return (
            f"for i in $(seq {worker.start} {worker.end - 1}); do "
            f'systemctl is-active --quiet "{svc}" 2>/dev/null && echo $i; '
            "done; true"
        )

    def stop(self, global_index: int) -> str:
        return f"systemctl stop {shlex.quote(self.service_name(global_index))}"

    def start(self, global_index: int) -> str:
        return f"systemctl start {shlex.quote(self.service_name(global_index))}"

    def running_count(self) -> str:
        """Count node processes (pgrep prints 0 and exits 1 when none match)."""
        return f"pgrep -c -x {shlex.quote(self.process_name)} 2>/dev/null || true"

    def binary_version(self) -> str:
        """Version of the installed binary (what a restarted node would run)."""
        return f"{shlex.quote(self.node_binary)} --version 2>/dev/null | head -1"

    def node_versions(self, global_indices: Iterable[int]) -> str:
        """
        Print "<index> <version line>" for each listed node.

        The version is read from the executable of the unit's running
        process, so a node that has not restarted since the binary was
        replaced still reports its old version. Stopped nodes print the
        index alone.
        """
        indices = " ".join(str(g) for g in global_indices)
        svc = self._service_expr("i")
        return (
            f"for i in {indices}; do "
            f'pid=$(systemctl show -p MainPID --value "{svc}" 2>/dev/null); '
            'if [ "${pid:-0}" -gt 0 ] 2>/dev/null; then '
            'echo "$i $(/proc/$pid/exe --version 2>/dev/null | head -1)"; '
            'else echo "$i"; fi; '
            "done; true"
        )

    def restore(self, worker: Worker) -> str:
        return self.restore_command.format(
            start=worker.start,
            count=worker.count,
            end=worker.end,
        )

    def auto_upgrade_count(self) -> str:
        """Number of node unit files that enable auto-upgrade."""
        pattern = self.service_template.replace("{index}", "*")
        return (
            f"grep -l {AUTO_UPGRADE_FLAG!r} {SYSTEMD_UNIT_DIR}/{pattern}.service "
            "2>/dev/null | wc -l"
        )


def parse_indices(output: str, worker: Worker) -> frozenset[int]:
    """Parse one index per line, keeping only indices inside the worker's range."""
    indices: set[int] = set()
    for line in output.splitlines():
        line = line.strip()
        if line.isdigit() and worker.contains(int(line)):
            indices.add(int(line))
    return frozenset(indices)


def parse_count(output: str) -> int:
    """
    Parse a single integer count.

    Raises:
        ValueError: if the output holds no integer
    """
    for line in output.splitlines():
        line = line.strip()
        if line.isdigit():
            return int(line)
    raise ValueError(f"No count in output: {output!r}")


def parse_node_versions(output: str, worker: Worker) -> dict[int, str | None]:
    """
    Parse "<global index> <version line>" lines into local index -> version.

    Nodes listed without a parsable version map to None.
    """
    versions: dict[int, str | None] = {}
    for line in output.splitlines():
        head, _, rest = line.strip().partition(" ")
        if not head.isdigit():
            continue
        global_index = int(head)
        if not worker.contains(global_index):
            continue
        versions[global_index - worker.start] = parse_version(rest)
    return versions
