"""
Remote execution on worker hosts: SSH executor, command set and node probe.
"""

from fleet_harness.remote.commands import CommandSet
from fleet_harness.remote.probe import SSHNodeProbe
from fleet_harness.remote.ssh import SSHExecutor

__all__ = ["CommandSet", "SSHExecutor", "SSHNodeProbe"]
