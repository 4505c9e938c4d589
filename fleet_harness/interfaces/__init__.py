"""
Interfaces (abstract base classes) for the fleet harness.

These define the contracts of the harness's external collaborators:
- RemoteExecutor: run a command on a worker host
- NodeProbe: running counts and versions of node processes
- VerificationProbe: retrievability of one content address
- ReleaseSource: latest published node version
"""

from fleet_harness.interfaces.node_probe import NodeProbe
from fleet_harness.interfaces.release_source import ReleaseSource
from fleet_harness.interfaces.remote_executor import ExecResult, RemoteExecutor
from fleet_harness.interfaces.verification_probe import VerificationProbe

__all__ = [
    "ExecResult",
    "NodeProbe",
    "ReleaseSource",
    "RemoteExecutor",
    "VerificationProbe",
]
