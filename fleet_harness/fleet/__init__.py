"""
Fleet layout: workers and the node index ranges they own.
"""

from fleet_harness.fleet.topology import (
    FleetTopology,
    load_topology,
    uniform_topology,
)

__all__ = ["FleetTopology", "load_topology", "uniform_topology"]
