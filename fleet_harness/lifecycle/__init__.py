"""
Node lifecycle: query, stop, start and restore nodes on workers.
"""

from fleet_harness.lifecycle.controller import NodeLifecycleController

__all__ = ["NodeLifecycleController"]
