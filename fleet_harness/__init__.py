"""
Fleet Harness

Resilience test harness for large fleets of long-running peer nodes:
- Node churn (randomized stop/restart) at a target rate
- Data availability verification against a recorded address corpus
- Staged rollout monitoring until a target version saturates the fleet
"""

__version__ = "0.3.0"
__author__ = "Fleet Harness Developers"

from fleet_harness.config import Settings, get_settings

__all__ = ["__version__", "Settings", "get_settings"]
