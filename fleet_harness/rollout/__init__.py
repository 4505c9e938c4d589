"""
Rollout monitoring and the upgrade test.
"""

from fleet_harness.rollout.monitor import RolloutMonitor, RolloutPlan
from fleet_harness.rollout.releases import GitHubReleaseSource, normalize_tag
from fleet_harness.rollout.upgrade import UpgradeReport, UpgradeTest

__all__ = [
    "GitHubReleaseSource",
    "RolloutMonitor",
    "RolloutPlan",
    "UpgradeReport",
    "UpgradeTest",
    "normalize_tag",
]
