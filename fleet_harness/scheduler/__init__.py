"""
Churn test scheduling.
"""

from fleet_harness.scheduler.cycle import ChurnPlan, CycleScheduler

__all__ = ["ChurnPlan", "CycleScheduler"]
