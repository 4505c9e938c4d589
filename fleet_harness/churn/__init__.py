"""
Node churn: randomized stop/restart of a share of the fleet.
"""

from fleet_harness.churn.controller import (
    ChurnController,
    compute_churn_count,
    validate_churn_rate,
)

__all__ = ["ChurnController", "compute_churn_count", "validate_churn_rate"]
