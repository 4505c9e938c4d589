"""
Chaos testing configuration and shared fixtures.

Provides common fixtures for failure injection scenarios against the
simulated fleet.
"""

import random

import pytest

from fleet_harness.churn import ChurnController
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.runtime import RunLedger
from fleet_harness.scheduler import CycleScheduler
from tests.fixtures.fake_fleet import FakeTicker


@pytest.fixture(autouse=True)
def seed_random():
    """Seed random for reproducible chaos scenarios."""
    random.seed(42)
    yield
    random.seed()  # Reset after test


@pytest.fixture
def churn(
    lifecycle: NodeLifecycleController,
    ticker: FakeTicker,
    ledger: RunLedger,
) -> ChurnController:
    return ChurnController(lifecycle, ticker, rng=random.Random(42), settle_s=5, ledger=ledger)


@pytest.fixture
def scheduler(
    lifecycle: NodeLifecycleController,
    churn: ChurnController,
    ticker: FakeTicker,
    ledger: RunLedger,
) -> CycleScheduler:
    """Health-only scheduler; tests needing verification build their own."""
    return CycleScheduler(lifecycle, churn, ticker, ledger=ledger)
