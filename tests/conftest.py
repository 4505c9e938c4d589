"""
Pytest configuration and shared fixtures.
"""

import random
from collections.abc import Generator
from pathlib import Path

import pytest

from fleet_harness.config import get_settings
from fleet_harness.fleet import FleetTopology
from fleet_harness.lifecycle import NodeLifecycleController
from fleet_harness.logging import clear_run_id
from fleet_harness.remote import CommandSet
from fleet_harness.runtime import RunLedger
from tests.fixtures.fake_fleet import FakeFleet, FakeTicker, make_topology


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure no local FLEET_* settings or .env values leak into tests."""
    import os

    for var in list(os.environ):
        if var.startswith("FLEET_"):
            monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached settings and the logging run id between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    clear_run_id()


@pytest.fixture
def topology() -> FleetTopology:
    """4 workers x 50 nodes."""
    return make_topology()


@pytest.fixture
def commands() -> CommandSet:
    return CommandSet()


@pytest.fixture
def fleet(topology: FleetTopology, commands: CommandSet) -> FakeFleet:
    """Every node running version 0.4.0."""
    return FakeFleet(topology, commands)


@pytest.fixture
def ticker() -> FakeTicker:
    return FakeTicker()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def lifecycle(
    topology: FleetTopology,
    fleet: FakeFleet,
    commands: CommandSet,
) -> NodeLifecycleController:
    return NodeLifecycleController(topology, fleet, commands)


@pytest.fixture
def ledger(tmp_path: Path) -> RunLedger:
    return RunLedger(tmp_path / "logs", "test-run", config={"source": "tests"})
