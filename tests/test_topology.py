"""
Tests for fleet topology construction, resolution and loading.
"""

import json
from pathlib import Path

import pytest

from fleet_harness.domain import NodeState, Worker
from fleet_harness.errors import ConfigError
from fleet_harness.fleet import FleetTopology, load_topology, uniform_topology


def _w(worker_id: str, start: int, count: int) -> Worker:
    return Worker(id=worker_id, address=f"{worker_id}.example", start=start, count=count)


class TestFleetTopology:
    """Tests for FleetTopology validation."""

    def test_orders_workers_by_start(self) -> None:
        """Workers given out of order are sorted by range start."""
        topology = FleetTopology([_w("b", 50, 50), _w("a", 0, 50)])

        assert [w.id for w in topology.workers] == ["a", "b"]
        assert topology.total_nodes() == 100
        assert len(topology) == 2

    def test_empty_rejected(self) -> None:
        with pytest.raises(ConfigError, match="no workers"):
            FleetTopology([])

    def test_duplicate_id_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Duplicate worker id"):
            FleetTopology([_w("a", 0, 10), _w("a", 10, 10)])

    def test_overlap_rejected(self) -> None:
        with pytest.raises(ConfigError, match="overlaps"):
            FleetTopology([_w("a", 0, 10), _w("b", 5, 10)])

    def test_gap_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Gap"):
            FleetTopology([_w("a", 0, 10), _w("b", 20, 10)])

    def test_gap_at_start_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Gap"):
            FleetTopology([_w("a", 5, 10)])

    def test_declared_total_larger_than_ranges_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Gap"):
            FleetTopology([_w("a", 0, 10)], total_nodes=20)

    def test_ranges_exceeding_declared_total_rejected(self) -> None:
        with pytest.raises(ConfigError, match="total_nodes is 5"):
            FleetTopology([_w("a", 0, 10)], total_nodes=5)

    def test_non_positive_count_rejected_by_model(self) -> None:
        with pytest.raises(ValueError):
            _w("a", 0, 0)


class TestResolve:
    """Tests for global index resolution."""

    def test_resolve_maps_to_worker_and_local(self) -> None:
        topology = uniform_topology(["h1", "h2", "h3", "h4"], 50)

        worker, local = topology.resolve(0)
        assert (worker.id, local) == ("worker-1", 0)

        worker, local = topology.resolve(149)
        assert (worker.id, local) == ("worker-3", 49)

        worker, local = topology.resolve(150)
        assert (worker.id, local) == ("worker-4", 0)

    def test_every_index_resolves_to_exactly_one_worker(self) -> None:
        """Every global index has exactly one owner."""
        topology = FleetTopology([_w("a", 0, 7), _w("b", 7, 13), _w("c", 20, 1)])

        for g in range(topology.total_nodes()):
            owners = [w for w in topology.workers if w.contains(g)]
            assert len(owners) == 1
            worker, local = topology.resolve(g)
            assert worker == owners[0]
            assert worker.start + local == g

    @pytest.mark.parametrize("index", [-1, 200, 1000])
    def test_out_of_range_rejected(self, index: int) -> None:
        topology = uniform_topology(["h1", "h2", "h3", "h4"], 50)

        with pytest.raises(ConfigError, match="outside fleet"):
            topology.resolve(index)

    def test_handle_and_handles_for(self) -> None:
        topology = uniform_topology(["h1", "h2"], 3)

        handle = topology.handle(4, NodeState.RUNNING)
        assert handle.worker_id == "worker-2"
        assert handle.local_index == 1
        assert handle.state == NodeState.RUNNING

        handles = topology.handles_for(topology.worker("worker-2"))
        assert [h.global_index for h in handles] == [3, 4, 5]
        assert all(h.state == NodeState.UNKNOWN for h in handles)

    def test_unknown_worker(self) -> None:
        topology = uniform_topology(["h1"], 3)

        with pytest.raises(ConfigError, match="Unknown worker"):
            topology.worker("nope")


class TestLoadTopology:
    """Tests for loading topology files."""

    def test_load_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "topology.json"
        path.write_text(
            json.dumps(
                {
                    "workers": [
                        {"id": "w1", "address": "10.0.0.1", "start": 0, "count": 50},
                        {"id": "w2", "address": "10.0.0.2", "start": 50, "count": 50},
                    ],
                    "total_nodes": 100,
                }
            )
        )

        topology = load_topology(path)

        assert topology.total_nodes() == 100
        assert topology.worker("w2").address == "10.0.0.2"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_topology(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "topology.json"
        path.write_text("{not json")

        with pytest.raises(ConfigError, match="not valid JSON"):
            load_topology(path)

    def test_schema_error(self, tmp_path: Path) -> None:
        path = tmp_path / "topology.json"
        path.write_text(json.dumps({"workers": [{"id": "w1", "start": 0, "count": 5}]}))

        with pytest.raises(ConfigError, match="Invalid topology"):
            load_topology(path)

    def test_example_file_is_valid(self) -> None:
        """The shipped example topology loads."""
        path = Path(__file__).parent.parent / "topology.example.json"

        topology = load_topology(path)

        assert topology.total_nodes() == 200
        assert len(topology) == 4
