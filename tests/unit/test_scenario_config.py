"""
Unit tests for YAML scenario parsing.

Tests:
- Loading the bundled scenarios
- Field defaults and unit parsing
- Validation of malformed scenarios
- Save/load round trip
"""

from pathlib import Path

import pytest

from wan_sim.config.scenario import (
    Scenario,
    ScenarioError,
    build_simulator,
    build_topology,
    load_scenario,
    save_scenario,
    scenario_from_dict,
)
from wan_sim.core.enums import LinkState
from wan_sim.traffic.generators import TrafficFlow

SCENARIOS = Path(__file__).resolve().parents[2] / "scenarios"


def minimal(**overrides):
    data = {
        "name": "pair",
        "sites": [{"name": "A"}, {"name": "B"}],
        "links": [{"endpoints": ["A", "B"]}],
    }
    data.update(overrides)
    return data


def route(**overrides):
    """A valid route on A toward a prefix beyond B."""
    data = {"site": "A", "network": "10.9.0.0/16", "next_hop": "10.1.1.2", "interface": 1}
    data.update(overrides)
    return data


class TestLoadScenario:
    """Tests for loading scenario files."""

    def test_load_triangle(self):
        """The bundled triangle matches the built-in one."""
        scenario = load_scenario(SCENARIOS / "triangle.yaml")
        assert scenario.name == "triangle"
        assert [s.name for s in scenario.sites] == ["HQ", "Branch", "DC"]
        assert scenario.sites[0].position == (10.0, 2.0)
        assert scenario.links[0].rate == 5e6
        assert scenario.links[0].delay == pytest.approx(0.002)
        assert scenario.stop_time == 12.0
        assert [(e.time, e.state) for e in scenario.link_events] == [
            (4.0, LinkState.DOWN),
            (8.0, LinkState.UP),
        ]
        assert len(scenario.traffic) == 3
        assert scenario.traffic[2].size == 512

    def test_bundled_matches_builtin(self, hq_scenario):
        loaded = load_scenario(SCENARIOS / "triangle.yaml")
        assert loaded.links == hq_scenario.links
        assert loaded.link_events == hq_scenario.link_events
        assert loaded.traffic == hq_scenario.traffic

    def test_load_manual_routes(self):
        scenario = load_scenario(SCENARIOS / "triangle_manual_routes.yaml")
        assert [(r.site, r.network, r.interface) for r in scenario.static_routes] == [
            ("HQ", "10.1.2.0/30", 2),
            ("Branch", "10.1.3.0/30", 1),
            ("DC", "10.1.1.0/30", 2),
        ]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_scenario(tmp_path / "missing.yaml")

    def test_load_from_text(self, tmp_path):
        path = tmp_path / "pair.yaml"
        path.write_text(
            "name: pair\n"
            "sites:\n"
            "  - name: A\n"
            "  - name: B\n"
            "links:\n"
            "  - endpoints: [A, B]\n"
            "    rate: 10Mbps\n"
            "    delay: 5ms\n"
            "link_events:\n"
            "  - time: 1\n"
            "    link: 0\n"
            "    state: DOWN\n"
        )
        scenario = load_scenario(path)
        assert scenario.links[0].rate == 1e7
        assert scenario.link_events[0].link == 0
        assert scenario.link_events[0].state is LinkState.DOWN

    def test_save_and_load(self, tmp_path, hq_scenario):
        """A saved scenario loads back unchanged."""
        path = tmp_path / "out" / "triangle.yaml"
        save_scenario(hq_scenario, path)
        loaded = load_scenario(path)
        assert loaded == hq_scenario


class TestDefaults:
    """Tests for optional fields."""

    def test_defaults(self):
        scenario = scenario_from_dict(
            minimal(traffic=[{"source": "A", "destination": "10.1.1.2"}])
        )
        assert scenario.stop_time is None
        assert scenario.link_events == []
        assert scenario.static_routes == []
        flow = scenario.traffic[0]
        assert (flow.port, flow.count, flow.interval, flow.size, flow.start) == (
            9, 1, 1.0, 1024, 0.0
        )
        assert flow.echo is False

    def test_custom_pool(self):
        scenario = scenario_from_dict(minimal(pool="192.168.10.0/24"))
        topology = build_topology(scenario)
        assert str(topology.interfaces[0].address) == "192.168.10.1"


class TestValidation:
    """Tests for malformed scenarios."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sites": []},
            {"sites": [{"name": "A"}, {"name": "A"}]},
            {"sites": [{"position": [1, 2]}]},
            {"links": [{"endpoints": ["A", "Z"]}]},
            {"links": [{"endpoints": ["A", "A"]}]},
            {"links": [{"endpoints": ["A"]}]},
            {"links": [{"endpoints": ["A", "B"]}, {"endpoints": ["B", "A"]}]},
            {"links": [{"endpoints": ["A", "B"], "rate": "fast"}]},
            {"links": "A-B"},
            {"link_events": [{"time": -1, "link": 0, "state": "down"}]},
            {"link_events": [{"time": 1, "link": 3, "state": "down"}]},
            {"link_events": [{"time": 1, "link": ["A", "C"], "state": "down"}]},
            {"link_events": [{"time": 1, "link": 0, "state": "flapping"}]},
            {"link_events": [{"link": 0, "state": "down"}]},
            {"traffic": [{"source": "Z", "destination": "10.1.1.2"}]},
            {"traffic": [{"source": "A", "destination": "10.1.1"}]},
            {"traffic": [{"source": "A", "destination": "10.1.1.2", "interval": 0}]},
            {"static_routes": [{"site": "Z", "network": "10.9.0.0/16",
                                "next_hop": "10.1.1.2", "interface": 1}]},
            {"static_routes": [{"site": "A", "network": "10.9.0.0/16"}]},
            {"static_routes": [route(interface=9)]},
            {"static_routes": [route(next_hop="10.1.1.1")]},
            {"static_routes": [route(next_hop="gateway")]},
            {"static_routes": [route(network="10.9.0.1/16")]},
            {"static_routes": [route(network="somewhere")]},
            {"static_routes": [route(network="10.1.1.0/30")]},
            {"static_routes": [route(), route()]},
            {"pool": "10.1.0.0/30", "sites": [{"name": "A"}, {"name": "B"}, {"name": "C"}],
             "links": [{"endpoints": ["A", "B"]}, {"endpoints": ["B", "C"]}]},
            {"stop_time": 0},
        ],
    )
    def test_rejected(self, overrides):
        with pytest.raises(ScenarioError):
            scenario_from_dict(minimal(**overrides))

    def test_not_a_mapping(self):
        with pytest.raises(ScenarioError):
            scenario_from_dict(["A", "B"])

    def test_error_names_the_entry(self):
        with pytest.raises(ScenarioError, match="Link 0: unknown site 'Z'"):
            scenario_from_dict(minimal(links=[{"endpoints": ["A", "Z"]}]))

    def test_bad_interface_fails_on_load(self, tmp_path):
        """An interface the site does not have is caught before building."""
        path = tmp_path / "bad_route.yaml"
        path.write_text(
            "sites:\n"
            "  - name: A\n"
            "  - name: B\n"
            "links:\n"
            "  - endpoints: [A, B]\n"
            "static_routes:\n"
            "  - site: A\n"
            "    network: 10.9.0.0/16\n"
            "    next_hop: 10.1.1.2\n"
            "    interface: 9\n"
        )
        with pytest.raises(ScenarioError, match="Static route 0: Site A has no interface 9"):
            load_scenario(path)

    def test_valid_route_is_accepted(self):
        scenario = scenario_from_dict(minimal(static_routes=[route()]))
        simulator = build_simulator(scenario)
        assert simulator.tables[0].lookup("10.9.1.1").interface == 1

    def test_edited_scenario_fails_to_build(self, hq_scenario):
        """Scenarios changed after loading still fail with ScenarioError."""
        hq_scenario.traffic.append(TrafficFlow("Nowhere", "10.1.1.2"))
        with pytest.raises(ScenarioError):
            build_simulator(hq_scenario)


class TestBuild:
    """Tests for building topologies and simulators."""

    def test_build_topology_keeps_connect_order(self, hq_scenario):
        topology = build_topology(hq_scenario)
        assert [topology.link_name(link.id) for link in topology.links] == [
            "HQ-Branch",
            "Branch-DC",
            "HQ-DC",
        ]
        assert topology.sites[2].position == (15.0, 15.0)

    def test_build_simulator_schedules_everything(self, hq_scenario):
        simulator = build_simulator(hq_scenario)
        assert len(simulator.flows) == 3
        assert simulator.peek() == 2.0

    def test_scenario_is_a_dataclass(self, hq_scenario):
        assert isinstance(hq_scenario, Scenario)
        assert hq_scenario.static_routes == []
