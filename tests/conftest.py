"""
Pytest configuration and shared fixtures for WAN simulator tests.
"""

import matplotlib

matplotlib.use("Agg")

import pytest

from wan_sim.config.scenario import triangle_scenario
from wan_sim.core.link_state import LinkStateController
from wan_sim.core.routing import build_routes
from wan_sim.core.forwarding import ForwardingEngine
from wan_sim.core.simulator import WanSimulator
from wan_sim.core.topology import Topology


# ============== Topology Fixtures ==============

@pytest.fixture
def triangle() -> Topology:
    """
    Sites A, B, C fully meshed.

    Links are connected in the order A-B, B-C, A-C, so:
        A-B: 10.1.1.0/30  (A .1 iface 1, B .2 iface 1)
        B-C: 10.1.2.0/30  (B .1 iface 2, C .2 iface 1)
        A-C: 10.1.3.0/30  (A .1 iface 2, C .2 iface 2)
    """
    topology = Topology()
    for name in ("A", "B", "C"):
        topology.add_site(name)
    topology.connect("A", "B", "5Mbps", "2ms")
    topology.connect("B", "C", "5Mbps", "2ms")
    topology.connect("A", "C", "5Mbps", "2ms")
    return topology


@pytest.fixture
def line() -> Topology:
    """Four sites in a chain: A - B - C - D."""
    topology = Topology()
    for name in ("A", "B", "C", "D"):
        topology.add_site(name)
    topology.connect("A", "B")
    topology.connect("B", "C")
    topology.connect("C", "D")
    return topology


# ============== Engine Fixtures ==============

@pytest.fixture
def triangle_engine(triangle: Topology) -> ForwardingEngine:
    """Forwarding engine over the triangle with computed routes."""
    tables = build_routes(triangle)
    return ForwardingEngine(triangle, tables, LinkStateController(triangle))


@pytest.fixture
def triangle_sim(triangle: Topology) -> WanSimulator:
    """Simulator over the A/B/C triangle with no events scheduled."""
    return WanSimulator(triangle)


@pytest.fixture
def hq_scenario():
    """The HQ/Branch/DC failure scenario."""
    return triangle_scenario()
