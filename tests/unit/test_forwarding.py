"""
Unit tests for the forwarding engine.

Tests:
- Delivery over connected and static routes
- LinkDown drops with no failover
- NoRoute drops for unknown addresses
- Hop limit with looping hand-authored routes
"""

from wan_sim.core.enums import DropReason, LinkState
from wan_sim.core.forwarding import ForwardingEngine
from wan_sim.core.link_state import LinkStateController
from wan_sim.core.packet import Packet
from wan_sim.core.routing import StaticRoute, build_routes


def packet_to(destination, source="10.1.1.1", size=64):
    return Packet(source, destination, size)


class TestDelivery:
    """Tests for delivered packets."""

    def test_direct_neighbour(self, triangle_engine):
        """A to B's address on the A-B link crosses one link."""
        result = triangle_engine.forward("A", packet_to("10.1.1.2"))
        assert result.delivered
        assert result.site == "B"
        assert result.path == ["A", "B"]
        assert result.outcome == "Delivered(B)"

    def test_own_address(self, triangle_engine):
        """A packet to one of the sender's own addresses stays local."""
        result = triangle_engine.forward("A", packet_to("10.1.3.1"))
        assert result.delivered
        assert result.path == ["A"]

    def test_remote_network_via_static_route(self, triangle_engine):
        """A reaches the B-C network through B, its computed next hop."""
        result = triangle_engine.forward("A", packet_to("10.1.2.2"))
        assert result.delivered
        assert result.site == "C"
        assert result.path == ["A", "B", "C"]

    def test_remote_address_owned_by_next_hop(self, triangle_engine):
        """B's address on B-C is delivered at B, one hop from A."""
        result = triangle_engine.forward("A", packet_to("10.1.2.1"))
        assert result.delivered
        assert result.path == ["A", "B"]

    def test_hops_are_recorded_on_packet(self, triangle_engine):
        packet = packet_to("10.1.2.2")
        triangle_engine.forward("A", packet)
        assert packet.hops == ["A", "B", "C"]
        assert packet.get_hop_count() == 2


class TestDrops:
    """Tests for dropped packets."""

    def test_link_down_on_connected_route(self, triangle_engine):
        """With A-C down, A to C's A-C address is dropped at A despite A-B-C."""
        triangle_engine.links.set_state(2, LinkState.DOWN)
        result = triangle_engine.forward("A", packet_to("10.1.3.2"))
        assert not result.delivered
        assert result.reason is DropReason.LINK_DOWN
        assert result.site == "A"
        assert result.outcome == "Dropped(LinkDown@A)"

    def test_unaffected_link_still_delivers(self, triangle_engine):
        triangle_engine.links.set_state(2, LinkState.DOWN)
        assert triangle_engine.forward("A", packet_to("10.1.1.2")).delivered

    def test_link_down_on_static_route(self, triangle_engine):
        """A's route to B-C uses A-B; with A-B down the packet is dropped at A."""
        triangle_engine.links.set_state(0, LinkState.DOWN)
        result = triangle_engine.forward("A", packet_to("10.1.2.2"))
        assert result.reason is DropReason.LINK_DOWN
        assert result.path == ["A"]

    def test_link_down_downstream(self, triangle_engine):
        """B-C down drops A's packet at B, after the first hop."""
        triangle_engine.links.set_state(1, LinkState.DOWN)
        result = triangle_engine.forward("A", packet_to("10.1.2.2"))
        assert result.reason is DropReason.LINK_DOWN
        assert result.site == "B"
        assert result.path == ["A", "B"]

    def test_state_is_read_on_every_packet(self, triangle_engine):
        """A restored link carries the very next packet."""
        triangle_engine.links.set_state(2, LinkState.DOWN)
        assert not triangle_engine.forward("A", packet_to("10.1.3.2")).delivered
        triangle_engine.links.set_state(2, LinkState.UP)
        assert triangle_engine.forward("A", packet_to("10.1.3.2")).delivered

    def test_no_route(self, triangle_engine):
        """Addresses outside every network are dropped, never defaulted."""
        result = triangle_engine.forward("A", packet_to("192.168.7.7"))
        assert result.reason is DropReason.NO_ROUTE
        assert result.path == ["A"]

    def test_unassigned_address_in_connected_network(self, triangle_engine):
        """The network address of a /30 belongs to nobody."""
        result = triangle_engine.forward("A", packet_to("10.1.1.0"))
        assert result.reason is DropReason.NO_ROUTE

    def test_routing_loop_hits_hop_limit(self, triangle):
        """Hand-authored routes pointing at each other loop until the limit."""
        routes = [
            StaticRoute("A", "172.16.0.0/16", "10.1.1.2", 1),
            StaticRoute("B", "172.16.0.0/16", "10.1.1.1", 1),
        ]
        tables = build_routes(triangle, routes)
        engine = ForwardingEngine(triangle, tables, LinkStateController(triangle), max_hops=5)
        result = engine.forward("A", packet_to("172.16.1.1"))
        assert result.reason is DropReason.TTL_EXPIRED
        assert len(result.path) == 6
