"""Forwarding engine for WAN simulation.

The engine walks a packet hop by hop through the static routing tables,
reading the live link state at every hop. There is no failover: when the
selected egress link is DOWN the packet is dropped, whether or not another
path exists in the topology.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from wan_sim.core.enums import DropReason
from wan_sim.core.link_state import LinkStateController
from wan_sim.core.packet import Packet
from wan_sim.core.routing import RoutingTable
from wan_sim.core.topology import SiteRef, Topology

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 64


@dataclass
class ForwardingResult:
    """Outcome of forwarding one packet.

    Attributes:
        delivered: Whether the packet reached its destination.
        site: Name of the site where the packet was delivered or dropped.
        reason: Drop reason, None when delivered.
        path: Names of the sites visited, starting with the sender.
    """

    delivered: bool
    site: str
    reason: Optional[DropReason] = None
    path: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        if self.delivered:
            return f"Delivered({self.site})"
        return f"Dropped({self.reason.value}@{self.site})"


class ForwardingEngine:
    """Decides, hop by hop, where a packet goes next or why it is dropped."""

    def __init__(
        self,
        topology: Topology,
        tables: Dict[int, RoutingTable],
        links: LinkStateController,
        max_hops: int = DEFAULT_MAX_HOPS,
    ):
        """Initialize the forwarding engine.

        Args:
            topology: The network topology.
            tables: Routing table of every site, keyed by site id.
            links: Controller holding the live link states.
            max_hops: Links a packet may cross before it is dropped.
        """
        self.topology = topology
        self.tables = tables
        self.links = links
        self.max_hops = max_hops

    def forward(self, site: SiteRef, packet: Packet) -> ForwardingResult:
        """Forward a packet from a site until it is delivered or dropped.

        Args:
            site: Site holding the packet (name or id).
            packet: The packet to forward. Visited sites are recorded on it.

        Returns:
            The forwarding result.
        """
        current = self.topology.site_id(site)
        while True:
            name = self.topology.sites[current].name
            packet.record_hop(name)

            if self._is_local(current, packet):
                return self._delivered(name, packet)

            if packet.get_hop_count() >= self.max_hops:
                return self._dropped(name, DropReason.TTL_EXPIRED, packet)

            entry = self.tables[current].lookup(packet.destination)
            if entry is None:
                return self._dropped(name, DropReason.NO_ROUTE, packet)

            egress = self.topology.interface(current, entry.interface)
            if not self.links.is_up(egress.link):
                return self._dropped(name, DropReason.LINK_DOWN, packet)

            peer = self.topology.peer(egress.id)
            if entry.connected and peer.address != packet.destination:
                # network or broadcast address of the /30
                return self._dropped(name, DropReason.NO_ROUTE, packet)
            current = peer.site

    def _is_local(self, site_id: int, packet: Packet) -> bool:
        owner = self.topology.owner_of(packet.destination)
        return owner is not None and owner.site == site_id

    def _delivered(self, site: str, packet: Packet) -> ForwardingResult:
        return ForwardingResult(True, site, path=list(packet.hops))

    def _dropped(self, site: str, reason: DropReason, packet: Packet) -> ForwardingResult:
        logger.debug(
            "Packet %d to %s dropped at %s: %s",
            packet.id,
            packet.destination,
            site,
            reason.value,
        )
        return ForwardingResult(False, site, reason, list(packet.hops))
