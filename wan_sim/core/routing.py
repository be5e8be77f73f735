"""Static routing tables for WAN simulation.

Tables are built once from the topology and never change afterwards. Each
table holds the directly-connected networks of its site plus one static
route per remote link network, chosen by hop count over the topology graph.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

import networkx as nx

from wan_sim.core.exceptions import UnreachableNetwork
from wan_sim.core.topology import Interface, Site, Topology

logger = logging.getLogger(__name__)

_ANY = ipaddress.IPv4Address("0.0.0.0")


@dataclass(frozen=True)
class RoutingEntry:
    """A single routing table entry.

    Attributes:
        network: Destination network (prefix and prefix length).
        next_hop: Gateway address, or None for a directly-connected network.
        interface: Egress interface index on the owning site.
        connected: Whether the entry describes a directly-connected network.
    """

    network: ipaddress.IPv4Network
    next_hop: Optional[ipaddress.IPv4Address]
    interface: int
    connected: bool = False

    @property
    def prefix_length(self) -> int:
        return self.network.prefixlen

    def matches(self, address: ipaddress.IPv4Address) -> bool:
        return address in self.network


@dataclass(frozen=True)
class StaticRoute:
    """A hand-authored route installed in place of the computed one.

    Attributes:
        site: Name of the site owning the route.
        network: Destination network in CIDR form.
        next_hop: Gateway address.
        interface: Egress interface index.
    """

    site: str
    network: str
    next_hop: str
    interface: int


class RoutingTable:
    """Read-only routing table of one site."""

    def __init__(
        self,
        site: str,
        entries: Iterable[RoutingEntry],
        unreachable: Iterable[ipaddress.IPv4Network] = (),
    ):
        """Initialize a routing table.

        Args:
            site: Name of the owning site.
            entries: Connected and static entries.
            unreachable: Remote networks with no path from this site.
        """
        self.site = site
        self._entries: Tuple[RoutingEntry, ...] = tuple(entries)
        self.unreachable: Tuple[ipaddress.IPv4Network, ...] = tuple(unreachable)

    @property
    def entries(self) -> Tuple[RoutingEntry, ...]:
        return self._entries

    @property
    def connected_entries(self) -> List[RoutingEntry]:
        return [e for e in self._entries if e.connected]

    @property
    def static_entries(self) -> List[RoutingEntry]:
        return [e for e in self._entries if not e.connected]

    def lookup(self, address: Union[str, ipaddress.IPv4Address]) -> Optional[RoutingEntry]:
        """Find the entry used to reach an address.

        Longest prefix wins; between entries of equal prefix length, a
        directly-connected entry beats a static one.

        Args:
            address: Destination address.

        Returns:
            The selected entry, or None when nothing matches.
        """
        address = ipaddress.IPv4Address(address)
        best: Optional[RoutingEntry] = None
        for entry in self._entries:
            if not entry.matches(address):
                continue
            if best is None or entry.prefix_length > best.prefix_length:
                best = entry
            elif (
                entry.prefix_length == best.prefix_length
                and entry.connected
                and not best.connected
            ):
                best = entry
        return best

    def format(self) -> str:
        """Render the table in the usual Destination/Gateway/Genmask layout."""
        lines = [
            f"Site: {self.site}, Ipv4StaticRouting table",
            f"{'Destination':<16}{'Gateway':<16}{'Genmask':<16}{'Flags':<6}Iface",
        ]
        for entry in self._entries:
            gateway = entry.next_hop if entry.next_hop is not None else _ANY
            flags = "U" if entry.connected else "UG"
            lines.append(
                f"{str(entry.network.network_address):<16}{str(gateway):<16}"
                f"{str(entry.network.netmask):<16}{flags:<6}{entry.interface}"
            )
        return "\n".join(lines)

    def __iter__(self) -> Iterator[RoutingEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"RoutingTable({self.site}, {len(self._entries)} entries)"


def validate_static_route(topology: Topology, route: StaticRoute) -> Tuple[int, RoutingEntry]:
    """Check a hand-authored route against the topology.

    Args:
        topology: The network topology.
        route: The route to check.

    Returns:
        The owning site id and the routing entry to install.

    Raises:
        ValueError: If the site, interface, network or next hop is invalid.
    """
    site = topology.site(route.site)
    network = ipaddress.IPv4Network(route.network)
    next_hop = ipaddress.IPv4Address(route.next_hop)
    iface = topology.interface(site.id, route.interface)
    if any(i.network == network for i in topology.site_interfaces(site.id)):
        raise ValueError(
            f"Static route to {network} on {site.name} targets a connected network"
        )
    peer = topology.peer(iface.id)
    if peer.address != next_hop:
        raise ValueError(
            f"Next hop {next_hop} is not reachable through interface "
            f"{route.interface} of {site.name} (peer is {peer.address})"
        )
    return site.id, RoutingEntry(network, next_hop, iface.index)


def _shortest_hop_entry(
    topology: Topology,
    lengths: Dict[str, Dict[str, int]],
    site: Site,
    endpoints: Tuple[Interface, Interface],
) -> Optional[RoutingEntry]:
    names = [topology.sites[i.site].name for i in endpoints]

    def distance(name: str) -> Optional[int]:
        reachable = [lengths[name][n] for n in names if n in lengths[name]]
        return min(reachable) if reachable else None

    target = distance(site.name)
    if target is None:
        return None

    candidates: List[Tuple[str, Interface]] = []
    for neighbour, iface in topology.neighbours(site.id):
        name = topology.sites[neighbour].name
        if distance(name) == target - 1:
            candidates.append((name, iface))

    # equal-hop neighbours tie-break on name
    _, iface = min(candidates, key=lambda c: c[0])
    return RoutingEntry(endpoints[0].network, topology.peer(iface.id).address, iface.index)


def build_routes(
    topology: Topology,
    static_routes: Iterable[StaticRoute] = (),
    strict: bool = False,
) -> Dict[int, RoutingTable]:
    """Compute the static routing table of every site.

    Args:
        topology: The network topology.
        static_routes: Hand-authored routes replacing computed ones.
        strict: Raise UnreachableNetwork instead of omitting unreachable
            networks.

    Returns:
        Dictionary mapping site ids to their routing tables.
    """
    lengths = dict(nx.all_pairs_shortest_path_length(topology.graph))

    overrides: Dict[int, Dict[ipaddress.IPv4Network, RoutingEntry]] = {}
    for route in static_routes:
        site_id, entry = validate_static_route(topology, route)
        site_routes = overrides.setdefault(site_id, {})
        if entry.network in site_routes:
            raise ValueError(
                f"Duplicate static route to {entry.network} on {route.site}"
            )
        site_routes[entry.network] = entry

    tables: Dict[int, RoutingTable] = {}
    for site in topology.sites:
        interfaces = topology.site_interfaces(site.id)
        entries = [
            RoutingEntry(iface.network, None, iface.index, connected=True)
            for iface in interfaces
        ]
        local = {iface.network for iface in interfaces}
        manual = dict(overrides.get(site.id, {}))
        unreachable = []

        for link in topology.links:
            endpoints = topology.link_endpoints(link.id)
            network = endpoints[0].network
            if network in local:
                continue
            if network in manual:
                entries.append(manual.pop(network))
                continue
            entry = _shortest_hop_entry(topology, lengths, site, endpoints)
            if entry is None:
                if strict:
                    raise UnreachableNetwork(site.name, str(network))
                logger.warning("Network %s is unreachable from %s", network, site.name)
                unreachable.append(network)
                continue
            entries.append(entry)

        # manual routes to prefixes that are not link networks
        entries.extend(manual.values())
        tables[site.id] = RoutingTable(site.name, entries, unreachable)
        logger.debug("Routing table for %s:\n%s", site.name, tables[site.id].format())

    return tables
