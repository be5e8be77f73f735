"""Topology model for WAN simulation.

This module defines the Topology class, which owns every site, interface and
point-to-point link of the simulated network together with their addressing.
Records refer to each other through integer ids into the topology's flat
lists; the topology is the single owner of all of them.
"""

import ipaddress
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

import networkx as nx

from wan_sim.core.enums import LinkState
from wan_sim.core.exceptions import DuplicateConnection
from wan_sim.utils.units import format_rate, format_time, parse_rate, parse_time

SiteRef = Union[int, str]

DEFAULT_POOL = "10.1.0.0/16"


@dataclass
class Site:
    """A network node acting as both host and router.

    Attributes:
        id: Index of the site in the topology.
        name: Unique site name (HQ, Branch, ...).
        interfaces: Interface ids in allocation order.
        position: Optional (x, y) layout position.
    """

    id: int
    name: str
    interfaces: List[int] = field(default_factory=list)
    position: Optional[Tuple[float, float]] = None


@dataclass
class Interface:
    """One end of a point-to-point link.

    Attributes:
        id: Index of the interface in the topology.
        site: Owning site id.
        link: Link id.
        index: Per-site interface index, starting at 1.
        address: Assigned IPv4 address.
        network: Subnet of the link.
    """

    id: int
    site: int
    link: int
    index: int
    address: ipaddress.IPv4Address
    network: ipaddress.IPv4Network

    @property
    def netmask(self) -> ipaddress.IPv4Address:
        return self.network.netmask


@dataclass
class Link:
    """A bidirectional point-to-point link.

    Attributes:
        id: Index of the link in the topology.
        interfaces: The two interface ids, in connect order.
        rate: Transmission rate in bits per second.
        delay: Propagation delay in seconds.
        state: Operational state, written only by the link state controller.
    """

    id: int
    interfaces: Tuple[int, int]
    rate: float
    delay: float
    state: LinkState = LinkState.UP

    def __repr__(self) -> str:
        return (
            f"Link({self.id}, {format_rate(self.rate)}, "
            f"{format_time(self.delay)}, {self.state.value})"
        )


class Topology:
    """Graph of sites and point-to-point links.

    Attributes:
        sites: Site records indexed by id.
        interfaces: Interface records indexed by id.
        links: Link records indexed by id.
        graph: NetworkX graph mirroring sites (by name) and links.
    """

    def __init__(self, pool: str = DEFAULT_POOL):
        """Initialize an empty topology.

        Args:
            pool: Address pool the link subnets are carved from. In pools
                wider than /24, link k takes the first /30 of the k-th /24
                block; smaller pools are split into consecutive /30s.
        """
        self.pool = ipaddress.ip_network(pool)
        self.sites: List[Site] = []
        self.interfaces: List[Interface] = []
        self.links: List[Link] = []
        self.graph = nx.Graph()
        self._site_ids: Dict[str, int] = {}
        self._pairs: Dict[Tuple[int, int], int] = {}
        self._addresses: Dict[ipaddress.IPv4Address, int] = {}
        self._blocks: Iterator[ipaddress.IPv4Network] = self._subnet_blocks()

    def _subnet_blocks(self) -> Iterator[ipaddress.IPv4Network]:
        if self.pool.prefixlen >= 24:
            yield from self.pool.subnets(new_prefix=30)
            return
        blocks = self.pool.subnets(new_prefix=24)
        # block 0 stays unused so link k lands in x.y.k.0/30
        next(blocks)
        for block in blocks:
            yield next(block.subnets(new_prefix=30))

    def add_site(self, name: str, position: Optional[Tuple[float, float]] = None) -> int:
        """Add a site to the network.

        Args:
            name: Unique name for the site.
            position: Optional (x, y) layout position.

        Returns:
            The id of the new site.
        """
        if name in self._site_ids:
            raise ValueError(f"Site {name} already exists")
        site = Site(len(self.sites), name, position=position)
        self.sites.append(site)
        self._site_ids[name] = site.id
        self.graph.add_node(name)
        return site.id

    def site_id(self, site: SiteRef) -> int:
        """Resolve a site name or id into a site id."""
        if isinstance(site, str):
            if site not in self._site_ids:
                raise ValueError(f"Site {site} does not exist")
            return self._site_ids[site]
        if not 0 <= site < len(self.sites):
            raise ValueError(f"Site {site} does not exist")
        return site

    def site(self, site: SiteRef) -> Site:
        return self.sites[self.site_id(site)]

    def connect(
        self,
        site_a: SiteRef,
        site_b: SiteRef,
        rate: Union[str, float] = "5Mbps",
        delay: Union[str, float] = "2ms",
    ) -> int:
        """Add a BIDIRECTIONAL link between two sites.

        One interface is allocated on each side and both are numbered from
        the next free /30 subnet: site_a takes the first host address and
        site_b the second.

        Args:
            site_a: First endpoint (name or id).
            site_b: Second endpoint (name or id).
            rate: Link rate in bits per second or as a string like "5Mbps".
            delay: Propagation delay in seconds or as a string like "2ms".

        Returns:
            The id of the new link.
        """
        a = self.site_id(site_a)
        b = self.site_id(site_b)
        if a == b:
            raise ValueError(f"Cannot connect site {self.sites[a].name} to itself")
        pair = (min(a, b), max(a, b))
        if pair in self._pairs:
            raise DuplicateConnection(self.sites[a].name, self.sites[b].name)

        rate = parse_rate(rate)
        delay = parse_time(delay)

        try:
            network = next(self._blocks)
        except StopIteration:
            raise RuntimeError(f"Address pool {self.pool} is exhausted") from None
        first, second = list(network.hosts())

        link_id = len(self.links)
        iface_a = self._add_interface(a, link_id, first, network)
        iface_b = self._add_interface(b, link_id, second, network)
        self.links.append(Link(link_id, (iface_a, iface_b), rate, delay))
        self._pairs[pair] = link_id
        self.graph.add_edge(
            self.sites[a].name,
            self.sites[b].name,
            link=link_id,
            rate=rate,
            delay=delay,
        )
        return link_id

    def _add_interface(
        self,
        site_id: int,
        link_id: int,
        address: ipaddress.IPv4Address,
        network: ipaddress.IPv4Network,
    ) -> int:
        site = self.sites[site_id]
        iface = Interface(
            id=len(self.interfaces),
            site=site_id,
            link=link_id,
            index=len(site.interfaces) + 1,
            address=address,
            network=network,
        )
        self.interfaces.append(iface)
        site.interfaces.append(iface.id)
        self._addresses[address] = iface.id
        return iface.id

    def link_between(self, site_a: SiteRef, site_b: SiteRef) -> Optional[int]:
        """Return the id of the link joining two sites, or None."""
        a = self.site_id(site_a)
        b = self.site_id(site_b)
        return self._pairs.get((min(a, b), max(a, b)))

    def site_interfaces(self, site: SiteRef) -> List[Interface]:
        return [self.interfaces[i] for i in self.site(site).interfaces]

    def interface(self, site: SiteRef, index: int) -> Interface:
        """Return the interface of a site by its per-site index."""
        record = self.site(site)
        if not 1 <= index <= len(record.interfaces):
            raise ValueError(f"Site {record.name} has no interface {index}")
        return self.interfaces[record.interfaces[index - 1]]

    def link_endpoints(self, link_id: int) -> Tuple[Interface, Interface]:
        first, second = self.links[link_id].interfaces
        return self.interfaces[first], self.interfaces[second]

    def peer(self, interface_id: int) -> Interface:
        """Return the interface at the other end of an interface's link."""
        first, second = self.links[self.interfaces[interface_id].link].interfaces
        return self.interfaces[second if first == interface_id else first]

    def owner_of(self, address: Union[str, ipaddress.IPv4Address]) -> Optional[Interface]:
        """Return the interface an address is assigned to, or None."""
        iface_id = self._addresses.get(ipaddress.IPv4Address(address))
        return None if iface_id is None else self.interfaces[iface_id]

    def neighbours(self, site: SiteRef) -> List[Tuple[int, Interface]]:
        """Return (neighbour site id, local interface) pairs of a site."""
        return [
            (self.peer(iface.id).site, iface) for iface in self.site_interfaces(site)
        ]

    def link_name(self, link_id: int) -> str:
        """Human readable name of a link, such as "HQ-DC"."""
        a, b = self.link_endpoints(link_id)
        return f"{self.sites[a.site].name}-{self.sites[b.site].name}"

    def __repr__(self) -> str:
        return f"Topology({len(self.sites)} sites, {len(self.links)} links)"
