"""Text reports for WAN simulation.

This module renders the routing tables of all sites (the `.routes` dump) and
a summary of the configured addressing and of the redundant paths between
sites.
"""

import os
from typing import Dict, List, Optional

import networkx as nx

from wan_sim.core.routing import RoutingTable
from wan_sim.core.topology import Topology
from wan_sim.utils.units import format_rate, format_time

RULE = "=" * 40


def format_routing_tables(
    topology: Topology, tables: Dict[int, RoutingTable], time: Optional[float] = None
) -> str:
    """Render the routing table of every site.

    Args:
        topology: The network topology.
        tables: Routing tables keyed by site id.
        time: Simulation time of the snapshot, if any.

    Returns:
        The tables, separated by blank lines.
    """
    blocks = []
    for site in topology.sites:
        header = f"Node: {site.id} ({site.name})"
        if time is not None:
            header += f", Time: +{time:g}s"
        blocks.append(header + "\n" + tables[site.id].format())
    return "\n\n".join(blocks) + "\n"


def save_routing_tables(
    topology: Topology,
    tables: Dict[int, RoutingTable],
    filename: str,
    time: Optional[float] = None,
) -> None:
    """Write the routing tables of every site to a file.

    Args:
        topology: The network topology.
        tables: Routing tables keyed by site id.
        filename: Output filename.
        time: Simulation time of the snapshot, if any.
    """
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filename, "w") as f:
        f.write(format_routing_tables(topology, tables, time))


def redundant_paths(topology: Topology, source: str, target: str) -> List[List[str]]:
    """List the loop-free paths between two sites, shortest first.

    Ties are ordered by site names so the listing is stable.
    """
    paths = nx.all_simple_paths(topology.graph, source, target)
    return sorted(paths, key=lambda p: (len(p), p))


def format_configuration(topology: Topology) -> str:
    """Summarize interfaces, links and redundant paths of a topology."""
    lines = [RULE, "Network Configuration Summary", RULE, ""]

    for site in topology.sites:
        lines.append(f"{site.name} Interfaces:")
        for iface in topology.site_interfaces(site.id):
            peer = topology.sites[topology.peer(iface.id).site].name
            lines.append(
                f"  - {iface.index}: to {peer}: {iface.address} (Network {iface.network})"
            )
        lines.append("")

    lines.extend([RULE, "Links", RULE])
    for link in topology.links:
        lines.append(
            f"  {topology.link_name(link.id)}: "
            f"{format_rate(link.rate)}, {format_time(link.delay)}"
        )
    lines.append("")

    lines.extend([RULE, "Redundant Paths Available", RULE])
    for link in topology.links:
        a, b = (topology.sites[i.site].name for i in topology.link_endpoints(link.id))
        paths = redundant_paths(topology, a, b)
        lines.append(f"{a} -> {b}:")
        lines.append(f"  Primary: {' -> '.join(paths[0])}")
        for path in paths[1:]:
            lines.append(f"  Backup:  {' -> '.join(path)}")
    lines.append(RULE)
    return "\n".join(lines)
