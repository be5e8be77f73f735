"""Visualization utilities for WAN simulation.

This module provides functions for drawing the topology with its current
link states and the timeline of packet outcomes around link failures.
"""

import os
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import networkx as nx

from wan_sim.core.enums import EventKind, LinkState
from wan_sim.core.simulator import EventRecord, link_events
from wan_sim.core.topology import Topology


def _layout(topology: Topology) -> Dict[str, Tuple[float, float]]:
    if all(site.position is not None for site in topology.sites):
        # screen coordinates: y grows downwards
        return {site.name: (site.position[0], -site.position[1]) for site in topology.sites}
    return nx.spring_layout(topology.graph, seed=42)


def _finish(fig, filename: Optional[str], show: bool) -> None:
    if filename:
        directory = os.path.dirname(filename)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.savefig(filename)
        plt.close(fig)
    elif show:
        plt.show()
    else:
        plt.close(fig)


def save_network_visualization(
    topology: Topology,
    filename: Optional[str] = None,
    figsize: Tuple[int, int] = (8, 7),
    show: bool = True,
) -> None:
    """Save network topology visualization to a file.

    UP links are drawn solid, DOWN links red and dashed. Each link is
    labelled with its subnet and propagation delay.

    Args:
        topology: The network topology.
        filename: Output filename, or None to show it immediately.
        figsize: Figure size as (width, height) in inches.
        show: Whether to show the figure when no filename is given.
    """
    fig = plt.figure(figsize=figsize)
    graph = topology.graph
    pos = _layout(topology)

    nx.draw_networkx_nodes(graph, pos, node_size=1500, node_color="lightblue")
    nx.draw_networkx_labels(graph, pos, font_size=12)

    up: List[Tuple[str, str]] = []
    down: List[Tuple[str, str]] = []
    labels = {}
    for u, v, data in graph.edges(data=True):
        link = topology.links[data["link"]]
        (down if link.state is LinkState.DOWN else up).append((u, v))
        network = topology.interfaces[link.interfaces[0]].network
        labels[(u, v)] = f"{network}\n{link.delay * 1000:.1f}ms"

    nx.draw_networkx_edges(graph, pos, edgelist=up, edge_color="gray", width=2)
    nx.draw_networkx_edges(
        graph, pos, edgelist=down, edge_color="red", width=2, style="dashed"
    )
    nx.draw_networkx_edge_labels(
        graph,
        pos,
        edge_labels=labels,
        font_size=9,
        rotate=False,
        bbox=dict(facecolor="white", edgecolor="none", alpha=0.7),
    )

    plt.axis("off")
    plt.tight_layout()
    _finish(fig, filename, show)


def plot_delivery_timeline(
    records: List[EventRecord],
    filename: Optional[str] = None,
    figsize: Tuple[int, int] = (10, 4),
    show: bool = True,
) -> None:
    """Plot every packet send over time, one row per flow.

    Delivered packets are drawn as green dots and dropped ones as red
    crosses; link state changes are drawn as vertical lines.

    Args:
        records: Outcome log of a simulation run.
        filename: Output filename, or None to show it immediately.
        figsize: Figure size as (width, height) in inches.
        show: Whether to show the figure when no filename is given.
    """
    fig, ax = plt.subplots(figsize=figsize)

    rows: Dict[str, int] = {}
    for record in records:
        if record.kind is not EventKind.SEND_PACKET:
            continue
        row = rows.setdefault(record.flow or record.target, len(rows))
        if record.reason is None:
            ax.plot(record.time, row, "o", color="green")
        else:
            ax.plot(record.time, row, "x", color="red", markersize=9)

    for time, link, outcome in link_events(records):
        color = "red" if outcome.startswith("DOWN") else "green"
        ax.axvline(time, color=color, linestyle="--", alpha=0.6)
        ax.annotate(f"{link} {outcome.split()[0]}", (time, len(rows) - 0.5), fontsize=8)

    ax.set_yticks(range(len(rows)))
    ax.set_yticklabels(list(rows))
    ax.set_ylim(-0.5, max(len(rows), 1) - 0.25)
    ax.set_xlabel("Time (s)")
    ax.set_title("Packet Outcomes")

    plt.tight_layout()
    _finish(fig, filename, show)
