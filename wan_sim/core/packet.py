"""Packet class for WAN simulation.

This module defines the Packet class, which represents a network packet
traveling through the simulated network.
"""

import ipaddress
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Packet:
    """Represents a network packet.

    Attributes:
        source: Source address.
        destination: Destination address.
        size: Payload size in bytes.
        seq: Sequence number within the packet's flow.
        id: Identifier assigned by the simulator, unique within a run.
        port: Destination port.
        flow_id: Identifier of the flow that generated the packet.
        creation_time: Simulation time when the packet was sent.
        hops: Names of the sites the packet has visited, in order.
    """

    source: ipaddress.IPv4Address
    destination: ipaddress.IPv4Address
    size: int
    seq: int = 0
    id: int = 0
    port: int = 0
    flow_id: Optional[str] = None
    creation_time: float = 0.0
    hops: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Normalize addresses given as strings."""
        self.source = ipaddress.IPv4Address(self.source)
        self.destination = ipaddress.IPv4Address(self.destination)
        if self.size < 0:
            raise ValueError(f"Packet size must be non-negative, got {self.size}")

    def record_hop(self, site: str) -> None:
        """Record a site visited by the packet.

        Args:
            site: Name of the site the packet is at.
        """
        self.hops.append(site)

    def get_hop_count(self) -> int:
        """Get number of links traversed.

        Returns:
            Number of links the packet crossed.
        """
        return max(len(self.hops) - 1, 0)

    def reply(self, packet_id: int, time: float) -> "Packet":
        """Build the echo reply to this packet.

        Args:
            packet_id: Identifier for the reply.
            time: Simulation time of the reply.

        Returns:
            A packet travelling back to this packet's source.
        """
        return Packet(
            source=self.destination,
            destination=self.source,
            size=self.size,
            seq=self.seq,
            id=packet_id,
            port=self.port,
            flow_id=self.flow_id,
            creation_time=time,
        )
