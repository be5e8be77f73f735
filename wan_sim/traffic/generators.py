"""Traffic generators for WAN simulation.

This module provides fixed-interval traffic flows modelled on UDP echo
clients: a flow sends `count` packets of `size` bytes, one every `interval`
seconds from `start`, and never at or after `stop`.
"""

import ipaddress
from dataclasses import dataclass
from typing import Callable, List, Optional


def constant_interval(interval: float) -> Callable[[int], float]:
    """Generate the offset of the k-th packet of a constant-rate flow.

    Args:
        interval: Time between packets in seconds.

    Returns:
        Function mapping a packet index to its offset from the flow start.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    return lambda k: k * interval


def send_times(
    start: float, interval: float, count: int, stop: Optional[float] = None
) -> List[float]:
    """Compute the send times of a constant-rate flow.

    Times are computed as start + k * interval rather than by accumulating
    intervals, so they carry no rounding drift.

    Args:
        start: Time of the first packet in seconds.
        interval: Time between packets in seconds.
        count: Maximum number of packets.
        stop: Optional time at which the flow stops sending.

    Returns:
        Send times in increasing order.
    """
    if start < 0:
        raise ValueError(f"start must be non-negative, got {start}")
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    offset = constant_interval(interval)
    times = [start + offset(k) for k in range(count)]
    if stop is not None:
        times = [t for t in times if t < stop]
    return times


@dataclass
class TrafficFlow:
    """A recurring packet send from one site to one address.

    Attributes:
        source: Name of the sending site.
        destination: Destination address.
        port: Destination port.
        count: Maximum number of packets.
        interval: Time between packets in seconds.
        size: Payload size in bytes.
        start: Time of the first packet in seconds.
        stop: Optional time at which the flow stops sending.
        echo: Whether the destination answers each packet.
        name: Flow identifier used in the outcome log.
    """

    source: str
    destination: str
    port: int = 9
    count: int = 1
    interval: float = 1.0
    size: int = 1024
    start: float = 0.0
    stop: Optional[float] = None
    echo: bool = False
    name: Optional[str] = None

    def __post_init__(self):
        """Validate the flow and derive its name."""
        self.destination = str(ipaddress.IPv4Address(self.destination))
        if self.size < 0:
            raise ValueError(f"size must be non-negative, got {self.size}")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be in 0-65535, got {self.port}")
        if self.stop is not None and self.stop < self.start:
            raise ValueError(f"stop ({self.stop}) is before start ({self.start})")
        # validates start, interval and count
        send_times(self.start, self.interval, self.count, self.stop)
        if self.name is None:
            self.name = f"{self.source}->{self.destination}:{self.port}"

    def send_times(self) -> List[float]:
        """Return the times at which this flow sends."""
        return send_times(self.start, self.interval, self.count, self.stop)
