"""WAN simulator class for static-routing simulation.

This module defines the WanSimulator class, which owns the event queue and
logical clock and drives link failures, link recoveries and packet sends in
time order.

Scheduled events are kept in a (time, sequence) heap and drained by a single
SimPy process, so two events at the same timestamp always fire in insertion
order and are logged at exactly the time they were scheduled for, however
many times the run is resumed. Every handler runs to completion before the
next event is taken.
"""

import heapq
import ipaddress
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import simpy

from wan_sim.core.enums import DropReason, EventKind, LinkState
from wan_sim.core.forwarding import DEFAULT_MAX_HOPS, ForwardingEngine, ForwardingResult
from wan_sim.core.link_state import LinkStateController
from wan_sim.core.packet import Packet
from wan_sim.core.routing import StaticRoute, build_routes
from wan_sim.core.topology import SiteRef, Topology
from wan_sim.traffic.generators import TrafficFlow

logger = logging.getLogger(__name__)

LinkRef = Union[int, Sequence[str]]


@dataclass
class EventRecord:
    """One processed event in the outcome log.

    Attributes:
        time: Simulation time of the event.
        seq: Position of the record in the log.
        kind: Kind of event.
        target: Affected entity (link name or packet description).
        outcome: What happened.
        path: Sites visited by the packet, empty for link events.
        flow: Name of the flow that sent the packet, if any.
        reason: Drop reason, if the packet was dropped.
    """

    time: float
    seq: int
    kind: EventKind
    target: str
    outcome: str
    path: List[str] = field(default_factory=list)
    flow: Optional[str] = None
    reason: Optional[DropReason] = None

    @property
    def delivered(self) -> bool:
        return self.kind is not EventKind.SET_LINK_STATE and self.reason is None

    def format(self) -> str:
        line = f"{self.time:.6f} {self.kind.value} {self.target} {self.outcome}"
        if self.path:
            line += " path=" + ">".join(self.path)
        return line

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "seq": self.seq,
            "kind": self.kind.value,
            "target": self.target,
            "outcome": self.outcome,
            "path": list(self.path),
            "flow": self.flow,
            "reason": self.reason.value if self.reason else None,
        }


def format_event_log(records: Iterable[EventRecord]) -> str:
    """Render an outcome log as text, one record per line."""
    return "\n".join(record.format() for record in records)


class WanSimulator:
    """Discrete-event simulation of a statically routed WAN.

    Attributes:
        env: SimPy environment driving the clock.
        topology: The network topology.
        tables: Routing table of every site, built once at construction.
        links: Link state controller.
        engine: Forwarding engine.
        records: Outcome log, in processing order.
        packets: Every packet sent, replies included.
        flows: Traffic flows added to the simulation.
    """

    def __init__(
        self,
        topology: Topology,
        static_routes: Iterable[StaticRoute] = (),
        strict_routes: bool = False,
        max_hops: int = DEFAULT_MAX_HOPS,
        env: Optional[simpy.Environment] = None,
    ):
        """Initialize the WAN simulator.

        Args:
            topology: The network topology; it must not change afterwards.
            static_routes: Hand-authored routes replacing computed ones.
            strict_routes: Fail if some network is unreachable from a site.
            max_hops: Links a packet may cross before it is dropped.
            env: SimPy environment, a fresh one by default.
        """
        self.env = env if env is not None else simpy.Environment()
        self.topology = topology
        self.tables = build_routes(topology, static_routes, strict=strict_routes)
        self.links = LinkStateController(topology)
        self.engine = ForwardingEngine(topology, self.tables, self.links, max_hops)
        self.records: List[EventRecord] = []
        self.packets: List[Packet] = []
        self.flows: List[TrafficFlow] = []
        self._packet_ids = itertools.count(1)
        self._started = False

        # pending events as (time, sequence, action)
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._sequence = itertools.count()
        self._time = float(self.env.now)

        self.hooks: Dict[str, List[Callable[..., Any]]] = {
            "sim_start": [],  # before the first event is processed
            "link_state": [],  # a link changed state
            "packet_delivered": [],  # packet reached its destination
            "packet_dropped": [],  # packet dropped
            "sim_end": [],  # the simulation ends
        }

    @property
    def now(self) -> float:
        """Simulation time of the event being processed, or where the run stopped."""
        return self._time

    def peek(self) -> float:
        """Time of the next scheduled event, infinity when none is left."""
        return self._queue[0][0] if self._queue else float("inf")

    def _schedule(self, time: float, action: Callable[[], None]) -> int:
        if time < 0:
            raise ValueError(f"Event time must be non-negative, got {time}")
        if time < self._time:
            raise ValueError(f"Event time {time} is in the past (now={self._time})")
        seq = next(self._sequence)
        heapq.heappush(self._queue, (float(time), seq, action))
        return seq

    def resolve_link(self, link: LinkRef) -> int:
        """Resolve a link id or a pair of site names into a link id."""
        if isinstance(link, int):
            if not 0 <= link < len(self.topology.links):
                raise ValueError(f"Link {link} does not exist")
            return link
        if len(link) != 2:
            raise ValueError(f"A link is named by two sites, got {link!r}")
        link_id = self.topology.link_between(link[0], link[1])
        if link_id is None:
            raise ValueError(f"Sites {link[0]} and {link[1]} are not connected")
        return link_id

    def schedule_link_state(
        self, time: float, link: LinkRef, state: Union[LinkState, str]
    ) -> int:
        """Schedule a link to be set UP or DOWN.

        Args:
            time: Simulation time of the change.
            link: Link id or pair of site names.
            state: New link state.

        Returns:
            Sequence number of the scheduled event.
        """
        link_id = self.resolve_link(link)
        state = LinkState.parse(state)
        return self._schedule(time, lambda: self._set_link_state(link_id, state))

    def schedule_send(
        self,
        time: float,
        source: SiteRef,
        destination: Union[str, ipaddress.IPv4Address],
        size: int = 1024,
        port: int = 9,
        flow: Optional[str] = None,
        seq: int = 0,
        echo: bool = False,
    ) -> int:
        """Schedule a packet send.

        Args:
            time: Simulation time of the send.
            source: Sending site.
            destination: Destination address.
            size: Payload size in bytes.
            port: Destination port.
            flow: Name of the flow the packet belongs to.
            seq: Sequence number within the flow.
            echo: Whether the destination answers the packet.

        Returns:
            Sequence number of the scheduled event.
        """
        site_id = self.topology.site_id(source)
        destination = ipaddress.IPv4Address(destination)
        if size < 0:
            raise ValueError(f"Packet size must be non-negative, got {size}")
        if not 0 <= port <= 65535:
            raise ValueError(f"Port must be in 0-65535, got {port}")
        return self._schedule(
            time,
            lambda: self._send(site_id, destination, size, port, flow, seq, echo),
        )

    def add_traffic(self, flow: TrafficFlow) -> List[int]:
        """Enqueue every send of a traffic flow.

        Args:
            flow: The traffic flow.

        Returns:
            Sequence numbers of the scheduled sends.
        """
        self.topology.site_id(flow.source)
        self.flows.append(flow)
        return [
            self.schedule_send(
                time,
                flow.source,
                flow.destination,
                flow.size,
                flow.port,
                flow.name,
                seq,
                flow.echo,
            )
            for seq, time in enumerate(flow.send_times())
        ]

    def source_address(self, site_id: int, destination: ipaddress.IPv4Address) -> ipaddress.IPv4Address:
        """Pick the address a site sends from: its egress interface's address."""
        entry = self.tables[site_id].lookup(destination)
        if entry is not None:
            return self.topology.interface(site_id, entry.interface).address
        interfaces = self.topology.site_interfaces(site_id)
        if interfaces:
            return interfaces[0].address
        return ipaddress.IPv4Address("0.0.0.0")

    def create_packet(
        self,
        site_id: int,
        destination: ipaddress.IPv4Address,
        size: int,
        port: int = 9,
        flow: Optional[str] = None,
        seq: int = 0,
    ) -> Packet:
        """Create a new packet sent by a site at the current time."""
        packet = Packet(
            source=self.source_address(site_id, destination),
            destination=destination,
            size=size,
            seq=seq,
            id=next(self._packet_ids),
            port=port,
            flow_id=flow,
            creation_time=self._time,
        )
        self.packets.append(packet)
        return packet

    def _set_link_state(self, link_id: int, state: LinkState) -> None:
        changed = self.links.set_state(link_id, state)
        name = self.topology.link_name(link_id)
        outcome = state.value.upper() if changed else f"{state.value.upper()} (unchanged)"
        self._record(EventKind.SET_LINK_STATE, name, outcome)
        if changed:
            self.call_hooks("link_state", link_id, state, self._time)

    def _send(
        self,
        site_id: int,
        destination: ipaddress.IPv4Address,
        size: int,
        port: int,
        flow: Optional[str],
        seq: int,
        echo: bool,
    ) -> None:
        packet = self.create_packet(site_id, destination, size, port, flow, seq)
        result = self.engine.forward(site_id, packet)
        self._record_packet(EventKind.SEND_PACKET, packet, result)
        if echo and result.delivered:
            reply = packet.reply(next(self._packet_ids), self._time)
            self.packets.append(reply)
            reply_result = self.engine.forward(result.site, reply)
            self._record_packet(EventKind.ECHO_REPLY, reply, reply_result)

    def _record(
        self,
        kind: EventKind,
        target: str,
        outcome: str,
        path: Optional[List[str]] = None,
        flow: Optional[str] = None,
        reason: Optional[DropReason] = None,
    ) -> EventRecord:
        record = EventRecord(
            time=self._time,
            seq=len(self.records),
            kind=kind,
            target=target,
            outcome=outcome,
            path=path or [],
            flow=flow,
            reason=reason,
        )
        self.records.append(record)
        return record

    def _record_packet(self, kind: EventKind, packet: Packet, result: ForwardingResult) -> None:
        target = f"{packet.source}->{packet.destination}:{packet.port}#{packet.seq}"
        self._record(kind, target, result.outcome, result.path, packet.flow_id, result.reason)
        if result.delivered:
            self.call_hooks("packet_delivered", packet, result, self._time)
        else:
            self.call_hooks("packet_dropped", packet, result, self._time)

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        """Register a callback function for a specific event type.

        Args:
            event_type: The type of event to register for.
            callback: The function to call when the event occurs.
        """
        if event_type not in self.hooks:
            raise ValueError(f"Unknown hook type: {event_type}")
        self.hooks[event_type].append(callback)

    def call_hooks(self, event_type: str, *args: Any, **kwargs: Any) -> None:
        """Call all registered callbacks for the given event type.

        Args:
            event_type: The type of event that occurred.
            *args, **kwargs: Arguments to pass to the callback functions.
        """
        for callback in self.hooks.get(event_type, []):
            callback(*args, **kwargs)

    def run(self, until: Optional[float] = None) -> List[EventRecord]:
        """Run the simulation.

        The run ends when the event queue is empty or when the clock reaches
        `until`, whichever comes first. Events scheduled exactly at `until`
        do not fire.

        Args:
            until: Optional stop time in seconds.

        Returns:
            The full outcome log.
        """
        if until is not None and until <= self._time:
            raise ValueError(f"Stop time {until} must be after now ({self._time})")
        if not self._started:
            self._started = True
            self.call_hooks("sim_start", self)

        self.env.run(until=self.env.process(self._dispatch(until)))

        logger.info(
            "Simulation stopped at %ss after %d events", self._time, len(self.records)
        )
        self.call_hooks("sim_end", self.records)
        return list(self.records)

    def _dispatch(self, until: Optional[float]):
        """SimPy process firing queued events in (time, sequence) order."""
        while self._queue:
            time = self._queue[0][0]
            if until is not None and time >= until:
                break
            if time > self.env.now:
                yield self.env.timeout(time - self.env.now)
            self._time = time
            # handlers may enqueue more events at this same time
            while self._queue and self._queue[0][0] == time:
                _, _, action = heapq.heappop(self._queue)
                action()

        if until is not None:
            if until > self.env.now:
                yield self.env.timeout(until - self.env.now)
            self._time = until


def link_events(records: Iterable[EventRecord]) -> List[Tuple[float, str, str]]:
    """Extract (time, link, outcome) tuples of link state changes."""
    return [
        (r.time, r.target, r.outcome)
        for r in records
        if r.kind is EventKind.SET_LINK_STATE
    ]
