"""YAML scenarios for WAN simulation.

This module parses a topology and its timed events from YAML files, writes
them back out, and builds ready-to-run simulators from them. Malformed input
fails fast with a ScenarioError naming the offending entry.

Example YAML:
    name: triangle
    stop_time: 12.0

    sites:
      - name: HQ
        position: [10.0, 2.0]
      - name: Branch
      - name: DC

    links:
      - endpoints: [HQ, Branch]
        rate: 5Mbps
        delay: 2ms

    link_events:
      - time: 4.0
        link: [HQ, DC]
        state: down

    traffic:
      - source: HQ
        destination: 10.1.1.2
        port: 9
        count: 4
        interval: 2.0
        size: 1024
        start: 2.0
        stop: 11.0

    static_routes:
      - site: HQ
        network: 10.1.2.0/30
        next_hop: 10.1.3.2
        interface: 2
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from wan_sim.core.enums import LinkState
from wan_sim.core.routing import StaticRoute, validate_static_route
from wan_sim.core.simulator import WanSimulator
from wan_sim.core.topology import DEFAULT_POOL, Topology
from wan_sim.traffic.generators import TrafficFlow
from wan_sim.utils.units import parse_rate, parse_time


class ScenarioError(ValueError):
    """Raised when a scenario is malformed."""


@dataclass
class SiteConfig:
    """A site and its optional layout position."""

    name: str
    position: Optional[Tuple[float, float]] = None


@dataclass
class LinkConfig:
    """A point-to-point link between two sites.

    Attributes:
        a: First endpoint site name.
        b: Second endpoint site name.
        rate: Rate in bits per second; strings like "5Mbps" are accepted.
        delay: Propagation delay in seconds; strings like "2ms" are accepted.
    """

    a: str
    b: str
    rate: float = 5e6
    delay: float = 0.002

    def __post_init__(self):
        self.rate = parse_rate(self.rate)
        self.delay = parse_time(self.delay)


@dataclass
class LinkEventConfig:
    """A scheduled link state change."""

    time: float
    link: Union[int, List[str]]
    state: LinkState

    def __post_init__(self):
        self.state = LinkState.parse(self.state)
        if self.time < 0:
            raise ScenarioError(f"Link event time must be non-negative, got {self.time}")


@dataclass
class Scenario:
    """A complete simulation scenario.

    Attributes:
        name: Scenario name.
        sites: Site configurations, in creation order.
        links: Link configurations, in connect order (this fixes addressing).
        stop_time: Optional stop time in seconds.
        link_events: Scheduled link state changes.
        traffic: Traffic flows.
        static_routes: Hand-authored routes replacing computed ones.
        pool: Address pool for link subnets.
    """

    name: str
    sites: List[SiteConfig]
    links: List[LinkConfig]
    stop_time: Optional[float] = None
    link_events: List[LinkEventConfig] = field(default_factory=list)
    traffic: List[TrafficFlow] = field(default_factory=list)
    static_routes: List[StaticRoute] = field(default_factory=list)
    pool: str = DEFAULT_POOL

    def __post_init__(self):
        """Validate cross references between sections."""
        if not self.sites:
            raise ScenarioError("No sites defined in scenario")

        names = [s.name for s in self.sites]
        if len(set(names)) != len(names):
            raise ScenarioError(f"Duplicate site names in {names}")
        known = set(names)

        pairs = set()
        for i, link in enumerate(self.links):
            for end in (link.a, link.b):
                if end not in known:
                    raise ScenarioError(f"Link {i}: unknown site '{end}'")
            if link.a == link.b:
                raise ScenarioError(f"Link {i}: site '{link.a}' cannot connect to itself")
            pair = frozenset((link.a, link.b))
            if pair in pairs:
                raise ScenarioError(f"Link {i}: {link.a} and {link.b} are already connected")
            pairs.add(pair)

        for i, event in enumerate(self.link_events):
            if isinstance(event.link, int):
                if not 0 <= event.link < len(self.links):
                    raise ScenarioError(f"Link event {i}: link {event.link} out of range")
            elif len(event.link) != 2 or frozenset(event.link) not in pairs:
                raise ScenarioError(f"Link event {i}: no link between {event.link}")

        for i, flow in enumerate(self.traffic):
            if flow.source not in known:
                raise ScenarioError(f"Traffic {i}: unknown source site '{flow.source}'")

        for i, route in enumerate(self.static_routes):
            if route.site not in known:
                raise ScenarioError(f"Static route {i}: unknown site '{route.site}'")

        if self.stop_time is not None and self.stop_time <= 0:
            raise ScenarioError(f"stop_time must be positive, got {self.stop_time}")

        self._check_addressing()

    def _check_addressing(self) -> None:
        """Lay out the topology and check every static route against it."""
        try:
            topology = build_topology(self)
        except (ValueError, RuntimeError) as e:
            raise ScenarioError(f"Invalid addressing: {e}") from e

        seen = set()
        for i, route in enumerate(self.static_routes):
            try:
                site_id, entry = validate_static_route(topology, route)
            except ValueError as e:
                raise ScenarioError(f"Static route {i}: {e}") from e
            if (site_id, entry.network) in seen:
                raise ScenarioError(
                    f"Static route {i}: duplicate route to {entry.network} on {route.site}"
                )
            seen.add((site_id, entry.network))


def _require(entry: Dict[str, Any], key: str, where: str) -> Any:
    if key not in entry:
        raise ScenarioError(f"{where}: Missing required field '{key}'")
    return entry[key]


def _as_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ScenarioError(f"'{key}' section must be a list")
    for i, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise ScenarioError(f"{key}[{i}] must be a dict, got {type(entry).__name__}")
    return value


def scenario_from_dict(data: Dict[str, Any]) -> Scenario:
    """Build a scenario from parsed YAML data.

    Args:
        data: Dictionary with the sections described in the module docstring.

    Returns:
        The validated scenario.

    Raises:
        ScenarioError: If a section or field is missing or invalid.
    """
    if not isinstance(data, dict):
        raise ScenarioError(f"Scenario must be a dict, got {type(data).__name__}")

    try:
        sites = []
        for i, site in enumerate(_as_list(data, "sites")):
            position = site.get("position")
            if position is not None:
                position = (float(position[0]), float(position[1]))
            sites.append(SiteConfig(name=str(_require(site, "name", f"Site {i}")), position=position))

        links = []
        for i, link in enumerate(_as_list(data, "links")):
            endpoints = _require(link, "endpoints", f"Link {i}")
            if not isinstance(endpoints, list) or len(endpoints) != 2:
                raise ScenarioError(f"Link {i}: endpoints must be a list of two sites")
            links.append(LinkConfig(
                a=str(endpoints[0]),
                b=str(endpoints[1]),
                rate=link.get("rate", 5e6),
                delay=link.get("delay", 0.002),
            ))

        link_events = []
        for i, event in enumerate(_as_list(data, "link_events")):
            link = _require(event, "link", f"Link event {i}")
            if not isinstance(link, int):
                link = [str(end) for end in link]
            link_events.append(LinkEventConfig(
                time=float(_require(event, "time", f"Link event {i}")),
                link=link,
                state=_require(event, "state", f"Link event {i}"),
            ))

        traffic = []
        for i, flow in enumerate(_as_list(data, "traffic")):
            stop = flow.get("stop")
            traffic.append(TrafficFlow(
                source=str(_require(flow, "source", f"Traffic {i}")),
                destination=str(_require(flow, "destination", f"Traffic {i}")),
                port=int(flow.get("port", 9)),
                count=int(flow.get("count", 1)),
                interval=float(flow.get("interval", 1.0)),
                size=int(flow.get("size", 1024)),
                start=float(flow.get("start", 0.0)),
                stop=None if stop is None else float(stop),
                echo=bool(flow.get("echo", False)),
                name=flow.get("name"),
            ))

        static_routes = []
        for i, route in enumerate(_as_list(data, "static_routes")):
            static_routes.append(StaticRoute(
                site=str(_require(route, "site", f"Static route {i}")),
                network=str(_require(route, "network", f"Static route {i}")),
                next_hop=str(_require(route, "next_hop", f"Static route {i}")),
                interface=int(_require(route, "interface", f"Static route {i}")),
            ))

        stop_time = data.get("stop_time")
        return Scenario(
            name=str(data.get("name", "scenario")),
            sites=sites,
            links=links,
            stop_time=None if stop_time is None else float(stop_time),
            link_events=link_events,
            traffic=traffic,
            static_routes=static_routes,
            pool=str(data.get("pool", DEFAULT_POOL)),
        )
    except ScenarioError:
        raise
    except (TypeError, ValueError, IndexError) as e:
        raise ScenarioError(f"Invalid scenario: {e}") from e


def scenario_to_dict(scenario: Scenario) -> Dict[str, Any]:
    """Convert a scenario into plain data suitable for YAML."""
    data: Dict[str, Any] = {"name": scenario.name}
    if scenario.stop_time is not None:
        data["stop_time"] = scenario.stop_time
    if scenario.pool != DEFAULT_POOL:
        data["pool"] = scenario.pool

    data["sites"] = []
    for site in scenario.sites:
        entry: Dict[str, Any] = {"name": site.name}
        if site.position is not None:
            entry["position"] = list(site.position)
        data["sites"].append(entry)

    data["links"] = [
        {"endpoints": [link.a, link.b], "rate": link.rate, "delay": link.delay}
        for link in scenario.links
    ]
    data["link_events"] = [
        {
            "time": event.time,
            "link": event.link if isinstance(event.link, int) else list(event.link),
            "state": event.state.value,
        }
        for event in scenario.link_events
    ]
    data["traffic"] = [
        {
            "name": flow.name,
            "source": flow.source,
            "destination": flow.destination,
            "port": flow.port,
            "count": flow.count,
            "interval": flow.interval,
            "size": flow.size,
            "start": flow.start,
            "stop": flow.stop,
            "echo": flow.echo,
        }
        for flow in scenario.traffic
    ]
    data["static_routes"] = [
        {
            "site": route.site,
            "network": route.network,
            "next_hop": route.next_hop,
            "interface": route.interface,
        }
        for route in scenario.static_routes
    ]
    return data


def load_scenario(yaml_path: Union[str, Path]) -> Scenario:
    """Load a scenario from a YAML file.

    Args:
        yaml_path: Path to the YAML scenario file.

    Returns:
        The validated scenario.

    Raises:
        FileNotFoundError: If the file does not exist.
        ScenarioError: If required fields are missing or invalid.
        yaml.YAMLError: If the YAML syntax is invalid.
    """
    path = Path(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {yaml_path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    return scenario_from_dict(data)


def save_scenario(scenario: Scenario, yaml_path: Union[str, Path]) -> None:
    """Write a scenario to a YAML file that load_scenario reads back."""
    path = Path(yaml_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(scenario_to_dict(scenario), f, sort_keys=False)


def build_topology(scenario: Scenario) -> Topology:
    """Create the topology described by a scenario."""
    topology = Topology(pool=scenario.pool)
    for site in scenario.sites:
        topology.add_site(site.name, site.position)
    for link in scenario.links:
        topology.connect(link.a, link.b, link.rate, link.delay)
    return topology


def build_simulator(scenario: Scenario, **kwargs: Any) -> WanSimulator:
    """Create a simulator with the scenario's topology, routes and events.

    Link events are enqueued before traffic, each in file order, which fixes
    the order of events sharing a timestamp.

    Args:
        scenario: The scenario to build.
        **kwargs: Extra WanSimulator arguments.

    Returns:
        A simulator ready to run.

    Raises:
        ScenarioError: If the scenario was modified into an invalid one
            after it was loaded.
    """
    try:
        simulator = WanSimulator(
            build_topology(scenario), static_routes=scenario.static_routes, **kwargs
        )
        for event in scenario.link_events:
            link = event.link if isinstance(event.link, int) else tuple(event.link)
            simulator.schedule_link_state(event.time, link, event.state)
        for flow in scenario.traffic:
            simulator.add_traffic(flow)
    except ScenarioError:
        raise
    except (ValueError, RuntimeError) as e:
        raise ScenarioError(f"Cannot build scenario {scenario.name}: {e}") from e
    return simulator


def triangle_scenario() -> Scenario:
    """The three-site WAN: HQ, Branch and DC fully meshed over 5Mbps/2ms links.

    The HQ-DC link fails at 4s and is restored at 8s while three echo
    clients run (HQ to Branch, HQ to DC, Branch to DC).
    """
    return Scenario(
        name="triangle",
        sites=[
            SiteConfig("HQ", (10.0, 2.0)),
            SiteConfig("Branch", (5.0, 15.0)),
            SiteConfig("DC", (15.0, 15.0)),
        ],
        links=[
            LinkConfig("HQ", "Branch", "5Mbps", "2ms"),  # 10.1.1.0/30
            LinkConfig("Branch", "DC", "5Mbps", "2ms"),  # 10.1.2.0/30
            LinkConfig("HQ", "DC", "5Mbps", "2ms"),  # 10.1.3.0/30
        ],
        stop_time=12.0,
        link_events=[
            LinkEventConfig(4.0, ["HQ", "DC"], LinkState.DOWN),
            LinkEventConfig(8.0, ["HQ", "DC"], LinkState.UP),
        ],
        traffic=[
            TrafficFlow("HQ", "10.1.1.2", port=9, count=4, interval=2.0,
                        size=1024, start=2.0, stop=11.0, echo=True),
            TrafficFlow("HQ", "10.1.3.2", port=10, count=4, interval=2.0,
                        size=1024, start=3.0, stop=11.0, echo=True),
            TrafficFlow("Branch", "10.1.2.2", port=10, count=4, interval=2.5,
                        size=512, start=4.0, stop=11.0, echo=True),
        ],
    )
