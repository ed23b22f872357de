"""Scenario driver.

This module defines the ScenarioDriver class, which builds the links and sinks
of a scenario, wires one RatePacedGenerator per flow to a socket, schedules
each generator's start, stop and optional rate change, runs the simulation and
collects per-flow metrics.

The driver talks to generators only through ``configure``, ``start``,
``stop``, ``set_rate``, the ``packets_sent`` accessor and their hooks.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

import networkx as nx
import simpy

from pacing_sim.core.data_rate import DataRate, RateLike
from pacing_sim.core.enums import Protocol, TimeResolution
from pacing_sim.core.exceptions import InvalidConfig, InvalidState, TransportError
from pacing_sim.core.generator import RatePacedGenerator
from pacing_sim.core.hooks import HookRegistry
from pacing_sim.core.link import Link
from pacing_sim.core.packet import Packet
from pacing_sim.core.scheduler import Scheduler
from pacing_sim.core.sink import PacketSink
from pacing_sim.core.socket import Address, ChannelSocket
from pacing_sim.scenario.config import FlowConfig, ScenarioConfig

logger = logging.getLogger(__name__)


class ScenarioDriver:
    """Runs rate-paced flows over point-to-point links into packet sinks.

    Attributes:
        env: SimPy environment.
        scheduler: Scheduler shared by every generator.
        name: Scenario name.
        duration: Default run length in seconds.
        graph: NetworkX directed graph of nodes and links.
        links: Link objects keyed by (source, destination) tuple.
        sinks: PacketSink objects keyed by address.
        generators: RatePacedGenerator objects keyed by flow name.
        flows: Flow configurations keyed by flow name.
        rates: Current sending rate of each flow.
        sent_packets: Packets handed to the socket, per flow.
        received_packets: Packets accepted by a sink, per flow.
        dropped_packets: (packet, reason) pairs for lost packets.
        send_errors: (flow, time, message) triples for failed sends.
        metrics: Metrics from the last run.
    """

    def __init__(
        self,
        env: simpy.Environment,
        name: str = "scenario",
        resolution: TimeResolution = TimeResolution.NS,
        duration: Optional[float] = None,
    ):
        """Initialize the scenario driver.

        Args:
            env: SimPy environment.
            name: Scenario name.
            resolution: Size of one scheduler time unit.
            duration: Default run length in seconds.
        """
        self.env = env
        self.scheduler = Scheduler(env, resolution)
        self.name = name
        self.duration = duration
        self.graph = nx.DiGraph()
        self.links: Dict[Tuple[str, str], Link] = {}
        self.sinks: Dict[Address, PacketSink] = {}
        self.generators: Dict[str, RatePacedGenerator] = {}
        self.flows: Dict[str, FlowConfig] = {}
        self.rates: Dict[str, DataRate] = {}
        self.sent_packets: Dict[str, List[Packet]] = defaultdict(list)
        self.received_packets: Dict[str, List[Packet]] = defaultdict(list)
        self.dropped_packets: List[Tuple[Packet, str]] = []
        self.send_errors: List[Tuple[str, float, str]] = []
        self.metrics: Dict[str, Any] = {}

        self.hooks = HookRegistry(
            (
                "packet_sent",  # generator handed a packet to its socket
                "packet_enqueued",  # packet accepted into a link buffer
                "packet_dropped",  # packet lost on a link or at a closed sink
                "packet_received",  # packet accepted by a sink
                "send_error",  # socket refused a packet
                "rate_changed",  # flow rate replaced
                "pacing_halted",  # generator stopped pacing on a bad rate
                "flow_start_failed",  # socket could not be opened
                "sim_end",  # the simulation ends
            )
        )

    @classmethod
    def from_config(
        cls, config: ScenarioConfig, env: Optional[simpy.Environment] = None
    ) -> "ScenarioDriver":
        """Build a driver with every link, sink and flow of a scenario.

        Args:
            config: The scenario.
            env: SimPy environment (default: a new one).

        Returns:
            The driver, ready to run.
        """
        driver = cls(env or simpy.Environment(), config.name, config.resolution, config.duration)
        for link in config.links:
            driver.add_node(link.source)
            driver.add_node(link.destination)
            driver.add_link(link.source, link.destination, link.capacity, link.delay, link.buffer_size)
        for sink in config.sinks:
            driver.add_node(sink.node)
            driver.add_sink(sink.node, sink.port, sink.start, sink.stop)
        for flow in config.flows:
            driver.add_flow(flow)
        return driver

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        """Register a callback function for a specific event type.

        Args:
            event_type: The type of event to register for.
            callback: The function to call when the event occurs.
        """
        self.hooks.register(event_type, callback)

    def add_node(self, node_id: str) -> None:
        self.graph.add_node(node_id)

    def add_link(
        self,
        source: str,
        destination: str,
        capacity: RateLike,
        propagation_delay: float,
        buffer_size: float = float("inf"),
    ) -> Link:
        """Add a unidirectional link between nodes.

        Args:
            source: Source node ID.
            destination: Destination node ID.
            capacity: Link capacity.
            propagation_delay: Propagation delay in seconds.
            buffer_size: Maximum buffer size in bytes.

        Returns:
            The created Link object.
        """
        if source not in self.graph or destination not in self.graph:
            raise InvalidConfig(f"Nodes {source} and/or {destination} do not exist")
        if (source, destination) in self.links:
            raise InvalidConfig(f"Link {source}->{destination} already exists")

        link = Link(self.env, source, destination, capacity, propagation_delay, buffer_size)
        link.hooks.register("packet_enqueued", self._packet_enqueued)
        link.hooks.register("packet_dropped", self._packet_dropped)
        self.links[(source, destination)] = link
        self.graph.add_edge(
            source,
            destination,
            capacity=link.capacity.bit_rate,
            delay=propagation_delay,
        )
        return link

    def add_sink(
        self, node: str, port: int, start: float = 0.0, stop: Optional[float] = None
    ) -> PacketSink:
        """Add a packet sink listening at ``node:port`` between ``start`` and ``stop``.

        Returns:
            The created PacketSink object.
        """
        if node not in self.graph:
            raise InvalidConfig(f"Node {node} does not exist")
        address = Address(node, port)
        if address in self.sinks:
            raise InvalidConfig(f"A sink already listens at {address}")

        sink = PacketSink(self.scheduler, address)
        sink.hooks.register("packet_received", self._packet_received)
        sink.hooks.register("packet_dropped", self._packet_dropped)
        self.sinks[address] = sink
        self.scheduler.schedule_at(max(start, self.env.now), sink.start)
        if stop is not None:
            self.scheduler.schedule_at(max(stop, self.env.now), sink.stop)
        return sink

    def add_flow(self, flow: FlowConfig) -> RatePacedGenerator:
        """Create and schedule the generator for a flow.

        Args:
            flow: The flow configuration.

        Returns:
            The configured generator.

        Raises:
            InvalidConfig: If the flow name is taken or no link joins its endpoints.
        """
        if flow.name in self.generators:
            raise InvalidConfig(f"Flow {flow.name} already exists")
        link = self.links.get((flow.source, flow.destination))
        if link is None:
            raise InvalidConfig(
                "No link between flow endpoints",
                component=f"flow {flow.name}",
                details={"source": flow.source, "destination": flow.destination},
            )

        socket = ChannelSocket(link, self.sinks.get, Protocol(flow.protocol))
        generator = RatePacedGenerator(self.scheduler, flow.name)
        generator.configure(
            socket,
            Address(flow.destination, flow.port),
            flow.packet_size,
            flow.max_packets,
            flow.data_rate,
        )
        generator.register_hook("packet_sent", self._packet_sent)
        generator.register_hook("send_error", self._send_error)
        generator.register_hook("rate_changed", self._rate_changed)
        generator.register_hook("pacing_halted", self._pacing_halted)

        self.generators[flow.name] = generator
        self.flows[flow.name] = flow
        self.rates[flow.name] = DataRate.parse(flow.data_rate)

        self.scheduler.schedule_at(max(flow.start, self.env.now), self._start_flow, flow.name)
        if flow.stop is not None:
            self.scheduler.schedule_at(max(flow.stop, self.env.now), generator.stop)
        if flow.rate_change is not None:
            self.schedule_rate_change(flow.name, flow.rate_change.at, flow.rate_change.data_rate)
        return generator

    def schedule_rate_change(self, flow_name: str, at: float, data_rate: RateLike) -> None:
        """Change a flow's rate at absolute time ``at``.

        Raises:
            InvalidConfig: If the flow is unknown, the time has passed or the
                rate is not positive.
        """
        if flow_name not in self.generators:
            raise InvalidConfig(f"Unknown flow: {flow_name}")
        if at < self.env.now:
            raise InvalidConfig(
                "Rate change time has already passed",
                component=f"flow {flow_name}",
                details={"at": at, "now": self.env.now},
            )
        rate = DataRate.parse(data_rate)
        if rate.bit_rate <= 0:
            raise InvalidConfig("Data rate must be positive", component=f"flow {flow_name}")
        self.scheduler.schedule_at(at, self.generators[flow_name].set_rate, rate)

    def run(self, duration: Optional[float] = None, updates: bool = False) -> Dict[str, Any]:
        """Run the simulation, then stop every generator.

        Args:
            duration: Absolute end time in seconds (default: the scenario duration).
            updates: Print progress while running.

        Returns:
            Dictionary of calculated metrics.
        """
        duration = duration if duration is not None else self.duration
        if duration is None:
            raise InvalidConfig("No duration given for the run", component=self.name)
        if duration <= self.env.now:
            raise InvalidState(
                "Run end time must be in the future",
                component=self.name,
                details={"until": duration, "now": self.env.now},
            )

        if updates:
            count = 10
            interval = (duration - self.env.now) / count

            def update():
                counter = 0
                while True:
                    yield self.env.timeout(interval)
                    counter += 1
                    progress = counter / count * 100
                    print(f"Progress: {progress:.2f}%", end="\r")

            self.env.process(update())

        self.scheduler.run(until=duration)

        for generator in self.generators.values():
            generator.stop()

        self.calculate_metrics()

        self.hooks.call("sim_end", self.metrics)

        return self.metrics

    def calculate_metrics(self) -> Dict[str, Any]:
        """Calculate per-flow and aggregate metrics.

        Returns:
            Dictionary of calculated metrics.
        """
        now = self.env.now
        flows: Dict[str, Dict[str, Any]] = {}

        for name, generator in self.generators.items():
            flow = self.flows[name]
            received = self.received_packets[name]
            bytes_received = sum(p.size for p in received)
            delays = [p.get_total_delay() for p in received]

            start = min(flow.start, now)
            end = now if flow.stop is None else min(flow.stop, now)
            active_time = end - start
            throughput = bytes_received * 8 / active_time if active_time > 0 else 0.0

            sent = generator.packets_sent
            flows[name] = {
                "protocol": Protocol(flow.protocol).value,
                "packets_sent": sent,
                "packets_received": len(received),
                "bytes_received": bytes_received,
                "packets_dropped": sum(1 for p, _ in self.dropped_packets if p.flow_id == name),
                "send_errors": sum(1 for f, _, _ in self.send_errors if f == name),
                "throughput": throughput,
                "average_delay": sum(delays) / len(delays) if delays else 0,
                "packet_loss_rate": 1 - len(received) / sent if sent else 0,
                "final_rate": self.rates[name].bit_rate,
            }

        total_sent = sum(f["packets_sent"] for f in flows.values())
        total_received = sum(f["packets_received"] for f in flows.values())
        all_delays = [
            p.get_total_delay() for packets in self.received_packets.values() for p in packets
        ]

        link_utilization: Dict[Tuple[str, str], float] = {}
        for (source, destination), link in self.links.items():
            max_bits = link.capacity.bit_rate * now
            link_utilization[(source, destination)] = (
                link.bytes_sent * 8 / max_bits if max_bits > 0 else 0
            )

        self.metrics = {
            "scenario": self.name,
            "duration": now,
            "flows": flows,
            "throughput": sum(f["throughput"] for f in flows.values()),
            "average_delay": sum(all_delays) / len(all_delays) if all_delays else 0,
            "packet_loss_rate": 1 - total_received / total_sent if total_sent else 0,
            "link_utilization": link_utilization,
        }
        return self.metrics

    def _start_flow(self, name: str) -> None:
        try:
            self.generators[name].start()
        except TransportError as error:
            logger.warning("Flow %s could not start: %s", name, error)
            self.hooks.call("flow_start_failed", name, error, self.env.now)

    def _packet_sent(self, generator: RatePacedGenerator, packet: Packet, time: float) -> None:
        self.sent_packets[generator.name].append(packet)
        self.hooks.call("packet_sent", generator.name, packet, time)

    def _send_error(
        self, generator: RatePacedGenerator, packet: Packet, error: TransportError, time: float
    ) -> None:
        self.send_errors.append((generator.name, time, error.message))
        self.hooks.call("send_error", generator.name, packet, error, time)

    def _rate_changed(
        self, generator: RatePacedGenerator, old_rate: DataRate, new_rate: DataRate, time: float
    ) -> None:
        self.rates[generator.name] = new_rate
        self.hooks.call("rate_changed", generator.name, old_rate, new_rate, time)

    def _pacing_halted(self, generator: RatePacedGenerator, error: InvalidConfig, time: float) -> None:
        self.hooks.call("pacing_halted", generator.name, error, time)

    def _packet_enqueued(self, packet: Packet, link: Link, time: float) -> None:
        self.hooks.call("packet_enqueued", packet, link, time)

    def _packet_dropped(self, packet: Packet, reason: str, time: float) -> None:
        self.dropped_packets.append((packet, reason))
        self.hooks.call("packet_dropped", packet, reason, time)

    def _packet_received(self, packet: Packet, sink: PacketSink, time: float) -> None:
        self.received_packets[packet.flow_id].append(packet)
        self.hooks.call("packet_received", packet, sink, time)
