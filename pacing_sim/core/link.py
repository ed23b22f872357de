"""Link class for rate-paced traffic generation.

This module defines the Link class, which represents a unidirectional
point-to-point channel with a drop-tail buffer between two nodes.
"""

import logging
from typing import Callable

import simpy

from pacing_sim.core.data_rate import DataRate, RateLike
from pacing_sim.core.exceptions import InvalidConfig
from pacing_sim.core.hooks import HookRegistry
from pacing_sim.core.packet import Packet

logger = logging.getLogger(__name__)


class Link:
    """Represents a network link between nodes.

    Attributes:
        env: SimPy environment.
        source: Source node ID.
        target: Target node ID.
        capacity: Link capacity.
        propagation_delay: Propagation delay in seconds.
        buffer_size: Maximum buffer size in bytes.
        buffer_usage: Bytes currently waiting for transmission.
        packets_dropped: Number of packets dropped by this link.
        packets_sent: Number of packets sent through this link.
        bytes_sent: Number of bytes sent through this link.
        resource: SimPy resource for link access control.
        hooks: Observation points ``packet_enqueued``, ``packet_dropped``
            and ``packet_transmitted``.
    """

    def __init__(
        self,
        env: simpy.Environment,
        source: str,
        target: str,
        capacity: RateLike,
        propagation_delay: float,
        buffer_size: float = float("inf"),
    ):
        """Initialize a network link.

        Args:
            env: SimPy environment.
            source: Source node ID.
            target: Target node ID.
            capacity: Link capacity, e.g. ``"10Mbps"`` or bits per second.
            propagation_delay: Propagation delay in seconds.
            buffer_size: Maximum buffer size in bytes (default: infinite).
        """
        self.env = env
        self.source = source
        self.target = target
        self.capacity = DataRate.parse(capacity)
        if self.capacity.bit_rate <= 0:
            raise InvalidConfig(
                "Link capacity must be positive",
                component=f"{source}->{target}",
                details={"capacity": self.capacity.bit_rate},
            )
        self.propagation_delay = propagation_delay
        self.buffer_size = buffer_size
        self.buffer_usage = 0
        self.packets_dropped = 0
        self.packets_sent = 0
        self.bytes_sent = 0
        self.resource = simpy.Resource(env, capacity=1)
        self.hooks = HookRegistry(
            ("packet_enqueued", "packet_dropped", "packet_transmitted")
        )

    def can_queue_packet(self, packet: Packet) -> bool:
        """Check if there's enough buffer space for the packet.

        Args:
            packet: The packet to check.

        Returns:
            True if there's enough buffer space, False otherwise.
        """
        return self.buffer_usage + packet.size <= self.buffer_size

    def calculate_transmission_delay(self, packet_size: int) -> float:
        """Calculate transmission delay based on packet size and link capacity.

        Args:
            packet_size: Size of the packet in bytes.

        Returns:
            Transmission delay in seconds.
        """
        return (packet_size * 8) / self.capacity.bit_rate

    def transmit(self, packet: Packet, deliver: Callable[[Packet], None]) -> bool:
        """Queue a packet for transmission.

        Args:
            packet: The packet to transmit.
            deliver: Called with the packet once it reaches the far end.

        Returns:
            True if the packet was queued, False if the buffer was full and
            the packet was dropped.
        """
        if not self.can_queue_packet(packet):
            self.drop(packet, "Buffer overflow")
            return False

        self.buffer_usage += packet.size
        self.hooks.call("packet_enqueued", packet, self, self.env.now)
        self.env.process(self._transmission(packet, deliver))
        return True

    def drop(self, packet: Packet, reason: str) -> None:
        """Record a packet lost on this link.

        Args:
            packet: The packet that was dropped.
            reason: Reason for dropping the packet.
        """
        packet.dropped = True
        self.packets_dropped += 1
        logger.debug("%r dropped packet %d of %s: %s", self, packet.seq, packet.flow_id, reason)
        self.hooks.call("packet_dropped", packet, reason, self.env.now)

    def _transmission(self, packet: Packet, deliver: Callable[[Packet], None]):
        with self.resource.request() as link_resource:
            yield link_resource
            self.buffer_usage -= packet.size
            yield self.env.timeout(self.calculate_transmission_delay(packet.size))
            self.packets_sent += 1
            self.bytes_sent += packet.size
            self.hooks.call("packet_transmitted", packet, self, self.env.now)

        yield self.env.timeout(self.propagation_delay)
        deliver(packet)

    def __repr__(self) -> str:
        """Return string representation of the link.

        Returns:
            String representation of the link.
        """
        return f"Link({self.source}->{self.target}, {self.capacity.bit_rate/1000000:.1f}Mbps, {self.propagation_delay*1000:.1f}ms)"
