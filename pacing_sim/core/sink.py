"""Packet sink application.

This module defines the PacketSink class, which accepts packets addressed to
a node and port while its start/stop window is open and records what it
received.
"""

import logging
from typing import List, Tuple

from pacing_sim.core.hooks import HookRegistry
from pacing_sim.core.packet import Packet
from pacing_sim.core.scheduler import Scheduler
from pacing_sim.core.socket import Address

logger = logging.getLogger(__name__)


class PacketSink:
    """Receives packets at an address.

    Attributes:
        scheduler: Scheduler providing the simulated clock.
        address: Address the sink listens on.
        listening: Whether the sink currently accepts packets.
        packets_received: Number of packets accepted.
        bytes_received: Number of bytes accepted.
        packets_dropped: Number of packets that arrived while closed.
        arrivals: (arrival time, packet) pairs in arrival order.
        hooks: Observation points ``packet_received`` and ``packet_dropped``.
    """

    def __init__(self, scheduler: Scheduler, address: Address) -> None:
        self.scheduler = scheduler
        self.address = address
        self.listening = False
        self.packets_received = 0
        self.bytes_received = 0
        self.packets_dropped = 0
        self.arrivals: List[Tuple[float, Packet]] = []
        self.hooks = HookRegistry(("packet_received", "packet_dropped"))

    def start(self) -> None:
        self.listening = True
        logger.info("Sink %s listening at %.6f", self.address, self.scheduler.now())

    def stop(self) -> None:
        self.listening = False
        logger.info("Sink %s closed at %.6f", self.address, self.scheduler.now())

    def receive(self, packet: Packet) -> None:
        """Handle packet arrival.

        Args:
            packet: The packet that has arrived.
        """
        now = self.scheduler.now()
        if not self.listening:
            packet.dropped = True
            self.packets_dropped += 1
            self.hooks.call("packet_dropped", packet, "sink closed", now)
            return

        packet.arrival_time = now
        self.packets_received += 1
        self.bytes_received += packet.size
        self.arrivals.append((now, packet))
        self.hooks.call("packet_received", packet, self, now)

    def __repr__(self) -> str:
        return f"PacketSink({self.address})"
