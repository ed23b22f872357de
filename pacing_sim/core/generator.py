"""Rate-paced traffic generator.

This module defines the RatePacedGenerator class, an application that emits
fixed-size packets through a socket at a controlled bit rate. Each send
schedules the next one with the scheduler, so the generator keeps at most one
pending send event at a time.

The rate may be changed while a send is pending. The pending event keeps the
time it was scheduled for; the new rate is read only when that event fires and
the delay to the following send is computed.
"""

import logging
from typing import Any, Callable, Optional

from pacing_sim.core.data_rate import DataRate, RateLike
from pacing_sim.core.enums import GeneratorState
from pacing_sim.core.exceptions import InvalidConfig, InvalidState, TransportError
from pacing_sim.core.hooks import HookRegistry
from pacing_sim.core.packet import Packet
from pacing_sim.core.scheduler import EventHandle, Scheduler
from pacing_sim.core.socket import Address, Socket

logger = logging.getLogger(__name__)


class RatePacedGenerator:
    """Sends fixed-size packets at a configurable bit rate.

    Attributes:
        scheduler: Scheduler used for self-rescheduling.
        name: Flow name, stamped on every packet.
        socket: Transport endpoint, not owned.
        peer: Address the socket connects to.
        packet_size: Bytes per packet.
        max_packets: Packet budget; 0 means unbounded.
        hooks: Observation points ``started``, ``stopped``, ``packet_sent``,
            ``send_error``, ``rate_changed`` and ``pacing_halted``.
    """

    def __init__(self, scheduler: Scheduler, name: str = "generator") -> None:
        """Create a stopped, unconfigured generator.

        Args:
            scheduler: Scheduler used for self-rescheduling.
            name: Flow name.
        """
        self.scheduler = scheduler
        self.name = name
        self.socket: Optional[Socket] = None
        self.peer: Optional[Address] = None
        self.packet_size = 0
        self.max_packets = 0
        self._rate = DataRate(0)
        self._packets_sent = 0
        self._send_event: Optional[EventHandle] = None
        self._state = GeneratorState.STOPPED
        self.hooks = HookRegistry(
            (
                "started",
                "stopped",
                "packet_sent",
                "send_error",
                "rate_changed",
                "pacing_halted",
            )
        )

    @property
    def packets_sent(self) -> int:
        return self._packets_sent

    @property
    def rate(self) -> DataRate:
        return self._rate

    @property
    def state(self) -> GeneratorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is GeneratorState.RUNNING

    @property
    def has_pending_send(self) -> bool:
        return self._send_event is not None and self._send_event.is_pending

    @property
    def next_send_time(self) -> Optional[float]:
        """Absolute time of the pending send, or None."""
        return self._send_event.time if self.has_pending_send else None

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        self.hooks.register(event_type, callback)

    def configure(
        self,
        socket: Socket,
        peer: Address,
        packet_size: int,
        max_packets: int,
        data_rate: RateLike,
    ) -> None:
        """Set the endpoint, packet size, packet budget and initial rate.

        Nothing is touched on the socket until ``start``.

        Args:
            socket: Transport endpoint to send through.
            peer: Address to connect the socket to.
            packet_size: Bytes per packet, positive.
            max_packets: Maximum number of packets per run; 0 for unbounded.
            data_rate: Initial rate, non-negative.

        Raises:
            InvalidState: If the generator is running.
            InvalidConfig: If a parameter is out of range.
        """
        if self.is_running:
            raise InvalidState("Cannot configure a running generator", component=self.name)
        if packet_size <= 0:
            raise InvalidConfig(
                "Packet size must be positive",
                component=self.name,
                details={"packet_size": packet_size},
            )
        if max_packets < 0:
            raise InvalidConfig(
                "Packet budget must not be negative",
                component=self.name,
                details={"max_packets": max_packets},
            )
        rate = DataRate.parse(data_rate)
        if rate.bit_rate < 0:
            raise InvalidConfig(
                "Data rate must not be negative",
                component=self.name,
                details={"data_rate": rate.bit_rate},
            )

        self.socket = socket
        self.peer = peer
        self.packet_size = packet_size
        self.max_packets = max_packets
        self._rate = rate

    def start(self) -> None:
        """Connect the socket, send the first packet and begin pacing.

        Raises:
            InvalidState: If already running or not configured.
            TransportError: If the socket cannot bind or connect. The
                generator stays stopped.
        """
        if self.is_running:
            raise InvalidState("Generator is already running", component=self.name)
        if self.socket is None or self.peer is None:
            raise InvalidState("Generator has not been configured", component=self.name)

        try:
            self.socket.bind()
            self.socket.connect(self.peer)
        except TransportError as error:
            self.socket.close()
            logger.error("%s failed to open its socket: %s", self.name, error)
            raise

        self._state = GeneratorState.RUNNING
        self._packets_sent = 0
        logger.info(
            "%s started at %.6f (%s, %d B packets, budget %s)",
            self.name,
            self.scheduler.now(),
            self._rate,
            self.packet_size,
            self.max_packets or "unbounded",
        )
        self.hooks.call("started", self, self.scheduler.now())
        self._send_packet()

    def stop(self) -> None:
        """Stop pacing, cancel the pending send and close the socket.

        Safe to call repeatedly and on a generator that never started.
        """
        was_running = self.is_running
        self._state = GeneratorState.STOPPED

        if self._send_event is not None:
            self.scheduler.cancel(self._send_event)
            self._send_event = None

        if self.socket is not None and self.socket.is_open:
            self.socket.close()

        if was_running:
            logger.info(
                "%s stopped at %.6f after %d packets",
                self.name,
                self.scheduler.now(),
                self._packets_sent,
            )
            self.hooks.call("stopped", self, self.scheduler.now())

    def set_rate(self, data_rate: RateLike) -> None:
        """Replace the rate used for the next scheduling decision.

        A send that is already pending keeps its scheduled time.

        Args:
            data_rate: New rate, positive.

        Raises:
            InvalidConfig: If the rate is not positive.
        """
        rate = DataRate.parse(data_rate)
        if rate.bit_rate <= 0:
            raise InvalidConfig(
                "Data rate must be positive",
                component=self.name,
                details={"data_rate": rate.bit_rate},
            )
        old_rate, self._rate = self._rate, rate
        logger.info("%s rate %s -> %s at %.6f", self.name, old_rate, rate, self.scheduler.now())
        self.hooks.call("rate_changed", self, old_rate, rate, self.scheduler.now())

    def dispose(self) -> None:
        """Stop the generator and release the socket reference."""
        self.stop()
        self.socket = None
        self.peer = None

    def __enter__(self) -> "RatePacedGenerator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def _send_packet(self) -> None:
        if not self.is_running:
            logger.debug("%s ignored a send on a stopped generator", self.name)
            return
        self._send_event = None

        packet = Packet(
            self.name, self._packets_sent + 1, self.packet_size, self.scheduler.now()
        )
        try:
            self.socket.send(packet)
        except TransportError as error:
            logger.warning("%s failed to send packet %d: %s", self.name, packet.seq, error)
            self.hooks.call("send_error", self, packet, error, self.scheduler.now())

        self._packets_sent += 1
        self.hooks.call("packet_sent", self, packet, self.scheduler.now())

        if self.max_packets == 0 or self._packets_sent < self.max_packets:
            self._schedule_next()
        else:
            logger.info("%s reached its budget of %d packets", self.name, self.max_packets)

    def _schedule_next(self) -> None:
        if not self.is_running or self.has_pending_send:
            return

        try:
            delay = self._rate.transmission_time(self.packet_size, self.scheduler.resolution)
        except InvalidConfig as error:
            logger.error("%s halted pacing at %s: %s", self.name, self._rate, error)
            self.hooks.call("pacing_halted", self, error, self.scheduler.now())
            return

        self._send_event = self.scheduler.schedule(delay, self._send_packet)

    def __repr__(self) -> str:
        return f"RatePacedGenerator({self.name}, {self._state.name}, {self._rate})"
