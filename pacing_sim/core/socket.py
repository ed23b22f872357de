"""Transport sockets.

This module defines the Socket interface the rate-paced generator sends
through, and ChannelSocket, which carries packets over a Link to whichever
PacketSink listens at the connected address. Congestion control and
retransmission are not modelled; the protocol only decides how connect and a
full link buffer behave.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Union

from pacing_sim.core.enums import Protocol, SocketState
from pacing_sim.core.exceptions import TransportError
from pacing_sim.core.link import Link
from pacing_sim.core.packet import Packet

if TYPE_CHECKING:
    from pacing_sim.core.sink import PacketSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Address:
    """A node and port pair."""

    node: str
    port: int

    def __str__(self) -> str:
        return f"{self.node}:{self.port}"


class Socket(ABC):
    """Abstract transport endpoint."""

    def __init__(self, protocol: Union[Protocol, str] = Protocol.UDP) -> None:
        self.protocol = Protocol(protocol)
        self.state = SocketState.CLOSED
        self.peer: Optional[Address] = None

    @property
    def is_open(self) -> bool:
        return self.state is not SocketState.CLOSED

    @abstractmethod
    def bind(self) -> None:
        """Allocate a local endpoint."""
        pass

    @abstractmethod
    def connect(self, address: Address) -> None:
        """Associate the socket with a remote address."""
        pass

    @abstractmethod
    def send(self, packet: Packet) -> int:
        """Send a packet to the connected peer.

        Returns:
            Number of bytes accepted.

        Raises:
            TransportError: If the socket cannot accept the packet.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the endpoint. Closing a closed socket is a no-op."""
        pass


class ChannelSocket(Socket):
    """Socket that sends over a point-to-point Link.

    Attributes:
        link: Link the packets are sent over.
        resolve: Looks up the sink listening at an address, or None.
        node: Local node ID.
    """

    def __init__(
        self,
        link: Link,
        resolve: Callable[[Address], Optional["PacketSink"]],
        protocol: Union[Protocol, str] = Protocol.UDP,
    ) -> None:
        super().__init__(protocol)
        self.link = link
        self.resolve = resolve
        self.node = link.source

    def bind(self) -> None:
        if self.state is not SocketState.CLOSED:
            raise TransportError("Socket is already bound", component=self.node)
        self.state = SocketState.BOUND

    def connect(self, address: Address) -> None:
        if self.state is not SocketState.BOUND:
            raise TransportError("Socket must be bound before connecting", component=self.node)
        if address.node != self.link.target:
            raise TransportError(
                "No route to host",
                component=self.node,
                details={"peer": address, "link": self.link},
            )
        if self.protocol is Protocol.TCP:
            sink = self.resolve(address)
            if sink is None or not sink.listening:
                raise TransportError(
                    "Connection refused", component=self.node, details={"peer": address}
                )
        self.peer = address
        self.state = SocketState.CONNECTED
        logger.debug("%s socket %s connected to %s", self.protocol.name, self.node, address)

    def send(self, packet: Packet) -> int:
        if self.state is not SocketState.CONNECTED:
            raise TransportError("Socket is not connected", component=self.node)
        if self.protocol is Protocol.TCP and not self.link.can_queue_packet(packet):
            raise TransportError(
                "Send buffer full",
                component=self.node,
                details={"flow": packet.flow_id, "seq": packet.seq},
            )
        self.link.transmit(packet, self._deliver)
        return packet.size

    def close(self) -> None:
        if self.state is SocketState.CLOSED:
            return
        self.state = SocketState.CLOSED
        logger.debug("%s socket %s closed", self.protocol.name, self.node)

    def _deliver(self, packet: Packet) -> None:
        sink = self.resolve(self.peer)
        if sink is None:
            self.link.drop(packet, "Port unreachable")
            return
        sink.receive(packet)

    def __repr__(self) -> str:
        return f"ChannelSocket({self.protocol.name}, {self.node}->{self.peer})"
